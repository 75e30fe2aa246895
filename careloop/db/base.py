"""
Engine, session factory and declarative Base.

`get_db` is the FastAPI dependency; every service receives the Session
explicitly, nothing reaches for a process-wide client.
"""
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from careloop.core.config import settings


class Base(DeclarativeBase):
    pass


def make_engine(url: str) -> Engine:
    """
    Build an engine for `url`.

    SQLite: pysqlite's own transaction handling breaks SAVEPOINT, so it is
    disabled and BEGIN is emitted by SQLAlchemy instead (documented recipe).
    The generators' savepoint-per-insert dedup depends on this.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    engine = create_engine(url, connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


engine = make_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
