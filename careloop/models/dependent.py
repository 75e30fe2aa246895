from datetime import datetime, date

from sqlalchemy import Integer, String, Date, func
from sqlalchemy.orm import Mapped, mapped_column

from careloop.db.base import Base
from careloop.db.types import UTCDateTime, utcnow


class Dependent(Base):
    """A household member cared for by an owner (child, parent, ...)."""

    __tablename__ = "dependents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    owner_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    # "male" | "female" | None
    gender: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, server_default=func.now(), nullable=False
    )
