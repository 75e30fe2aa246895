from datetime import datetime, date

from sqlalchemy import Integer, String, Date, func
from sqlalchemy.orm import Mapped, mapped_column

from careloop.db.base import Base
from careloop.db.types import UTCDateTime, utcnow


class CareAccount(Base):
    """
    Per-owner profile and cumulative reward totals.

    total_points / total_experience are only ever changed with
    `col = col + :delta` updates from the completion processor.
    """

    __tablename__ = "care_accounts"

    owner_user_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    display_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    gender: Mapped[str | None] = mapped_column(String(16), nullable=True)

    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_experience: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )
