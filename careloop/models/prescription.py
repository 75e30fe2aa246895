from datetime import datetime, date

from sqlalchemy import Integer, String, Text, Boolean, Date, func
from sqlalchemy.orm import Mapped, mapped_column

from careloop.db.base import Base
from careloop.db.types import UTCDateTime, utcnow


class Prescription(Base):
    """Active medication with daily reminder times (read-only for the engine)."""

    __tablename__ = "prescriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    owner_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    subject_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    medication_name: Mapped[str] = mapped_column(String(256), nullable=False)
    dosage: Mapped[str | None] = mapped_column(String(128), nullable=True)
    # e.g. "daily", "twice_daily", "every_8_hours"
    frequency: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reminder_times: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment='JSON array of local "HH:MM" strings',
    )
    reminder_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, server_default=func.now(), nullable=False
    )
