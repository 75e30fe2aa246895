from datetime import datetime

from sqlalchemy import Integer, String, Text, Boolean, Float, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from careloop.db.base import Base
from careloop.db.types import UTCDateTime, utcnow


class FeedingSchedule(Base):
    """
    Recurring infant feeding rule, one per (owner, subject).

    Only `last_feeding_time` is mutated by the engine, when a feeding is
    confirmed. interval_hours is nullable so a half-configured row can be
    stored; the feeding generator rejects it.
    """

    __tablename__ = "feeding_schedules"
    __table_args__ = (
        UniqueConstraint("owner_user_id", "subject_id", name="uq_feeding_schedule_subject"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    owner_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    subject_id: Mapped[int] = mapped_column(Integer, nullable=False)
    subject_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    interval_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_feeding_time: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    reminder_lead_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
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
