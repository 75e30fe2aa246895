from datetime import datetime, date

from sqlalchemy import Integer, Date, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from careloop.db.base import Base
from careloop.db.types import UTCDateTime, utcnow


class LifecycleRecord(Base):
    """A lifecycle item dose that has been administered / done for a subject."""

    __tablename__ = "lifecycle_records"
    __table_args__ = (
        UniqueConstraint(
            "owner_user_id", "subject_key", "schedule_item_id", "dose_number",
            name="uq_lifecycle_record_dose",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    owner_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    # 0 = the owner themself
    subject_key: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    schedule_item_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    dose_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    completed_on: Mapped[date] = mapped_column(Date, nullable=False)
    event_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, server_default=func.now(), nullable=False
    )
