"""
LifecycleScheduleItem — master data for age-based care (vaccinations,
checkups, developmental milestones).

One row per (item, dose). A row applies to a subject whose age in whole
months lies in [target_age_min_months, target_age_max_months]; a NULL max
means no upper bound.
"""
from datetime import datetime
import enum

from sqlalchemy import Integer, String, Boolean, Enum, func
from sqlalchemy.orm import Mapped, mapped_column

from careloop.db.base import Base
from careloop.db.types import UTCDateTime, utcnow


class LifecycleItemType(str, enum.Enum):
    vaccination = "vaccination"
    checkup = "checkup"
    milestone = "milestone"


class SchedulePriority(str, enum.Enum):
    required = "required"
    recommended = "recommended"
    optional = "optional"


class LifecycleScheduleItem(Base):
    __tablename__ = "lifecycle_schedule_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    item_type: Mapped[LifecycleItemType] = mapped_column(
        Enum(LifecycleItemType, name="lifecycle_item_type_enum"),
        nullable=False,
        default=LifecycleItemType.vaccination,
    )
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    dose_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_doses: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    target_age_min_months: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    target_age_max_months: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # None / "all" / "male" / "female"
    gender_requirement: Mapped[str | None] = mapped_column(String(16), nullable=True)
    priority: Mapped[SchedulePriority] = mapped_column(
        Enum(SchedulePriority, name="schedule_priority_enum"),
        nullable=False,
        default=SchedulePriority.recommended,
    )
    interval_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    source: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, server_default=func.now(), nullable=False
    )
