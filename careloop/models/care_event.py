"""
CareEvent — the unit of scheduling.

Created `pending` by exactly one generator pass, optionally moved to
`active` by the presentation layer, then finalized once as `completed`,
`missed` or `cancelled`. Terminal rows are never written again.

Dedup: a partial unique index over
(owner_user_id, subject_key, event_type, natural_key) restricted to open
rows (pending / active). `subject_key` mirrors `subject_id` with 0 for the
owner because NULLs never collide in a unique index.

event_data: JSON-encoded payload validated by careloop.schemas.event_data.
"""
from datetime import datetime
import enum

from sqlalchemy import Integer, String, Text, Enum, Index, func, text
from sqlalchemy.orm import Mapped, mapped_column

from careloop.db.base import Base
from careloop.db.types import UTCDateTime, utcnow


class EventType(str, enum.Enum):
    medication = "medication"
    feeding = "feeding"
    checkup = "checkup"
    vaccination = "vaccination"
    public_health_alert = "public_health_alert"
    lifecycle_milestone = "lifecycle_milestone"
    custom = "custom"


class EventStatus(str, enum.Enum):
    pending = "pending"
    active = "active"
    completed = "completed"
    missed = "missed"
    cancelled = "cancelled"


class Priority(str, enum.Enum):
    low = "low"
    normal = "normal"
    high = "high"
    urgent = "urgent"


PRIORITY_ORDER: list[Priority] = [Priority.low, Priority.normal, Priority.high, Priority.urgent]

OPEN_STATUSES = (EventStatus.pending, EventStatus.active)
TERMINAL_STATUSES = (EventStatus.completed, EventStatus.missed, EventStatus.cancelled)

_OPEN_ROWS = text("status IN ('pending', 'active')")


def subject_key_for(subject_id: int | None) -> int:
    return subject_id or 0


class CareEvent(Base):
    __tablename__ = "care_events"
    __table_args__ = (
        Index(
            "uq_care_events_open_natural_key",
            "owner_user_id", "subject_key", "event_type", "natural_key",
            unique=True,
            postgresql_where=_OPEN_ROWS,
            sqlite_where=_OPEN_ROWS,
        ),
        Index("ix_care_events_owner_status", "owner_user_id", "status"),
        Index("ix_care_events_status_scheduled", "status", "scheduled_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    owner_user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    subject_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    subject_key: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    event_type: Mapped[EventType] = mapped_column(
        Enum(EventType, name="care_event_type_enum"), nullable=False
    )
    natural_key: Mapped[str] = mapped_column(String(256), nullable=False)
    event_data: Mapped[str] = mapped_column(
        Text, nullable=False,
        comment="JSON-encoded tagged payload; `kind` equals event_type",
    )

    scheduled_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    status: Mapped[EventStatus] = mapped_column(
        Enum(EventStatus, name="care_event_status_enum"),
        nullable=False,
        default=EventStatus.pending,
    )
    priority: Mapped[Priority] = mapped_column(
        Enum(Priority, name="care_event_priority_enum"),
        nullable=False,
        default=Priority.normal,
    )

    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True,
        comment="Instant of the terminal transition (completed, missed or cancelled)",
    )
    priority_adjusted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    points_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    experience_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

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
