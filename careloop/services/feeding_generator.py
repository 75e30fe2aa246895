"""
Feeding generator — at most one open feeding reminder per schedule.

    anchor   = last_feeding_time, or the schedule's created_at if never fed
    next_due = anchor + interval_hours

A candidate is emitted once now >= next_due - reminder_lead_minutes, keyed

    feeding:{schedule_id}:{next_due_iso}

If the event for that due instant already ended missed or cancelled, the due
instant rolls forward by whole intervals so the subject is not nagged for a
feed that was explicitly skipped. A due instant the missed sweep would
already close (older than the feeding grace) jumps ahead to the first
boundary still inside the grace, so a schedule left idle for days yields a
single live reminder rather than one stale reminder per run.

Also owns the two writes on feeding_schedules: `upsert_feeding_schedule`
and `record_feeding` (`apply_feeding` is the flush-only form used by the
completion processor).
"""
from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from careloop.core.config import settings
from careloop.core.errors import ScheduleNotFoundError, SourceValidationError
from careloop.db.types import utcnow
from careloop.models.care_event import EventStatus, EventType, Priority
from careloop.models.feeding_schedule import FeedingSchedule
from careloop.schemas.event_data import FeedingEventData
from careloop.services.event_store import (
    MISSED_GRACE,
    CandidateEvent,
    natural_keys,
    open_natural_keys,
)

_BASE_INTENSITY = 40
_INTENSITY_PER_OVERDUE_MINUTE = 2
# Upper bound on consecutive skipped feeds walked past
_MAX_ROLL_FORWARD = 1000


def feeding_intensity(overdue_minutes: int) -> int:
    return min(100, _BASE_INTENSITY + _INTENSITY_PER_OVERDUE_MINUTE * max(0, overdue_minutes))


def natural_key(schedule_id: int, due: datetime) -> str:
    return f"feeding:{schedule_id}:{due.isoformat()}"


def _key_prefix(schedule_id: int) -> str:
    return f"feeding:{schedule_id}:"


def _interval(schedule: FeedingSchedule) -> timedelta:
    if schedule.interval_hours is None:
        raise SourceValidationError("feeding_schedule", schedule.id, "interval_hours is missing")
    if schedule.interval_hours <= 0:
        raise SourceValidationError(
            "feeding_schedule", schedule.id,
            f"interval_hours must be positive, got {schedule.interval_hours}",
        )
    return timedelta(hours=schedule.interval_hours)


def next_due(db: Session, schedule: FeedingSchedule, now: Optional[datetime] = None) -> datetime:
    interval = _interval(schedule)
    anchor = schedule.last_feeding_time or schedule.created_at
    due = anchor + interval

    # Catch up on an idle schedule
    if now is not None:
        stale_before = now - MISSED_GRACE[EventType.feeding]
        if due < stale_before:
            due += math.ceil((stale_before - due) / interval) * interval

    skipped = natural_keys(
        db, schedule.owner_user_id, schedule.subject_id, EventType.feeding,
        statuses=(EventStatus.missed, EventStatus.cancelled),
        since=due,
        prefix=_key_prefix(schedule.id),
    )
    for _ in range(_MAX_ROLL_FORWARD):
        if natural_key(schedule.id, due) not in skipped:
            break
        due += interval
    return due


def candidate_for(
    db: Session,
    schedule: FeedingSchedule,
    now: datetime,
) -> Optional[CandidateEvent]:
    interval = _interval(schedule)

    still_open = open_natural_keys(
        db, schedule.owner_user_id, schedule.subject_id, EventType.feeding,
        prefix=_key_prefix(schedule.id),
    )
    if still_open:
        return None

    due = next_due(db, schedule, now)
    lead = timedelta(minutes=schedule.reminder_lead_minutes)
    if now < due - lead:
        return None

    overdue_minutes = max(0, int((now - due).total_seconds() // 60))
    return CandidateEvent(
        owner_user_id=schedule.owner_user_id,
        subject_id=schedule.subject_id,
        event_type=EventType.feeding,
        natural_key=natural_key(schedule.id, due),
        event_data=FeedingEventData(
            feeding_schedule_id=schedule.id,
            subject_name=schedule.subject_name,
            interval_hours=interval.total_seconds() / 3600,
            last_feeding_time=schedule.last_feeding_time,
            next_due=due,
            overdue_minutes=overdue_minutes,
            intensity=feeding_intensity(overdue_minutes),
        ),
        scheduled_time=due,
        priority=Priority.urgent if overdue_minutes > 0 else Priority.high,
    )


def generate(
    db: Session,
    owner_user_id: int,
    subject_id: Optional[int],
    now: Optional[datetime] = None,
) -> list[CandidateEvent]:
    # Feeding schedules always belong to a dependent
    if subject_id is None:
        return []
    now = now or utcnow()
    schedules = (
        db.query(FeedingSchedule)
        .filter(
            FeedingSchedule.owner_user_id == owner_user_id,
            FeedingSchedule.subject_id == subject_id,
            FeedingSchedule.is_active.is_(True),
        )
        .order_by(FeedingSchedule.id)
        .all()
    )
    candidates = []
    for schedule in schedules:
        candidate = candidate_for(db, schedule, now)
        if candidate is not None:
            candidates.append(candidate)
    return candidates


# ---------------------------------------------------------------------------
# Schedule writes
# ---------------------------------------------------------------------------

def upsert_feeding_schedule(
    db: Session,
    owner_user_id: int,
    subject_id: int,
    interval_hours: float,
    reminder_lead_minutes: Optional[int] = None,
    subject_name: Optional[str] = None,
    notes: Optional[str] = None,
    is_active: bool = True,
) -> FeedingSchedule:
    """Create or replace the schedule of (owner, subject)."""
    if interval_hours is None or interval_hours <= 0:
        raise SourceValidationError("feeding_schedule", None, "interval_hours must be positive")
    if reminder_lead_minutes is None:
        reminder_lead_minutes = settings.FEEDING_DEFAULT_LEAD_MINUTES

    schedule = (
        db.query(FeedingSchedule)
        .filter(
            FeedingSchedule.owner_user_id == owner_user_id,
            FeedingSchedule.subject_id == subject_id,
        )
        .first()
    )
    if schedule is None:
        schedule = FeedingSchedule(owner_user_id=owner_user_id, subject_id=subject_id)
        db.add(schedule)
    schedule.interval_hours = interval_hours
    schedule.reminder_lead_minutes = reminder_lead_minutes
    schedule.subject_name = subject_name
    schedule.notes = notes
    schedule.is_active = is_active
    db.commit()
    db.refresh(schedule)
    return schedule


def apply_feeding(
    db: Session,
    owner_user_id: int,
    schedule_id: int,
    fed_at: datetime,
) -> Optional[FeedingSchedule]:
    """
    Move last_feeding_time forward to `fed_at`. Flush only.
    Returns None when the schedule no longer exists.
    """
    schedule = (
        db.query(FeedingSchedule)
        .filter(
            FeedingSchedule.id == schedule_id,
            FeedingSchedule.owner_user_id == owner_user_id,
        )
        .first()
    )
    if schedule is None:
        return None
    if schedule.last_feeding_time is None or fed_at > schedule.last_feeding_time:
        schedule.last_feeding_time = fed_at
        db.flush()
    return schedule


def record_feeding(
    db: Session,
    owner_user_id: int,
    schedule_id: int,
    fed_at: Optional[datetime] = None,
) -> FeedingSchedule:
    schedule = apply_feeding(db, owner_user_id, schedule_id, fed_at or utcnow())
    if schedule is None:
        raise ScheduleNotFoundError(schedule_id)
    db.commit()
    db.refresh(schedule)
    return schedule
