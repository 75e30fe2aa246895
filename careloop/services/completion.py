"""
Completion & Reward Processor.

complete_event(db, event_id, owner_user_id, ...)
  1. load the event (404 for a missing or foreign id, 409 when terminal)
  2. UPDATE care_events SET status = completed ... WHERE status IN open
     rowcount 0 → someone else finalized it first → 409
  3. domain hooks: feeding → last_feeding_time,
                   vaccination / checkup / milestone → lifecycle_records
  4. reward ledger row + totals increment + level evaluation
  5. one commit; any failure rolls everything back and the event stays open
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from careloop.core.errors import (
    CareLoopException,
    DependencyError,
    EventAlreadyFinalizedError,
)
from careloop.db.types import utcnow
from careloop.models.care_event import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    CareEvent,
    EventStatus,
    EventType,
)
from careloop.models.lifecycle_record import LifecycleRecord
from careloop.schemas.event_data import load_event_data
from careloop.services.event_store import get_event
from careloop.services.feeding_generator import apply_feeding
from careloop.services.rewards import award, default_experience, default_points
from careloop.services.timeutil import local_date

_LIFECYCLE_TYPES = (EventType.vaccination, EventType.checkup, EventType.lifecycle_milestone)


@dataclass
class CompletionResult:
    success: bool
    event_id: int
    event_type: EventType
    points_earned: int
    experience_earned: int
    new_total_points: int
    new_total_experience: int
    level: int
    leveled_up: bool


# ---------------------------------------------------------------------------
# Domain hooks (flush only)
# ---------------------------------------------------------------------------

def _record_lifecycle(db: Session, event: CareEvent, payload, now: datetime) -> None:
    savepoint = db.begin_nested()
    try:
        db.add(LifecycleRecord(
            owner_user_id=event.owner_user_id,
            subject_key=event.subject_key,
            schedule_item_id=payload.schedule_item_id,
            dose_number=payload.dose_number,
            completed_on=local_date(now),
            event_id=event.id,
        ))
        db.flush()
        savepoint.commit()
    except IntegrityError:
        # Dose already on record
        savepoint.rollback()


def _apply_domain_effects(db: Session, event: CareEvent, now: datetime) -> None:
    if event.event_type == EventType.feeding:
        payload = load_event_data(event.event_data)
        apply_feeding(db, event.owner_user_id, payload.feeding_schedule_id, now)
    elif event.event_type in _LIFECYCLE_TYPES:
        payload = load_event_data(event.event_data)
        _record_lifecycle(db, event, payload, now)


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def complete_event(
    db: Session,
    event_id: int,
    owner_user_id: int,
    points: Optional[int] = None,
    experience: Optional[int] = None,
    now: Optional[datetime] = None,
) -> CompletionResult:
    """
    Finalize one event as completed and pay its reward, exactly once.

    points / experience default to the per-type, per-priority amounts.
    """
    now = now or utcnow()
    event = get_event(db, event_id, owner_user_id)
    if event.status in TERMINAL_STATUSES:
        raise EventAlreadyFinalizedError(event_id, event.status.value)

    if points is None:
        points = default_points(event.event_type, event.priority)
    if experience is None:
        experience = default_experience(event.event_type, event.priority)

    try:
        updated = (
            db.query(CareEvent)
            .filter(
                CareEvent.id == event_id,
                CareEvent.owner_user_id == owner_user_id,
                CareEvent.status.in_(OPEN_STATUSES),
            )
            .update(
                {
                    CareEvent.status: EventStatus.completed,
                    CareEvent.completed_at: now,
                    CareEvent.resolved_at: now,
                    CareEvent.points_earned: points,
                    CareEvent.experience_earned: experience,
                },
                synchronize_session=False,
            )
        )
        if updated == 0:
            raise EventAlreadyFinalizedError(event_id, EventStatus.completed.value)

        _apply_domain_effects(db, event, now)
        outcome = award(
            db, owner_user_id, event_id, points, experience,
            reason=f"completed {event.event_type.value} event",
        )
        event_type = event.event_type
        db.commit()
    except CareLoopException:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        raise EventAlreadyFinalizedError(event_id, EventStatus.completed.value)
    except SQLAlchemyError as exc:
        db.rollback()
        raise DependencyError("database", str(exc)) from exc

    return CompletionResult(
        success=True,
        event_id=event_id,
        event_type=event_type,
        points_earned=points,
        experience_earned=experience,
        new_total_points=outcome.total_points,
        new_total_experience=outcome.total_experience,
        level=outcome.level,
        leveled_up=outcome.leveled_up,
    )
