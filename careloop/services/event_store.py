"""
Event Store — the only writer of new CareEvent rows.

Dedup
-----
At most one open (pending / active) event per
(owner_user_id, subject_key, event_type, natural_key), enforced by the
partial unique index `uq_care_events_open_natural_key`. An insert runs in
its own savepoint; an IntegrityError rolls back only that savepoint and the
existing open row is returned instead. No check-then-insert.

Transitions
-----------
Every status change is a conditional UPDATE restricted to open rows, so a
terminal row is never written again whatever the interleaving.

Public functions that change state commit; the `upsert_if_absent` /
`insert_event` pair flush only and leave commit to the caller (the batch
driver commits once per run).
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from careloop.core.errors import (
    DuplicateNaturalKeyError,
    EventAlreadyFinalizedError,
    EventNotFoundError,
)
from careloop.db.types import utcnow
from careloop.models.care_event import (
    OPEN_STATUSES,
    CareEvent,
    EventStatus,
    EventType,
    Priority,
    subject_key_for,
)
from careloop.schemas.event_data import CustomEventData, dump_event_data


# Sentinel for "every subject of the owner" in list queries
ANY_SUBJECT = object()

# Statuses that keep a natural key from being issued again
SETTLED_STATUSES = (
    EventStatus.pending,
    EventStatus.active,
    EventStatus.completed,
    EventStatus.cancelled,
)

MISSED_GRACE: dict[EventType, timedelta] = {
    EventType.medication: timedelta(minutes=120),
    EventType.feeding: timedelta(minutes=60),
    EventType.checkup: timedelta(days=30),
    EventType.vaccination: timedelta(days=30),
    EventType.lifecycle_milestone: timedelta(days=14),
    EventType.public_health_alert: timedelta(days=7),
    EventType.custom: timedelta(days=1),
}


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class CandidateEvent:
    """An event a generator would like to exist. Not persisted."""
    owner_user_id: int
    subject_id: Optional[int]
    event_type: EventType
    natural_key: str
    event_data: object          # one of the schemas.event_data variants
    scheduled_time: datetime
    priority: Priority = Priority.normal


@dataclass
class UpsertResult:
    created: bool
    event: CareEvent


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------

def _owned(db: Session, owner_user_id: int, subject_id=ANY_SUBJECT):
    q = db.query(CareEvent).filter(CareEvent.owner_user_id == owner_user_id)
    if subject_id is not ANY_SUBJECT:
        q = q.filter(CareEvent.subject_key == subject_key_for(subject_id))
    return q


def _find_open(
    db: Session,
    owner_user_id: int,
    subject_id: Optional[int],
    event_type: EventType,
    natural_key: str,
) -> Optional[CareEvent]:
    return (
        _owned(db, owner_user_id, subject_id)
        .filter(
            CareEvent.event_type == event_type,
            CareEvent.natural_key == natural_key,
            CareEvent.status.in_(OPEN_STATUSES),
        )
        .first()
    )


def get_event(db: Session, event_id: int, owner_user_id: int) -> CareEvent:
    """Raises EventNotFoundError for a missing id or another owner's event."""
    event = (
        db.query(CareEvent)
        .filter(CareEvent.id == event_id, CareEvent.owner_user_id == owner_user_id)
        .populate_existing()
        .first()
    )
    if event is None:
        raise EventNotFoundError(event_id)
    return event


def list_pending(
    db: Session,
    owner_user_id: int,
    subject_id=ANY_SUBJECT,
    event_type: Optional[EventType] = None,
) -> list[CareEvent]:
    """Open events of an owner, earliest first."""
    q = _owned(db, owner_user_id, subject_id).filter(CareEvent.status.in_(OPEN_STATUSES))
    if event_type is not None:
        q = q.filter(CareEvent.event_type == event_type)
    return q.order_by(CareEvent.scheduled_time, CareEvent.id).populate_existing().all()


def list_pending_older_than(
    db: Session,
    instant: datetime,
    event_type: Optional[EventType] = None,
) -> list[CareEvent]:
    """Open events of every owner scheduled strictly before `instant`."""
    q = db.query(CareEvent).filter(
        CareEvent.status.in_(OPEN_STATUSES),
        CareEvent.scheduled_time < instant,
    )
    if event_type is not None:
        q = q.filter(CareEvent.event_type == event_type)
    return q.order_by(CareEvent.scheduled_time, CareEvent.id).all()


def natural_keys(
    db: Session,
    owner_user_id: int,
    subject_id: Optional[int],
    event_type: EventType,
    statuses: Iterable[EventStatus],
    since: Optional[datetime] = None,
    prefix: Optional[str] = None,
) -> set[str]:
    """Natural keys of the subject's events of one type in the given statuses."""
    q = (
        db.query(CareEvent.natural_key)
        .filter(
            CareEvent.owner_user_id == owner_user_id,
            CareEvent.subject_key == subject_key_for(subject_id),
            CareEvent.event_type == event_type,
            CareEvent.status.in_(tuple(statuses)),
        )
    )
    if since is not None:
        q = q.filter(CareEvent.scheduled_time >= since)
    if prefix is not None:
        q = q.filter(CareEvent.natural_key.startswith(prefix, autoescape=True))
    return {row.natural_key for row in q.all()}


def open_natural_keys(db, owner_user_id, subject_id, event_type, **kwargs) -> set[str]:
    return natural_keys(db, owner_user_id, subject_id, event_type, OPEN_STATUSES, **kwargs)



# ---------------------------------------------------------------------------
# Inserts (flush only)
# ---------------------------------------------------------------------------

def _new_event(candidate: CandidateEvent) -> CareEvent:
    kind = getattr(candidate.event_data, "kind", None)
    if kind != candidate.event_type.value:
        raise ValueError(
            f"payload kind {kind!r} does not match event type {candidate.event_type.value!r}"
        )
    return CareEvent(
        owner_user_id=candidate.owner_user_id,
        subject_id=candidate.subject_id,
        subject_key=subject_key_for(candidate.subject_id),
        event_type=candidate.event_type,
        natural_key=candidate.natural_key,
        event_data=dump_event_data(candidate.event_data),
        scheduled_time=candidate.scheduled_time,
        status=EventStatus.pending,
        priority=candidate.priority,
    )


def upsert_if_absent(db: Session, candidate: CandidateEvent) -> UpsertResult:
    """
    Insert `candidate` as a pending event unless an open event with the same
    natural key exists; in that case return the existing one, unchanged.
    """
    event = _new_event(candidate)
    savepoint = db.begin_nested()
    try:
        db.add(event)
        db.flush()
        savepoint.commit()
    except IntegrityError:
        savepoint.rollback()
        existing = _find_open(
            db,
            candidate.owner_user_id,
            candidate.subject_id,
            candidate.event_type,
            candidate.natural_key,
        )
        if existing is None:
            # The open row was finalized between our insert and the lookup.
            raise DuplicateNaturalKeyError(candidate.event_type.value, candidate.natural_key)
        return UpsertResult(created=False, event=existing)
    return UpsertResult(created=True, event=event)


def insert_event(db: Session, candidate: CandidateEvent) -> CareEvent:
    """Strict insert: an open duplicate raises DuplicateNaturalKeyError."""
    result = upsert_if_absent(db, candidate)
    if not result.created:
        raise DuplicateNaturalKeyError(candidate.event_type.value, candidate.natural_key)
    return result.event


# ---------------------------------------------------------------------------
# Transitions (commit)
# ---------------------------------------------------------------------------

def _transition(
    db: Session,
    event_id: int,
    owner_user_id: int,
    from_statuses: tuple,
    values: dict,
) -> int:
    return (
        db.query(CareEvent)
        .filter(
            CareEvent.id == event_id,
            CareEvent.owner_user_id == owner_user_id,
            CareEvent.status.in_(from_statuses),
        )
        .update(values, synchronize_session=False)
    )


def activate_event(db: Session, event_id: int, owner_user_id: int) -> CareEvent:
    """pending → active. Activating an already active event is a no-op."""
    updated = _transition(
        db, event_id, owner_user_id,
        (EventStatus.pending,),
        {CareEvent.status: EventStatus.active},
    )
    db.commit()
    event = get_event(db, event_id, owner_user_id)
    if updated == 0 and event.status != EventStatus.active:
        raise EventAlreadyFinalizedError(event_id, event.status.value)
    return event


def cancel_event(
    db: Session,
    event_id: int,
    owner_user_id: int,
    now: Optional[datetime] = None,
) -> CareEvent:
    """Dismiss an open event (→ cancelled)."""
    now = now or utcnow()
    updated = _transition(
        db, event_id, owner_user_id,
        OPEN_STATUSES,
        {CareEvent.status: EventStatus.cancelled, CareEvent.resolved_at: now},
    )
    db.commit()
    event = get_event(db, event_id, owner_user_id)
    if updated == 0:
        raise EventAlreadyFinalizedError(event_id, event.status.value)
    return event


def mark_missed(db: Session, now: Optional[datetime] = None) -> dict[str, int]:
    """
    Time sweep: open events whose scheduled_time + grace(event_type) lies
    before `now` become missed. Returns the count per event type.
    """
    now = now or utcnow()
    counts: dict[str, int] = {}
    for event_type, grace in MISSED_GRACE.items():
        counts[event_type.value] = (
            db.query(CareEvent)
            .filter(
                CareEvent.event_type == event_type,
                CareEvent.status.in_(OPEN_STATUSES),
                CareEvent.scheduled_time < now - grace,
            )
            .update(
                {CareEvent.status: EventStatus.missed, CareEvent.resolved_at: now},
                synchronize_session=False,
            )
        )
    db.commit()
    return counts


# ---------------------------------------------------------------------------
# Custom events
# ---------------------------------------------------------------------------

def create_custom_event(
    db: Session,
    owner_user_id: int,
    title: str,
    scheduled_time: datetime,
    subject_id: Optional[int] = None,
    note: Optional[str] = None,
    priority: Priority = Priority.normal,
    client_key: Optional[str] = None,
) -> CareEvent:
    """
    Caller-defined reminder. `client_key` makes the call idempotent while the
    event is open; without one every call creates a new event.
    """
    candidate = CandidateEvent(
        owner_user_id=owner_user_id,
        subject_id=subject_id,
        event_type=EventType.custom,
        natural_key=f"custom:{client_key or uuid.uuid4().hex}",
        event_data=CustomEventData(title=title, note=note),
        scheduled_time=scheduled_time,
        priority=priority,
    )
    event = insert_event(db, candidate)
    db.commit()
    db.refresh(event)
    return event
