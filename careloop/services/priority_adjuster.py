"""
Priority Adjuster — rewrites the priority of open events from recent behavior.

Behavior window
---------------
Events of the subject resolved (completed / missed / cancelled) within the
last BEHAVIOR_WINDOW_DAYS, grouped by category:

    medication, feeding, checkup, vaccination   same name as the event type
    lifecycle_milestone                          lifecycle
    public_health_alert                          environment   (pinned)
    custom                                       custom

Rules (per open event, at most one tier per pass)
-------------------------------------------------
  1. environment is never adjusted
  2. missed_count >= ESCALATE_MISSED_THRESHOLD
       → one tier up, capped at urgent
  3. otherwise completed_count >= DEESCALATE_COMPLETED_THRESHOLD and
     priority below high
       → one tier down, floored at low

An event that was adjusted before changes again only when new evidence (a
miss for rule 2, a completion for rule 3) was resolved after its
priority_adjusted_at.

Writes are conditional (still open, priority unchanged) so a concurrent
completion or another pass wins cleanly; the loser is skipped.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from careloop.core.config import settings
from careloop.core.errors import DependencyError
from careloop.db.types import utcnow
from careloop.models.care_event import (
    OPEN_STATUSES,
    PRIORITY_ORDER,
    TERMINAL_STATUSES,
    CareEvent,
    EventStatus,
    EventType,
    Priority,
    subject_key_for,
)
from careloop.models.priority_adjustment import PriorityAdjustmentLog
from careloop.services.event_store import list_pending

CATEGORY_FOR_EVENT_TYPE: dict[EventType, str] = {
    EventType.medication: "medication",
    EventType.feeding: "feeding",
    EventType.checkup: "checkup",
    EventType.vaccination: "vaccination",
    EventType.lifecycle_milestone: "lifecycle",
    EventType.public_health_alert: "environment",
    EventType.custom: "custom",
}

PINNED_CATEGORIES = frozenset({"environment"})


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class BehaviorStat:
    category: str
    missed_count: int = 0
    completed_count: int = 0
    dismissed_count: int = 0
    last_missed_at: Optional[datetime] = None
    last_completed_at: Optional[datetime] = None


@dataclass
class PriorityAdjustment:
    event_id: int
    category: str
    old_priority: Priority
    new_priority: Priority
    reason: str


# ---------------------------------------------------------------------------
# Tier arithmetic
# ---------------------------------------------------------------------------

def escalate(priority: Priority) -> Priority:
    idx = PRIORITY_ORDER.index(priority)
    return PRIORITY_ORDER[min(idx + 1, len(PRIORITY_ORDER) - 1)]


def deescalate(priority: Priority) -> Priority:
    idx = PRIORITY_ORDER.index(priority)
    return PRIORITY_ORDER[max(idx - 1, 0)]


def _latest(current: Optional[datetime], candidate: Optional[datetime]) -> Optional[datetime]:
    if current is None or (candidate is not None and candidate > current):
        return candidate
    return current


# ---------------------------------------------------------------------------
# Behavior stats
# ---------------------------------------------------------------------------

def compute_behavior_stats(
    db: Session,
    owner_user_id: int,
    subject_id: Optional[int],
    now: Optional[datetime] = None,
    window_days: Optional[int] = None,
) -> dict[str, BehaviorStat]:
    now = now or utcnow()
    since = now - timedelta(days=window_days or settings.BEHAVIOR_WINDOW_DAYS)

    rows = (
        db.query(CareEvent.event_type, CareEvent.status, CareEvent.resolved_at)
        .filter(
            CareEvent.owner_user_id == owner_user_id,
            CareEvent.subject_key == subject_key_for(subject_id),
            CareEvent.status.in_(TERMINAL_STATUSES),
            CareEvent.resolved_at >= since,
            CareEvent.resolved_at <= now,
        )
        .all()
    )

    stats: dict[str, BehaviorStat] = {}
    for row in rows:
        category = CATEGORY_FOR_EVENT_TYPE[row.event_type]
        stat = stats.setdefault(category, BehaviorStat(category=category))
        if row.status == EventStatus.missed:
            stat.missed_count += 1
            stat.last_missed_at = _latest(stat.last_missed_at, row.resolved_at)
        elif row.status == EventStatus.completed:
            stat.completed_count += 1
            stat.last_completed_at = _latest(stat.last_completed_at, row.resolved_at)
        else:
            stat.dismissed_count += 1
    return stats


def decide(
    stat: Optional[BehaviorStat],
    priority: Priority,
    adjusted_at: Optional[datetime] = None,
) -> Optional[tuple[Priority, str]]:
    """New (priority, reason) for one open event, or None to leave it."""
    if stat is None or stat.category in PINNED_CATEGORIES:
        return None

    if stat.missed_count >= settings.ESCALATE_MISSED_THRESHOLD:
        if adjusted_at is not None and (
            stat.last_missed_at is None or stat.last_missed_at <= adjusted_at
        ):
            return None
        new = escalate(priority)
        if new == priority:
            return None
        return new, f"{stat.missed_count} missed {stat.category} events in window"

    if (
        stat.completed_count >= settings.DEESCALATE_COMPLETED_THRESHOLD
        and PRIORITY_ORDER.index(priority) < PRIORITY_ORDER.index(Priority.high)
    ):
        if adjusted_at is not None and (
            stat.last_completed_at is None or stat.last_completed_at <= adjusted_at
        ):
            return None
        new = deescalate(priority)
        if new == priority:
            return None
        return new, f"{stat.completed_count} completed {stat.category} events in window"

    return None


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def adjust_priorities(
    db: Session,
    owner_user_id: int,
    subject_id: Optional[int],
    now: Optional[datetime] = None,
) -> list[PriorityAdjustment]:
    """
    One adjustment pass over the subject's open events. Commits once.
    Database failures roll back the whole pass and raise DependencyError.
    """
    now = now or utcnow()
    adjustments: list[PriorityAdjustment] = []
    try:
        stats = compute_behavior_stats(db, owner_user_id, subject_id, now)
        if not stats:
            return adjustments

        for event in list_pending(db, owner_user_id, subject_id):
            category = CATEGORY_FOR_EVENT_TYPE[event.event_type]
            decision = decide(stats.get(category), event.priority, event.priority_adjusted_at)
            if decision is None:
                continue
            new_priority, reason = decision

            updated = (
                db.query(CareEvent)
                .filter(
                    CareEvent.id == event.id,
                    CareEvent.status.in_(OPEN_STATUSES),
                    CareEvent.priority == event.priority,
                )
                .update(
                    {CareEvent.priority: new_priority, CareEvent.priority_adjusted_at: now},
                    synchronize_session=False,
                )
            )
            if updated == 0:
                continue

            db.add(PriorityAdjustmentLog(
                event_id=event.id,
                owner_user_id=owner_user_id,
                category=category,
                old_priority=event.priority.value,
                new_priority=new_priority.value,
                reason=reason,
            ))
            adjustments.append(PriorityAdjustment(
                event_id=event.id,
                category=category,
                old_priority=event.priority,
                new_priority=new_priority,
                reason=reason,
            ))

        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise DependencyError("database", str(exc)) from exc
    return adjustments
