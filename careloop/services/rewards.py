"""
Reward arithmetic and the cumulative account update.

Defaults
--------
  points     = floor(BASE_POINTS[event_type] * PRIORITY_MULTIPLIER[priority])
  experience = points * EXPERIENCE_PER_POINT

Levels
------
Level n requires LEVEL_BASE_EXPERIENCE * n * (n - 1) / 2 cumulative
experience (level 1 at 0, level 2 at 1000, level 3 at 3000, ...).
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from careloop.core.config import settings
from careloop.models.care_account import CareAccount
from careloop.models.care_event import EventType, Priority
from careloop.models.reward_ledger import RewardLedgerEntry

BASE_POINTS: dict[EventType, int] = {
    EventType.medication: 50,
    EventType.feeding: 30,
    EventType.checkup: 100,
    EventType.vaccination: 80,
    EventType.public_health_alert: 20,
    EventType.lifecycle_milestone: 60,
    EventType.custom: 40,
}

PRIORITY_MULTIPLIER: dict[Priority, float] = {
    Priority.low: 0.5,
    Priority.normal: 1.0,
    Priority.high: 1.5,
    Priority.urgent: 2.0,
}

EXPERIENCE_PER_POINT = 10


@dataclass
class RewardOutcome:
    total_points: int
    total_experience: int
    level: int
    leveled_up: bool


def default_points(event_type: EventType, priority: Priority) -> int:
    return math.floor(BASE_POINTS[event_type] * PRIORITY_MULTIPLIER[priority])


def default_experience(event_type: EventType, priority: Priority) -> int:
    return default_points(event_type, priority) * EXPERIENCE_PER_POINT


def experience_for_level(level: int, base: Optional[int] = None) -> int:
    base = settings.LEVEL_BASE_EXPERIENCE if base is None else base
    return base * level * (level - 1) // 2


def level_for_experience(experience: int, base: Optional[int] = None) -> int:
    level = 1
    while experience >= experience_for_level(level + 1, base):
        level += 1
    return level


def _ensure_account(db: Session, owner_user_id: int) -> None:
    if db.get(CareAccount, owner_user_id) is not None:
        return
    savepoint = db.begin_nested()
    try:
        db.add(CareAccount(owner_user_id=owner_user_id))
        db.flush()
        savepoint.commit()
    except IntegrityError:
        # Created concurrently
        savepoint.rollback()


def award(
    db: Session,
    owner_user_id: int,
    event_id: int,
    points: int,
    experience: int,
    reason: str,
) -> RewardOutcome:
    """
    Append the ledger row and increment the owner's totals. Flush only.

    The ledger's unique event_id makes a second award for the same event
    raise IntegrityError; the caller rolls back.
    """
    db.add(RewardLedgerEntry(
        owner_user_id=owner_user_id,
        event_id=event_id,
        points=points,
        experience=experience,
        reason=reason,
    ))
    db.flush()

    _ensure_account(db, owner_user_id)
    db.query(CareAccount).filter(CareAccount.owner_user_id == owner_user_id).update(
        {
            CareAccount.total_points: CareAccount.total_points + points,
            CareAccount.total_experience: CareAccount.total_experience + experience,
        },
        synchronize_session=False,
    )

    account = db.get(CareAccount, owner_user_id, populate_existing=True)
    new_level = level_for_experience(account.total_experience)
    leveled_up = new_level > account.level
    if leveled_up:
        db.query(CareAccount).filter(
            CareAccount.owner_user_id == owner_user_id,
            CareAccount.level < new_level,
        ).update({CareAccount.level: new_level}, synchronize_session=False)

    return RewardOutcome(
        total_points=account.total_points,
        total_experience=account.total_experience,
        level=max(new_level, account.level),
        leveled_up=leveled_up,
    )
