"""
Lifecycle generator — vaccinations, checkups and developmental milestones
that fall due by age.

A master schedule row is due for a subject when, with age in whole calendar
months on the local date of `now`:

    target_age_min_months <= age  and  (max is NULL or age <= max)

the gender requirement matches, and no lifecycle_records row exists for
(subject, item, dose). Key: lifecycle:{item_id}:{dose_number}. A key that
already has a pending, active, completed or cancelled event is not issued
again; a missed one may be.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from careloop.db.types import utcnow
from careloop.models.care_event import EventType, Priority, subject_key_for
from careloop.models.lifecycle_item import (
    LifecycleItemType,
    LifecycleScheduleItem,
    SchedulePriority,
)
from careloop.models.lifecycle_record import LifecycleRecord
from careloop.schemas.event_data import (
    CheckupEventData,
    LifecycleMilestoneEventData,
    VaccinationEventData,
)
from careloop.services.event_store import CandidateEvent, SETTLED_STATUSES, natural_keys
from careloop.services.subjects import get_subject_profile
from careloop.services.timeutil import age_in_months, local_date

EVENT_TYPE_FOR_ITEM: dict[LifecycleItemType, EventType] = {
    LifecycleItemType.vaccination: EventType.vaccination,
    LifecycleItemType.checkup: EventType.checkup,
    LifecycleItemType.milestone: EventType.lifecycle_milestone,
}

_ANY_GENDER = (None, "", "all")


def natural_key(item: LifecycleScheduleItem) -> str:
    return f"lifecycle:{item.id}:{item.dose_number}"


def is_due(item: LifecycleScheduleItem, age_months: int, gender: Optional[str]) -> bool:
    if age_months < item.target_age_min_months:
        return False
    if item.target_age_max_months is not None and age_months > item.target_age_max_months:
        return False
    if item.gender_requirement not in _ANY_GENDER and item.gender_requirement != gender:
        return False
    return True


def priority_for(item: LifecycleScheduleItem, age_months: int) -> Priority:
    if item.priority == SchedulePriority.required:
        if item.target_age_max_months is not None and age_months >= item.target_age_max_months:
            return Priority.urgent
        return Priority.high
    if item.priority == SchedulePriority.recommended:
        return Priority.normal
    return Priority.low


def _payload(item: LifecycleScheduleItem, age_months: int):
    if item.item_type == LifecycleItemType.vaccination:
        return VaccinationEventData(
            schedule_item_id=item.id,
            vaccine_name=item.name,
            vaccine_code=item.code,
            dose_number=item.dose_number,
            total_doses=item.total_doses,
            age_months=age_months,
            schedule_priority=item.priority.value,
        )
    if item.item_type == LifecycleItemType.checkup:
        return CheckupEventData(
            schedule_item_id=item.id,
            checkup_name=item.name,
            dose_number=item.dose_number,
            age_months=age_months,
            schedule_priority=item.priority.value,
        )
    return LifecycleMilestoneEventData(
        schedule_item_id=item.id,
        milestone_name=item.name,
        dose_number=item.dose_number,
        age_months=age_months,
        schedule_priority=item.priority.value,
    )


def _recorded_doses(db: Session, owner_user_id: int, subject_id: Optional[int]) -> set[tuple[int, int]]:
    rows = (
        db.query(LifecycleRecord.schedule_item_id, LifecycleRecord.dose_number)
        .filter(
            LifecycleRecord.owner_user_id == owner_user_id,
            LifecycleRecord.subject_key == subject_key_for(subject_id),
        )
        .all()
    )
    return {(r.schedule_item_id, r.dose_number) for r in rows}


def generate(
    db: Session,
    owner_user_id: int,
    subject_id: Optional[int],
    now: Optional[datetime] = None,
) -> list[CandidateEvent]:
    now = now or utcnow()
    profile = get_subject_profile(db, owner_user_id, subject_id)
    if profile is None or profile.birth_date is None:
        return []
    age_months = age_in_months(profile.birth_date, local_date(now))

    items = (
        db.query(LifecycleScheduleItem)
        .filter(LifecycleScheduleItem.is_active.is_(True))
        .order_by(LifecycleScheduleItem.target_age_min_months, LifecycleScheduleItem.id)
        .all()
    )
    recorded = _recorded_doses(db, owner_user_id, subject_id)
    settled: dict[EventType, set[str]] = {
        event_type: natural_keys(db, owner_user_id, subject_id, event_type, SETTLED_STATUSES)
        for event_type in EVENT_TYPE_FOR_ITEM.values()
    }

    candidates = []
    for item in items:
        if not is_due(item, age_months, profile.gender):
            continue
        if (item.id, item.dose_number) in recorded:
            continue
        event_type = EVENT_TYPE_FOR_ITEM[item.item_type]
        key = natural_key(item)
        if key in settled[event_type]:
            continue
        candidates.append(CandidateEvent(
            owner_user_id=owner_user_id,
            subject_id=subject_id,
            event_type=event_type,
            natural_key=key,
            event_data=_payload(item, age_months),
            scheduled_time=now,
            priority=priority_for(item, age_months),
        ))
    return candidates
