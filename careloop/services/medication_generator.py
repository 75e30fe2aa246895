"""
Medication generator — one candidate per upcoming reminder occurrence.

For every enabled prescription of the subject, each daily "HH:MM" reminder
time (local wall clock) is expanded over [now, now + lookahead]. Occurrence
keys are instant-specific:

    prescription:{prescription_id}:{occurrence_utc_iso}

so any existing event for a key (whatever its status) means the occurrence
was already issued.
"""
from __future__ import annotations

import json
import re
from datetime import datetime, time, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from careloop.core.config import settings
from careloop.core.errors import SourceValidationError
from careloop.db.types import utcnow
from careloop.models.care_event import EventStatus, EventType, Priority
from careloop.models.prescription import Prescription
from careloop.schemas.event_data import MedicationEventData
from careloop.services.event_store import CandidateEvent, natural_keys
from careloop.services.timeutil import local_date, local_instant

_HHMM = re.compile(r"(\d{1,2}):(\d{2})")

_TIME_SENSITIVE_FREQUENCIES = frozenset({
    "every_4_hours",
    "every_6_hours",
    "every_8_hours",
    "every_12_hours",
})
_MANY_DAILY_TIMES = 3


def parse_reminder_times(prescription: Prescription) -> list[time]:
    """Decode the JSON list of "HH:MM" strings. Malformed input raises."""
    raw = prescription.reminder_times
    if not raw:
        return []
    try:
        values = json.loads(raw)
    except ValueError:
        raise SourceValidationError("prescription", prescription.id, "reminder_times is not valid JSON")
    if not isinstance(values, list):
        raise SourceValidationError("prescription", prescription.id, "reminder_times must be a list")

    times = set()
    for value in values:
        m = _HHMM.fullmatch(str(value).strip())
        if not m:
            raise SourceValidationError(
                "prescription", prescription.id, f"bad reminder time {value!r}"
            )
        hour, minute = int(m.group(1)), int(m.group(2))
        if hour > 23 or minute > 59:
            raise SourceValidationError(
                "prescription", prescription.id, f"bad reminder time {value!r}"
            )
        times.add(time(hour, minute))
    return sorted(times)


def priority_for(prescription: Prescription, times: list[time]) -> Priority:
    if (prescription.frequency or "") in _TIME_SENSITIVE_FREQUENCIES:
        return Priority.high
    if len(times) >= _MANY_DAILY_TIMES:
        return Priority.high
    return Priority.normal


def occurrences(
    prescription: Prescription,
    times: list[time],
    start: datetime,
    end: datetime,
) -> list[tuple[time, datetime]]:
    """(local time, UTC instant) pairs in [start, end] within the prescription's dates."""
    result = []
    day = local_date(start)
    last_day = local_date(end)
    while day <= last_day:
        in_course = (
            (prescription.start_date is None or day >= prescription.start_date)
            and (prescription.end_date is None or day <= prescription.end_date)
        )
        if in_course:
            for at in times:
                instant = local_instant(day, at)
                if start <= instant <= end:
                    result.append((at, instant))
        day += timedelta(days=1)
    return result


def natural_key(prescription_id: int, occurrence: datetime) -> str:
    return f"prescription:{prescription_id}:{occurrence.isoformat()}"


def generate(
    db: Session,
    owner_user_id: int,
    subject_id: Optional[int],
    now: Optional[datetime] = None,
) -> list[CandidateEvent]:
    now = now or utcnow()
    horizon = now + timedelta(hours=settings.MEDICATION_LOOKAHEAD_HOURS)

    q = db.query(Prescription).filter(
        Prescription.owner_user_id == owner_user_id,
        Prescription.reminder_enabled.is_(True),
    )
    if subject_id is None:
        q = q.filter(Prescription.subject_id.is_(None))
    else:
        q = q.filter(Prescription.subject_id == subject_id)
    prescriptions = q.order_by(Prescription.id).all()
    if not prescriptions:
        return []

    issued = natural_keys(
        db, owner_user_id, subject_id, EventType.medication,
        statuses=tuple(EventStatus),
        since=now,
    )

    candidates = []
    for prescription in prescriptions:
        times = parse_reminder_times(prescription)
        if not times:
            continue
        priority = priority_for(prescription, times)
        for at, instant in occurrences(prescription, times, now, horizon):
            key = natural_key(prescription.id, instant)
            if key in issued:
                continue
            candidates.append(CandidateEvent(
                owner_user_id=owner_user_id,
                subject_id=subject_id,
                event_type=EventType.medication,
                natural_key=key,
                event_data=MedicationEventData(
                    prescription_id=prescription.id,
                    medication_name=prescription.medication_name,
                    dosage=prescription.dosage or "",
                    frequency=prescription.frequency or "",
                    reminder_time=at.strftime("%H:%M"),
                ),
                scheduled_time=instant,
                priority=priority,
            ))
    return candidates
