"""
Public-health alert generator.

Surfaces active, unexpired alerts from the feed cache to every subject whose
age group the alert targets (all subjects when the alert has no target or
the subject's age is unknown). Key: alert:{source_alert_id}. A key with an
event in any status, missed included, is never issued again, so an alert
does not multiply across runs.

`upsert_alert` is the write used by the external feed poller.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from careloop.db.types import utcnow
from careloop.models.care_event import EventStatus, EventType, Priority
from careloop.models.health_alert import AlertSeverity, PublicHealthAlert
from careloop.schemas.event_data import PublicHealthAlertEventData
from careloop.services.event_store import CandidateEvent, natural_keys
from careloop.services.subjects import get_subject_profile
from careloop.services.timeutil import age_in_months, local_date

PRIORITY_FOR_SEVERITY: dict[AlertSeverity, Priority] = {
    AlertSeverity.critical: Priority.urgent,
    AlertSeverity.warning: Priority.high,
    AlertSeverity.info: Priority.normal,
}

# Upper bounds in months (exclusive); anything older is "senior"
_AGE_GROUPS = (
    ("infant", 12),
    ("child", 13 * 12),
    ("adult", 65 * 12),
)


def age_group_for(age_months: int) -> str:
    for name, upper in _AGE_GROUPS:
        if age_months < upper:
            return name
    return "senior"


def natural_key(alert: PublicHealthAlert) -> str:
    return f"alert:{alert.source_alert_id}"


def active_alerts(db: Session, now: datetime) -> list[PublicHealthAlert]:
    return (
        db.query(PublicHealthAlert)
        .filter(
            PublicHealthAlert.is_active.is_(True),
            or_(PublicHealthAlert.expires_at.is_(None), PublicHealthAlert.expires_at > now),
            or_(PublicHealthAlert.published_at.is_(None), PublicHealthAlert.published_at <= now),
        )
        .order_by(PublicHealthAlert.id)
        .all()
    )


def generate(
    db: Session,
    owner_user_id: int,
    subject_id: Optional[int],
    now: Optional[datetime] = None,
) -> list[CandidateEvent]:
    now = now or utcnow()
    alerts = active_alerts(db, now)
    if not alerts:
        return []

    profile = get_subject_profile(db, owner_user_id, subject_id)
    age_group = None
    if profile is not None and profile.birth_date is not None:
        age_group = age_group_for(age_in_months(profile.birth_date, local_date(now)))

    issued = natural_keys(
        db, owner_user_id, subject_id, EventType.public_health_alert,
        statuses=tuple(EventStatus),
    )

    candidates = []
    for alert in alerts:
        if alert.target_age_group and age_group and alert.target_age_group != age_group:
            continue
        key = natural_key(alert)
        if key in issued:
            continue
        candidates.append(CandidateEvent(
            owner_user_id=owner_user_id,
            subject_id=subject_id,
            event_type=EventType.public_health_alert,
            natural_key=key,
            event_data=PublicHealthAlertEventData(
                source_alert_id=alert.source_alert_id,
                title=alert.title,
                severity=alert.severity.value,
                alert_type=alert.alert_type,
                content=alert.content,
            ),
            scheduled_time=now,
            priority=PRIORITY_FOR_SEVERITY.get(alert.severity, Priority.normal),
        ))
    return candidates


# ---------------------------------------------------------------------------
# Feed cache writes
# ---------------------------------------------------------------------------

def upsert_alert(
    db: Session,
    source_alert_id: str,
    title: str,
    severity: AlertSeverity = AlertSeverity.info,
    content: Optional[str] = None,
    alert_type: Optional[str] = None,
    target_age_group: Optional[str] = None,
    published_at: Optional[datetime] = None,
    expires_at: Optional[datetime] = None,
    is_active: bool = True,
) -> tuple[PublicHealthAlert, bool]:
    """Insert or refresh one alert by source_alert_id. Returns (alert, created)."""
    alert = (
        db.query(PublicHealthAlert)
        .filter(PublicHealthAlert.source_alert_id == source_alert_id)
        .first()
    )
    created = alert is None
    if created:
        alert = PublicHealthAlert(source_alert_id=source_alert_id)
        db.add(alert)
    alert.title = title
    alert.severity = severity
    alert.content = content
    alert.alert_type = alert_type
    alert.target_age_group = target_age_group
    alert.published_at = published_at
    alert.expires_at = expires_at
    alert.is_active = is_active
    alert.fetched_at = utcnow()
    db.commit()
    db.refresh(alert)
    return alert, created
