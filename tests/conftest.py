"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
Every table is emptied after each test; the missed sweep and the batch
driver work across all owners, so tests must not see each other's rows.

SQLite note: a session that has read inside a transaction blocks writers
from other sessions until it commits or rolls back. Test sessions are built
with expire_on_commit=False so seeded objects stay readable after commit
without opening a new transaction.
"""
import os

SQLITE_URL = "sqlite:///./test_careloop.db"
os.environ.setdefault("DATABASE_URL", SQLITE_URL)

import itertools
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from careloop.core.config import settings
from careloop.db.base import Base, get_db, make_engine
from careloop import models  # noqa: F401
from careloop.main import app
from careloop.models.care_event import CareEvent, EventStatus, EventType, Priority
from careloop.schemas.event_data import (
    CheckupEventData,
    CustomEventData,
    FeedingEventData,
    LifecycleMilestoneEventData,
    MedicationEventData,
    PublicHealthAlertEventData,
    VaccinationEventData,
)
from careloop.services.event_store import CandidateEvent, upsert_if_absent

engine = make_engine(SQLITE_URL)
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
)

# Fixed reference instant for deterministic schedules
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

_owner_ids = itertools.count(1000)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(autouse=True)
def utc_local_zone(monkeypatch):
    monkeypatch.setattr(settings, "LOCAL_TIMEZONE", "UTC")


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def owner_id() -> int:
    """A fresh owner id per test."""
    return next(_owner_ids)


# ---------------------------------------------------------------------------
# Event factories
# ---------------------------------------------------------------------------

def _payload(event_type: EventType, key: str):
    if event_type == EventType.medication:
        return MedicationEventData(prescription_id=1, medication_name=key, reminder_time="08:00")
    if event_type == EventType.feeding:
        return FeedingEventData(
            feeding_schedule_id=1, interval_hours=3.0, next_due=NOW,
            overdue_minutes=0, intensity=40,
        )
    if event_type == EventType.checkup:
        return CheckupEventData(
            schedule_item_id=1, checkup_name=key, age_months=6, schedule_priority="recommended",
        )
    if event_type == EventType.vaccination:
        return VaccinationEventData(
            schedule_item_id=1, vaccine_name=key, dose_number=1, total_doses=1,
            age_months=2, schedule_priority="required",
        )
    if event_type == EventType.lifecycle_milestone:
        return LifecycleMilestoneEventData(
            schedule_item_id=1, milestone_name=key, age_months=12, schedule_priority="optional",
        )
    if event_type == EventType.public_health_alert:
        return PublicHealthAlertEventData(source_alert_id=key, title=key, severity="info")
    return CustomEventData(title=key)


@pytest.fixture()
def make_candidate():
    def _make(
        owner_user_id: int,
        key: str = "k1",
        event_type: EventType = EventType.custom,
        subject_id=None,
        scheduled_time: datetime = NOW,
        priority: Priority = Priority.normal,
    ) -> CandidateEvent:
        return CandidateEvent(
            owner_user_id=owner_user_id,
            subject_id=subject_id,
            event_type=event_type,
            natural_key=f"{event_type.value}:{key}",
            event_data=_payload(event_type, key),
            scheduled_time=scheduled_time,
            priority=priority,
        )
    return _make


@pytest.fixture()
def add_event(db, make_candidate):
    """
    Persist one event and commit. A terminal `status` is applied after the
    insert, with `resolved_at` as the instant of the transition.
    """
    def _add(
        owner_user_id: int,
        key: str = "k1",
        event_type: EventType = EventType.custom,
        status: EventStatus = EventStatus.pending,
        resolved_at: datetime = None,
        **kwargs,
    ) -> CareEvent:
        event = upsert_if_absent(db, make_candidate(owner_user_id, key, event_type, **kwargs)).event
        if status != EventStatus.pending:
            event.status = status
            if status in (EventStatus.completed, EventStatus.missed, EventStatus.cancelled):
                event.resolved_at = resolved_at or NOW
            if status == EventStatus.completed:
                event.completed_at = event.resolved_at
        db.commit()
        return event
    return _add
