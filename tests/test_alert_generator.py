"""
Tests for the public-health alert generator and the feed-cache upsert.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from careloop.models.care_event import CareEvent, EventStatus, EventType, Priority
from careloop.models.dependent import Dependent
from careloop.models.health_alert import AlertSeverity
from careloop.services import alert_generator, orchestrator
from careloop.services.event_store import upsert_if_absent

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _alert(db, source_alert_id="kdca-1", **kwargs):
    alert, _ = alert_generator.upsert_alert(
        db,
        source_alert_id=source_alert_id,
        title=kwargs.pop("title", "Influenza advisory"),
        **kwargs,
    )
    return alert


class TestAgeGroups:
    @pytest.mark.parametrize("months, group", [
        (0, "infant"),
        (11, "infant"),
        (12, "child"),
        (155, "child"),
        (156, "adult"),
        (779, "adult"),
        (780, "senior"),
    ])
    def test_boundaries(self, months, group):
        assert alert_generator.age_group_for(months) == group


class TestGenerate:
    @pytest.mark.parametrize("severity, priority", [
        (AlertSeverity.critical, Priority.urgent),
        (AlertSeverity.warning, Priority.high),
        (AlertSeverity.info, Priority.normal),
    ])
    def test_severity_maps_to_priority(self, db, owner_id, severity, priority):
        _alert(db, severity=severity)
        [c] = alert_generator.generate(db, owner_id, None, NOW)
        assert c.event_type == EventType.public_health_alert
        assert c.natural_key == "alert:kdca-1"
        assert c.priority == priority
        assert c.event_data.severity == severity.value

    def test_expired_and_inactive_are_skipped(self, db, owner_id):
        _alert(db, "expired", expires_at=NOW - timedelta(minutes=1))
        _alert(db, "inactive", is_active=False)
        _alert(db, "future", published_at=NOW + timedelta(hours=1))
        _alert(db, "live", expires_at=NOW + timedelta(days=3))
        keys = [c.natural_key for c in alert_generator.generate(db, owner_id, None, NOW)]
        assert keys == ["alert:live"]

    def test_target_age_group_filters_known_ages(self, db, owner_id):
        baby = Dependent(owner_user_id=owner_id, name="Baby", birth_date=date(2025, 12, 1))
        db.add(baby)
        db.commit()
        _alert(db, "rsv", target_age_group="infant")
        _alert(db, "shingles", target_age_group="senior")
        keys = [c.natural_key for c in alert_generator.generate(db, owner_id, baby.id, NOW)]
        assert keys == ["alert:rsv"]

    def test_unknown_age_receives_targeted_alerts(self, db, owner_id):
        _alert(db, "rsv", target_age_group="infant")
        assert len(alert_generator.generate(db, owner_id, None, NOW)) == 1

    @pytest.mark.parametrize("status", list(EventStatus))
    def test_alert_does_not_multiply(self, db, owner_id, status):
        _alert(db)
        [c] = alert_generator.generate(db, owner_id, None, NOW)
        event = upsert_if_absent(db, c).event
        event.status = status
        db.commit()
        assert alert_generator.generate(db, owner_id, None, NOW) == []
        assert alert_generator.generate(db, owner_id, None, NOW + timedelta(days=2)) == []

    def test_swept_alert_is_not_reissued(self, db, owner_id):
        _alert(db)
        for day in range(5):
            now = NOW + timedelta(days=8 * day)
            orchestrator.run_generation(
                db, owner_id, [], now=now,
                generators={"public_health": alert_generator.generate},
            )
            orchestrator.run_missed_sweep(db, now + timedelta(days=8))
        rows = db.query(CareEvent).filter(CareEvent.owner_user_id == owner_id).all()
        assert [e.status for e in rows] == [EventStatus.missed]

    def test_no_alerts(self, db, owner_id):
        assert alert_generator.generate(db, owner_id, None, NOW) == []


class TestUpsertAlert:
    def test_insert_then_update(self, db):
        first, created = alert_generator.upsert_alert(db, "kdca-9", "Heat wave", AlertSeverity.warning)
        second, created_again = alert_generator.upsert_alert(
            db, "kdca-9", "Heat wave (extended)", AlertSeverity.critical,
        )
        assert created is True
        assert created_again is False
        assert second.id == first.id
        assert second.title == "Heat wave (extended)"
        assert second.severity == AlertSeverity.critical
