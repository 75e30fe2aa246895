"""
Integration tests for API endpoints using the SQLite test database.
"""
import json
from datetime import date, datetime, timedelta, timezone

import pytest

from careloop.models.dependent import Dependent
from careloop.models.prescription import Prescription

_WHEN = "2026-03-10T09:00:00+00:00"


@pytest.fixture()
def headers(owner_id):
    return {"X-Owner-Id": str(owner_id)}


def _custom(client, headers, title="Water the plants", **extra):
    r = client.post("/events/custom", json={"title": title, "scheduled_time": _WHEN, **extra}, headers=headers)
    assert r.status_code == 201
    return r.json()


class TestHealth:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"
        assert r.json()["db"] == "ok"


class TestCustomEvents:
    def test_create(self, client, headers, owner_id):
        body = _custom(client, headers, note="balcony", priority="high")
        assert body["id"] > 0
        assert body["owner_user_id"] == owner_id
        assert body["event_type"] == "custom"
        assert body["status"] == "pending"
        assert body["priority"] == "high"
        assert body["event_data"] == {"kind": "custom", "title": "Water the plants", "note": "balcony"}
        assert body["natural_key"].startswith("custom:")

    def test_title_is_trimmed(self, client, headers):
        assert _custom(client, headers, title="  Call grandma ")["event_data"]["title"] == "Call grandma"

    def test_without_client_key_every_call_creates(self, client, headers):
        a = _custom(client, headers)
        b = _custom(client, headers)
        assert a["id"] != b["id"]

    def test_client_key_reusable_after_close(self, client, headers):
        first = _custom(client, headers, client_key="weekly-call")
        client.post(f"/events/{first['id']}/complete", headers=headers)
        second = _custom(client, headers, client_key="weekly-call")
        assert second["natural_key"] == first["natural_key"] == "custom:weekly-call"


class TestListEvents:
    def test_lists_open_events_earliest_first(self, client, headers):
        late = client.post(
            "/events/custom",
            json={"title": "late", "scheduled_time": "2026-03-11T09:00:00+00:00"},
            headers=headers,
        ).json()
        early = _custom(client, headers, title="early")
        closed = _custom(client, headers, title="closed")
        client.post(f"/events/{closed['id']}/cancel", headers=headers)

        r = client.get("/events", headers=headers)
        assert r.status_code == 200
        body = r.json()
        assert body["total"] == 2
        assert [e["id"] for e in body["items"]] == [early["id"], late["id"]]

    def test_subject_filter(self, client, headers):
        mine = _custom(client, headers, title="me")
        kid = _custom(client, headers, title="kid", subject_id=7)

        owner_only = client.get("/events", params={"subject_id": 0}, headers=headers).json()
        assert [e["id"] for e in owner_only["items"]] == [mine["id"]]
        kid_only = client.get("/events", params={"subject_id": 7}, headers=headers).json()
        assert [e["id"] for e in kid_only["items"]] == [kid["id"]]
        assert client.get("/events", headers=headers).json()["total"] == 2

    def test_event_type_filter(self, client, headers):
        _custom(client, headers)
        r = client.get("/events", params={"event_type": "medication"}, headers=headers)
        assert r.json()["total"] == 0

    def test_other_owner_sees_nothing(self, client, headers, owner_id):
        _custom(client, headers)
        r = client.get("/events", headers={"X-Owner-Id": str(owner_id + 1)})
        assert r.json()["total"] == 0


class TestTransitions:
    def test_activate(self, client, headers):
        event = _custom(client, headers)
        r = client.post(f"/events/{event['id']}/activate", headers=headers)
        assert r.status_code == 200
        assert r.json()["status"] == "active"
        # idempotent
        assert client.post(f"/events/{event['id']}/activate", headers=headers).status_code == 200

    def test_complete(self, client, headers):
        event = _custom(client, headers)
        r = client.post(f"/events/{event['id']}/complete", headers=headers)
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["event_id"] == event["id"]
        assert (body["points_earned"], body["experience_earned"]) == (40, 400)
        assert (body["new_total_points"], body["new_total_experience"]) == (40, 400)
        assert body["level"] == 1
        assert body["leveled_up"] is False

    def test_complete_with_override(self, client, headers):
        event = _custom(client, headers)
        r = client.post(f"/events/{event['id']}/complete", json={"points": 5, "experience": 1000}, headers=headers)
        body = r.json()
        assert (body["points_earned"], body["experience_earned"]) == (5, 1000)
        assert body["leveled_up"] is True

    def test_double_complete_returns_409(self, client, headers):
        event = _custom(client, headers)
        client.post(f"/events/{event['id']}/complete", headers=headers)
        r = client.post(f"/events/{event['id']}/complete", headers=headers)
        assert r.status_code == 409
        assert r.json()["code"] == "EVENT_ALREADY_FINALIZED"

    def test_cancelled_event_cannot_complete(self, client, headers):
        event = _custom(client, headers)
        client.post(f"/events/{event['id']}/cancel", headers=headers)
        r = client.post(f"/events/{event['id']}/complete", headers=headers)
        assert r.status_code == 409

    def test_completed_event_cannot_activate(self, client, headers):
        event = _custom(client, headers)
        client.post(f"/events/{event['id']}/complete", headers=headers)
        r = client.post(f"/events/{event['id']}/activate", headers=headers)
        assert r.status_code == 409

    @pytest.mark.parametrize("action", ["activate", "complete", "cancel"])
    def test_foreign_owner_gets_404(self, client, headers, owner_id, action):
        event = _custom(client, headers)
        r = client.post(f"/events/{event['id']}/{action}", headers={"X-Owner-Id": str(owner_id + 1)})
        assert r.status_code == 404
        assert r.json()["code"] == "EVENT_NOT_FOUND"
        listed = client.get("/events", headers=headers).json()
        assert listed["items"][0]["status"] == "pending"


class TestFeeding:
    def test_put_then_replace(self, client, headers):
        r = client.put("/feeding/schedules", json={"subject_id": 3, "interval_hours": 3}, headers=headers)
        assert r.status_code == 200
        created = r.json()
        assert created["reminder_lead_minutes"] == 10
        assert created["last_feeding_time"] is None

        r = client.put(
            "/feeding/schedules",
            json={"subject_id": 3, "interval_hours": 2.5, "reminder_lead_minutes": 20, "subject_name": "Mina"},
            headers=headers,
        )
        replaced = r.json()
        assert replaced["id"] == created["id"]
        assert replaced["interval_hours"] == 2.5
        assert replaced["subject_name"] == "Mina"

    def test_feed(self, client, headers):
        schedule = client.put(
            "/feeding/schedules", json={"subject_id": 3, "interval_hours": 3}, headers=headers,
        ).json()
        r = client.post(
            f"/feeding/schedules/{schedule['id']}/feed",
            json={"fed_at": "2026-03-10T09:00:00+00:00"},
            headers=headers,
        )
        assert r.status_code == 200
        assert r.json()["last_feeding_time"].startswith("2026-03-10T09:00:00")

    def test_feed_foreign_schedule(self, client, headers, owner_id):
        schedule = client.put(
            "/feeding/schedules", json={"subject_id": 3, "interval_hours": 3}, headers=headers,
        ).json()
        r = client.post(f"/feeding/schedules/{schedule['id']}/feed", headers={"X-Owner-Id": str(owner_id + 1)})
        assert r.status_code == 404


class TestAlerts:
    def test_upsert(self, client):
        body = {"source_alert_id": "kdca-77", "title": "Measles outbreak", "severity": "warning"}
        first = client.put("/alerts", json=body)
        assert first.status_code == 200
        assert first.json()["created"] is True

        second = client.put("/alerts", json={**body, "severity": "critical"})
        assert second.json()["created"] is False
        assert second.json()["id"] == first.json()["id"]
        assert second.json()["severity"] == "critical"


class TestScheduling:
    def test_run_generates_alert_events(self, client, headers):
        client.put("/alerts", json={"source_alert_id": "kdca-1", "title": "Flu season", "severity": "critical"})

        r = client.post("/scheduling/run", headers=headers)
        assert r.status_code == 200
        report = r.json()
        assert report["subjects"] == [None]
        assert report["per_domain_created"]["public_health"] == 1
        assert report["total_created"] == 1
        assert report["total_errors"] == 0

        events = client.get("/events", headers=headers).json()["items"]
        assert [e["priority"] for e in events] == ["urgent"]
        assert events[0]["event_data"]["kind"] == "public_health_alert"

        again = client.post("/scheduling/run", headers=headers).json()
        assert again["total_created"] == 0

    def test_run_for_dependents_and_errors(self, client, headers, owner_id, db):
        child = Dependent(owner_user_id=owner_id, name="Mina", birth_date=date(2025, 6, 1))
        db.add(child)
        db.add(Prescription(
            owner_user_id=owner_id, subject_id=None, medication_name="Broken",
            reminder_times=json.dumps(["7pm"]),
        ))
        db.commit()
        child_id = child.id
        db.close()

        r = client.post("/scheduling/run", json={"subject_ids": [child_id]}, headers=headers)
        report = r.json()
        assert report["subjects"] == [None, child_id]
        assert report["total_errors"] == 1
        error = report["errors"][0]
        assert (error["domain"], error["subject_id"], error["code"]) == ("medication", None, "INVALID_SOURCE_STATE")

    def test_adjust_without_history(self, client, headers, owner_id):
        _custom(client, headers)
        r = client.post("/scheduling/adjust", headers=headers)
        assert r.status_code == 200
        assert r.json()["owner_user_id"] == owner_id
        assert r.json()["adjustments"] == []

    def test_sweep(self, client, headers):
        past = (datetime.now(timezone.utc) - timedelta(days=3)).isoformat()
        client.post("/events/custom", json={"title": "old", "scheduled_time": past}, headers=headers)
        _custom(client, headers, scheduled_time=(datetime.now(timezone.utc) + timedelta(days=1)).isoformat())

        r = client.post("/scheduling/sweep")
        assert r.status_code == 200
        body = r.json()
        assert body["per_type_missed"]["custom"] == 1
        assert body["total_missed"] == 1
        assert client.get("/events", headers=headers).json()["total"] == 1
