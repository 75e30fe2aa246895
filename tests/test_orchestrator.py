"""
Tests for the batch driver: per-subject × per-generator isolation,
idempotent reruns, subject enumeration and the sweep / adjustment passes.
"""
from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone

from careloop.core.errors import SourceValidationError
from careloop.models.care_account import CareAccount
from careloop.models.care_event import CareEvent, EventStatus, EventType, Priority
from careloop.models.dependent import Dependent
from careloop.models.prescription import Prescription
from careloop.services import orchestrator
from careloop.services.event_store import get_event, list_pending

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _prescription(db, owner_id, subject_id=None):
    p = Prescription(
        owner_user_id=owner_id,
        subject_id=subject_id,
        medication_name="Vitamin D",
        frequency="daily",
        reminder_times=json.dumps(["20:00"]),
    )
    db.add(p)
    db.commit()
    return p


class TestRunGeneration:
    def test_failing_generator_does_not_stop_siblings(self, db, owner_id, make_candidate):
        def broken(db, owner_user_id, subject_id, now):
            raise SourceValidationError("prescription", 7, "bad reminder time")

        def healthy(db, owner_user_id, subject_id, now):
            return [make_candidate(owner_user_id, "ok", subject_id=subject_id)]

        report = orchestrator.run_generation(
            db, owner_id, [], now=NOW,
            generators={"broken": broken, "healthy": healthy},
        )

        assert report.per_domain_created == {"broken": 0, "healthy": 1}
        assert report.total_errors == 1
        error = report.errors[0]
        assert (error.domain, error.subject_id, error.code) == ("broken", None, "INVALID_SOURCE_STATE")
        assert "bad reminder time" in error.message
        assert len(list_pending(db, owner_id)) == 1

    def test_unexpected_exception_is_recorded(self, db, owner_id):
        def crashing(db, owner_user_id, subject_id, now):
            raise RuntimeError("boom")

        report = orchestrator.run_generation(db, owner_id, [], now=NOW, generators={"x": crashing})
        assert report.errors[0].code == "RuntimeError"
        assert report.errors[0].message == "boom"

    def test_partial_output_of_failed_generator_is_rolled_back(self, db, owner_id, make_candidate):
        def half_done(db, owner_user_id, subject_id, now):
            yield make_candidate(owner_user_id, "first")
            raise SourceValidationError("feeding_schedule", 1, "interval_hours must be positive")

        report = orchestrator.run_generation(db, owner_id, [], now=NOW, generators={"half": half_done})
        assert report.per_domain_created == {"half": 0}
        assert list_pending(db, owner_id) == []

    def test_rerun_creates_nothing(self, db, owner_id):
        _prescription(db, owner_id)
        first = orchestrator.run_generation(db, owner_id, now=NOW)
        second = orchestrator.run_generation(db, owner_id, now=NOW + timedelta(minutes=5))

        assert first.per_domain_created["medication"] == 2  # tonight and tomorrow 20:00
        assert second.total_created == 0
        assert second.per_domain_skipped["medication"] == 0
        assert len(list_pending(db, owner_id, event_type=EventType.medication)) == 2

    def test_subjects_default_to_dependents(self, db, owner_id):
        kids = [Dependent(owner_user_id=owner_id, name=n) for n in ("Mina", "Joon")]
        db.add_all(kids)
        db.add(Dependent(owner_user_id=owner_id + 1, name="Not mine"))
        db.commit()

        report = orchestrator.run_generation(db, owner_id, now=NOW, generators={})
        assert report.subjects == [None, kids[0].id, kids[1].id]

    def test_explicit_subjects_are_deduplicated(self, db, owner_id):
        report = orchestrator.run_generation(db, owner_id, [4, 4, 9], now=NOW, generators={})
        assert report.subjects == [None, 4, 9]

    def test_generates_for_each_subject(self, db, owner_id):
        child = Dependent(owner_user_id=owner_id, name="Mina", birth_date=date(2025, 1, 1))
        db.add(child)
        db.commit()
        _prescription(db, owner_id)
        _prescription(db, owner_id, subject_id=child.id)

        report = orchestrator.run_generation(db, owner_id, now=NOW)
        assert report.per_domain_created["medication"] == 4
        assert len(list_pending(db, owner_id, child.id, EventType.medication)) == 2
        assert len(list_pending(db, owner_id, None, EventType.medication)) == 2


class TestRunGenerationForAll:
    def test_every_account_is_processed(self, db, owner_id):
        other = owner_id + 1
        db.add_all([CareAccount(owner_user_id=owner_id), CareAccount(owner_user_id=other)])
        db.commit()
        _prescription(db, owner_id)
        _prescription(db, other)

        batch = orchestrator.run_generation_for_all(db, now=NOW)

        assert batch.owners_processed == 2
        assert batch.owners_failed == 0
        assert batch.per_domain_created["medication"] == 4
        assert len(list_pending(db, other)) == 2

    def test_errors_are_summed(self, db, owner_id):
        db.add(CareAccount(owner_user_id=owner_id))
        db.add(Prescription(
            owner_user_id=owner_id, medication_name="Broken",
            reminder_times='["25:99"]',
        ))
        db.commit()

        batch = orchestrator.run_generation_for_all(db, now=NOW)
        assert batch.owners_processed == 1
        assert batch.total_errors == 1


class TestRunMissedSweep:
    def test_overdue_events_become_missed(self, db, owner_id, add_event):
        pill = add_event(owner_id, "pill", EventType.medication, scheduled_time=NOW - timedelta(hours=3))
        fresh = add_event(owner_id, "fresh", EventType.medication, scheduled_time=NOW - timedelta(minutes=30))
        note = add_event(owner_id, "note", EventType.custom, scheduled_time=NOW - timedelta(days=2))
        done = add_event(
            owner_id, "done", EventType.medication,
            status=EventStatus.completed, scheduled_time=NOW - timedelta(days=1),
        )

        report = orchestrator.run_missed_sweep(db, NOW)

        assert report.per_type_missed["medication"] == 1
        assert report.per_type_missed["custom"] == 1
        assert report.total_missed == 2
        assert get_event(db, pill.id, owner_id).status == EventStatus.missed
        assert get_event(db, pill.id, owner_id).resolved_at == NOW
        assert get_event(db, fresh.id, owner_id).status == EventStatus.pending
        assert get_event(db, note.id, owner_id).status == EventStatus.missed
        assert get_event(db, done.id, owner_id).status == EventStatus.completed

    def test_second_sweep_is_a_no_op(self, db, owner_id, add_event):
        add_event(owner_id, "pill", EventType.medication, scheduled_time=NOW - timedelta(hours=3))
        orchestrator.run_missed_sweep(db, NOW)
        assert orchestrator.run_missed_sweep(db, NOW + timedelta(minutes=1)).total_missed == 0

    def test_sweep_marks_generated_events(self, db, owner_id):
        _prescription(db, owner_id)
        orchestrator.run_generation(db, owner_id, now=NOW)
        orchestrator.run_missed_sweep(db, NOW + timedelta(days=3))
        assert list_pending(db, owner_id) == []
        assert db.query(CareEvent).filter(
            CareEvent.owner_user_id == owner_id, CareEvent.status == EventStatus.missed,
        ).count() == 2


class TestRunPriorityAdjustment:
    def test_adjusts_owner_and_dependents(self, db, owner_id, add_event):
        child = Dependent(owner_user_id=owner_id, name="Mina")
        db.add(child)
        db.commit()
        for subject in (None, child.id):
            for i in range(3):
                add_event(
                    owner_id, f"missed-{subject}-{i}", EventType.medication,
                    subject_id=subject, status=EventStatus.missed,
                    resolved_at=NOW - timedelta(days=1),
                )
            add_event(owner_id, f"open-{subject}", EventType.medication, subject_id=subject)

        report = orchestrator.run_priority_adjustment(db, owner_id, now=NOW)

        assert len(report.adjustments) == 2
        assert {a.new_priority for a in report.adjustments} == {Priority.high}
