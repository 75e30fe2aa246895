"""
Batch driver: the entry points a scheduler (cron, worker, HTTP) calls.

run_generation
    subjects = owner (None) + given subject ids, or every dependent
    for each subject × generator: one savepoint; a failing generator is
    recorded in the report and its siblings continue
run_generation_for_all
    run_generation for every owner with a care account, isolated per owner
run_priority_adjustment
    adjust_priorities for the owner and each subject
run_missed_sweep
    mark_missed across all owners

This is the only module that logs; services raise.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from careloop.core.errors import CareLoopException
from careloop.db.types import utcnow
from careloop.services import (
    alert_generator,
    feeding_generator,
    lifecycle_generator,
    medication_generator,
)
from careloop.services.event_store import mark_missed, upsert_if_absent
from careloop.services.priority_adjuster import PriorityAdjustment, adjust_priorities
from careloop.services.subjects import list_dependent_ids, list_owner_ids

logger = logging.getLogger(__name__)

Generator = Callable[..., list]

GENERATORS: dict[str, Generator] = {
    "medication": medication_generator.generate,
    "feeding": feeding_generator.generate,
    "lifecycle": lifecycle_generator.generate,
    "public_health": alert_generator.generate,
}


# ---------------------------------------------------------------------------
# Report types
# ---------------------------------------------------------------------------

@dataclass
class GenerationError:
    domain: str
    subject_id: Optional[int]
    code: str
    message: str


@dataclass
class GenerationReport:
    owner_user_id: int
    subjects: list[Optional[int]] = field(default_factory=list)
    per_domain_created: dict[str, int] = field(default_factory=dict)
    per_domain_skipped: dict[str, int] = field(default_factory=dict)
    errors: list[GenerationError] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def total_created(self) -> int:
        return sum(self.per_domain_created.values())

    @property
    def total_errors(self) -> int:
        return len(self.errors)


@dataclass
class BatchGenerationReport:
    owners_processed: int = 0
    owners_failed: int = 0
    per_domain_created: dict[str, int] = field(default_factory=dict)
    total_errors: int = 0
    duration_ms: float = 0.0


@dataclass
class AdjustmentReport:
    owner_user_id: int
    adjustments: list[PriorityAdjustment] = field(default_factory=list)
    duration_ms: float = 0.0


@dataclass
class SweepReport:
    per_type_missed: dict[str, int] = field(default_factory=dict)
    duration_ms: float = 0.0

    @property
    def total_missed(self) -> int:
        return sum(self.per_type_missed.values())


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def _subjects(db: Session, owner_user_id: int, subject_ids: Optional[list[int]]) -> list[Optional[int]]:
    ids = list_dependent_ids(db, owner_user_id) if subject_ids is None else subject_ids
    subjects: list[Optional[int]] = [None]
    for subject_id in ids:
        if subject_id is not None and subject_id not in subjects:
            subjects.append(subject_id)
    return subjects


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

def run_generation(
    db: Session,
    owner_user_id: int,
    subject_ids: Optional[list[int]] = None,
    now: Optional[datetime] = None,
    generators: Optional[dict[str, Generator]] = None,
) -> GenerationReport:
    """Run every generator for every subject of one owner. Commits once."""
    started = time.perf_counter()
    now = now or utcnow()
    registry = GENERATORS if generators is None else generators

    report = GenerationReport(owner_user_id=owner_user_id)
    report.subjects = _subjects(db, owner_user_id, subject_ids)
    for domain in registry:
        report.per_domain_created[domain] = 0
        report.per_domain_skipped[domain] = 0

    for subject_id in report.subjects:
        for domain, generate in registry.items():
            savepoint = db.begin_nested()
            try:
                created = skipped = 0
                for candidate in generate(db, owner_user_id, subject_id, now):
                    if upsert_if_absent(db, candidate).created:
                        created += 1
                    else:
                        skipped += 1
                savepoint.commit()
            except CareLoopException as exc:
                savepoint.rollback()
                report.errors.append(GenerationError(domain, subject_id, exc.code, exc.message))
                logger.warning(
                    "generator failed domain=%s owner=%s subject=%s code=%s: %s",
                    domain, owner_user_id, subject_id, exc.code, exc.message,
                )
                continue
            except Exception as exc:
                savepoint.rollback()
                report.errors.append(
                    GenerationError(domain, subject_id, type(exc).__name__, str(exc))
                )
                logger.exception(
                    "generator crashed domain=%s owner=%s subject=%s",
                    domain, owner_user_id, subject_id,
                )
                continue
            report.per_domain_created[domain] += created
            report.per_domain_skipped[domain] += skipped

    db.commit()
    report.duration_ms = _elapsed_ms(started)
    logger.info(
        "generation owner=%s subjects=%d created=%s skipped=%s errors=%d duration_ms=%.1f",
        owner_user_id,
        len(report.subjects),
        report.per_domain_created,
        report.per_domain_skipped,
        report.total_errors,
        report.duration_ms,
    )
    return report


def run_generation_for_all(
    db: Session,
    now: Optional[datetime] = None,
) -> BatchGenerationReport:
    started = time.perf_counter()
    now = now or utcnow()
    batch = BatchGenerationReport()

    for owner_user_id in list_owner_ids(db):
        try:
            report = run_generation(db, owner_user_id, now=now)
        except Exception:
            db.rollback()
            batch.owners_failed += 1
            logger.exception("generation aborted owner=%s", owner_user_id)
            continue
        batch.owners_processed += 1
        batch.total_errors += report.total_errors
        for domain, count in report.per_domain_created.items():
            batch.per_domain_created[domain] = batch.per_domain_created.get(domain, 0) + count

    batch.duration_ms = _elapsed_ms(started)
    logger.info(
        "generation batch owners=%d failed=%d created=%s errors=%d duration_ms=%.1f",
        batch.owners_processed,
        batch.owners_failed,
        batch.per_domain_created,
        batch.total_errors,
        batch.duration_ms,
    )
    return batch


# ---------------------------------------------------------------------------
# Adjustment / sweep
# ---------------------------------------------------------------------------

def run_priority_adjustment(
    db: Session,
    owner_user_id: int,
    subject_ids: Optional[list[int]] = None,
    now: Optional[datetime] = None,
) -> AdjustmentReport:
    started = time.perf_counter()
    now = now or utcnow()
    report = AdjustmentReport(owner_user_id=owner_user_id)

    for subject_id in _subjects(db, owner_user_id, subject_ids):
        report.adjustments.extend(adjust_priorities(db, owner_user_id, subject_id, now))

    report.duration_ms = _elapsed_ms(started)
    logger.info(
        "priority adjustment owner=%s changed=%d duration_ms=%.1f",
        owner_user_id, len(report.adjustments), report.duration_ms,
    )
    return report


def run_missed_sweep(db: Session, now: Optional[datetime] = None) -> SweepReport:
    started = time.perf_counter()
    report = SweepReport(per_type_missed=mark_missed(db, now or utcnow()))
    report.duration_ms = _elapsed_ms(started)
    logger.info(
        "missed sweep total=%d per_type=%s duration_ms=%.1f",
        report.total_missed, report.per_type_missed, report.duration_ms,
    )
    return report
