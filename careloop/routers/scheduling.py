"""
Scheduling router — on-demand runs of the batch driver for one household.

POST /scheduling/run     — generation
POST /scheduling/adjust  — priority adjustment pass
POST /scheduling/sweep   — missed-event sweep (all owners)
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from careloop.core.identity import get_owner_id
from careloop.db.base import get_db
from careloop.schemas.common import ERROR_RESPONSES
from careloop.schemas.scheduling import (
    AdjustmentReportResponse,
    GenerationReportResponse,
    RunRequest,
    SweepReportResponse,
)
from careloop.services import orchestrator

router = APIRouter(prefix="/scheduling", tags=["scheduling"])


@router.post(
    "/run",
    response_model=GenerationReportResponse,
    summary="Generate due events for the caller and their dependents",
)
def run(
    body: Optional[RunRequest] = Body(default=None),
    owner_user_id: int = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """
    Idempotent: a second run with unchanged sources creates nothing.
    Generator failures are reported in `errors`; the other generators still run.
    """
    subject_ids = body.subject_ids if body else None
    report = orchestrator.run_generation(db, owner_user_id, subject_ids)
    return GenerationReportResponse.model_validate(report)


@router.post(
    "/adjust",
    response_model=AdjustmentReportResponse,
    summary="Re-prioritize open events from recent behavior",
    responses=ERROR_RESPONSES,
)
def adjust(
    body: Optional[RunRequest] = Body(default=None),
    owner_user_id: int = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    subject_ids = body.subject_ids if body else None
    report = orchestrator.run_priority_adjustment(db, owner_user_id, subject_ids)
    return AdjustmentReportResponse.model_validate(report)


@router.post(
    "/sweep",
    response_model=SweepReportResponse,
    summary="Mark overdue open events as missed",
)
def sweep(db: Session = Depends(get_db)):
    return SweepReportResponse.model_validate(orchestrator.run_missed_sweep(db))
