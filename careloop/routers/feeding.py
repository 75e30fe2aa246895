"""
Feeding router.

PUT  /feeding/schedules             — create or replace a subject's schedule
POST /feeding/schedules/{id}/feed   — record a feeding
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from careloop.core.identity import get_owner_id
from careloop.db.base import get_db
from careloop.schemas.common import ERROR_RESPONSES
from careloop.schemas.feeding import FeedingScheduleRequest, FeedingScheduleResponse, FeedRequest
from careloop.services.feeding_generator import record_feeding, upsert_feeding_schedule

router = APIRouter(prefix="/feeding", tags=["feeding"])


@router.put(
    "/schedules",
    response_model=FeedingScheduleResponse,
    summary="Create or replace the feeding schedule of a subject",
    responses=ERROR_RESPONSES,
)
def put_schedule(
    body: FeedingScheduleRequest,
    owner_user_id: int = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    schedule = upsert_feeding_schedule(
        db,
        owner_user_id=owner_user_id,
        subject_id=body.subject_id,
        interval_hours=body.interval_hours,
        reminder_lead_minutes=body.reminder_lead_minutes,
        subject_name=body.subject_name,
        notes=body.notes,
        is_active=body.is_active,
    )
    return FeedingScheduleResponse.model_validate(schedule)


@router.post(
    "/schedules/{schedule_id}/feed",
    response_model=FeedingScheduleResponse,
    summary="Record that the subject was fed",
    responses=ERROR_RESPONSES,
)
def feed(
    schedule_id: int,
    body: Optional[FeedRequest] = Body(default=None),
    owner_user_id: int = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    fed_at = body.fed_at if body else None
    schedule = record_feeding(db, owner_user_id, schedule_id, fed_at)
    return FeedingScheduleResponse.model_validate(schedule)
