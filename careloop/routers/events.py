"""
Care events router.

GET  /events                   — open events of the caller's household
POST /events/custom            — create a caller-defined reminder
POST /events/{id}/activate     — pending → active
POST /events/{id}/complete     — finalize and pay the reward (exactly once)
POST /events/{id}/cancel       — dismiss
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from careloop.core.identity import get_owner_id
from careloop.db.base import get_db
from careloop.models.care_event import EventType
from careloop.schemas.common import ERROR_RESPONSES
from careloop.schemas.events import (
    CareEventResponse,
    CompleteEventRequest,
    CompletionResponse,
    CustomEventRequest,
    EventListResponse,
)
from careloop.services import event_store
from careloop.services.completion import complete_event

router = APIRouter(prefix="/events", tags=["events"])


@router.get(
    "",
    response_model=EventListResponse,
    summary="List open (pending / active) events, earliest first",
)
def list_events(
    subject_id: Optional[int] = Query(
        default=None, ge=0,
        description="Restrict to one subject; 0 = the owner. Omit for the whole household.",
    ),
    event_type: Optional[EventType] = Query(default=None),
    owner_user_id: int = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    if subject_id is None:
        scope = event_store.ANY_SUBJECT
    else:
        scope = subject_id or None
    items = event_store.list_pending(db, owner_user_id, scope, event_type)
    return EventListResponse(
        total=len(items),
        items=[CareEventResponse.from_event(ev) for ev in items],
    )


@router.post(
    "/custom",
    response_model=CareEventResponse,
    status_code=201,
    summary="Create a custom reminder",
    responses=ERROR_RESPONSES,
)
def create_custom(
    body: CustomEventRequest,
    owner_user_id: int = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    event = event_store.create_custom_event(
        db,
        owner_user_id=owner_user_id,
        title=body.title,
        scheduled_time=body.scheduled_time,
        subject_id=body.subject_id,
        note=body.note,
        priority=body.priority,
        client_key=body.client_key,
    )
    return CareEventResponse.from_event(event)


@router.post(
    "/{event_id}/activate",
    response_model=CareEventResponse,
    summary="Mark an event as surfaced to the user",
    responses=ERROR_RESPONSES,
)
def activate(
    event_id: int,
    owner_user_id: int = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    return CareEventResponse.from_event(event_store.activate_event(db, event_id, owner_user_id))


@router.post(
    "/{event_id}/complete",
    response_model=CompletionResponse,
    summary="Complete an event and award points / experience",
    responses=ERROR_RESPONSES,
)
def complete(
    event_id: int,
    body: Optional[CompleteEventRequest] = Body(default=None),
    owner_user_id: int = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """
    Finalizes the event exactly once. A second call (or a concurrent one that
    lost the race) returns 409 `EVENT_ALREADY_FINALIZED` and pays nothing.
    """
    body = body or CompleteEventRequest()
    result = complete_event(
        db, event_id, owner_user_id,
        points=body.points,
        experience=body.experience,
    )
    return CompletionResponse.model_validate(result)


@router.post(
    "/{event_id}/cancel",
    response_model=CareEventResponse,
    summary="Dismiss an open event",
    responses=ERROR_RESPONSES,
)
def cancel(
    event_id: int,
    owner_user_id: int = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    return CareEventResponse.from_event(event_store.cancel_event(db, event_id, owner_user_id))
