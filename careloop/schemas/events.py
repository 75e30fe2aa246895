"""
Care event request / response schemas.

GET  /events                  → EventListResponse
POST /events/custom           CustomEventRequest → CareEventResponse
POST /events/{id}/activate    → CareEventResponse
POST /events/{id}/complete    CompleteEventRequest → CompletionResponse
POST /events/{id}/cancel      → CareEventResponse
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from careloop.models.care_event import CareEvent, EventStatus, EventType, Priority
from careloop.schemas.event_data import EventData, load_event_data


class CareEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_user_id: int
    subject_id: Optional[int] = None
    event_type: EventType
    natural_key: str
    event_data: EventData
    scheduled_time: datetime
    status: EventStatus
    priority: Priority
    completed_at: Optional[datetime] = None
    points_earned: int
    experience_earned: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_event(cls, event: CareEvent) -> "CareEventResponse":
        return cls(
            id=event.id,
            owner_user_id=event.owner_user_id,
            subject_id=event.subject_id,
            event_type=event.event_type,
            natural_key=event.natural_key,
            event_data=load_event_data(event.event_data),
            scheduled_time=event.scheduled_time,
            status=event.status,
            priority=event.priority,
            completed_at=event.completed_at,
            points_earned=event.points_earned,
            experience_earned=event.experience_earned,
            created_at=event.created_at,
            updated_at=event.updated_at,
        )


class EventListResponse(BaseModel):
    total: int
    items: list[CareEventResponse]


class CustomEventRequest(BaseModel):
    title: str = Field(min_length=1, max_length=256)
    note: Optional[str] = None
    scheduled_time: datetime
    subject_id: Optional[int] = Field(default=None, ge=1)
    priority: Priority = Priority.normal
    client_key: Optional[str] = Field(
        default=None,
        max_length=128,
        description="Optional idempotency key; a second request with the same key "
                    "while the event is open returns 409.",
    )

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v.strip()

    @field_validator("scheduled_time")
    @classmethod
    def scheduled_time_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            raise ValueError("scheduled_time must include a UTC offset")
        return v


class CompleteEventRequest(BaseModel):
    points: Optional[int] = Field(default=None, ge=0, description="Override the default reward.")
    experience: Optional[int] = Field(default=None, ge=0)


class CompletionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    event_id: int
    event_type: EventType
    points_earned: int
    experience_earned: int
    new_total_points: int
    new_total_experience: int
    level: int
    leveled_up: bool
