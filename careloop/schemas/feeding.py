"""
Feeding schedule schemas.

PUT  /feeding/schedules            FeedingScheduleRequest → FeedingScheduleResponse
POST /feeding/schedules/{id}/feed  FeedRequest → FeedingScheduleResponse
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FeedingScheduleRequest(BaseModel):
    subject_id: int = Field(ge=1)
    interval_hours: float = Field(gt=0, le=24)
    reminder_lead_minutes: Optional[int] = Field(default=None, ge=0, le=240)
    subject_name: Optional[str] = Field(default=None, max_length=128)
    notes: Optional[str] = None
    is_active: bool = True


class FeedRequest(BaseModel):
    fed_at: Optional[datetime] = Field(default=None, description="Defaults to now.")


class FeedingScheduleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    subject_id: int
    subject_name: Optional[str] = None
    interval_hours: Optional[float] = None
    last_feeding_time: Optional[datetime] = None
    reminder_lead_minutes: int
    is_active: bool
    notes: Optional[str] = None
