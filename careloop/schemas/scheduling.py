"""
Scheduling run schemas.

POST /scheduling/run     RunRequest → GenerationReportResponse
POST /scheduling/adjust  RunRequest → AdjustmentReportResponse
POST /scheduling/sweep   → SweepReportResponse
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from careloop.models.care_event import Priority


class RunRequest(BaseModel):
    subject_ids: Optional[list[int]] = Field(
        default=None,
        description="Dependents to include besides the owner. Omit for all dependents.",
    )


class GenerationErrorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    domain: str
    subject_id: Optional[int] = None
    code: str
    message: str


class GenerationReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    owner_user_id: int
    subjects: list[Optional[int]]
    per_domain_created: dict[str, int]
    per_domain_skipped: dict[str, int]
    total_created: int
    total_errors: int
    errors: list[GenerationErrorResponse]
    duration_ms: float


class PriorityAdjustmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    event_id: int
    category: str
    old_priority: Priority
    new_priority: Priority
    reason: str


class AdjustmentReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    owner_user_id: int
    adjustments: list[PriorityAdjustmentResponse]
    duration_ms: float


class SweepReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    per_type_missed: dict[str, int]
    total_missed: int
    duration_ms: float
