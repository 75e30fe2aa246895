"""
CareEvent payloads — one closed variant per event_type.

Every variant carries `kind`, equal to the event_type it belongs to, so the
union is discriminated and a payload can never drift from its event.

    EventData       Annotated union used for validation / parsing
    dump_event_data model → JSON text stored in care_events.event_data
    load_event_data JSON text → model
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid")


class MedicationEventData(_Payload):
    kind: Literal["medication"] = "medication"
    prescription_id: int
    medication_name: str
    dosage: str = ""
    frequency: str = ""
    reminder_time: str = Field(description='Local "HH:MM" the occurrence came from.')


class FeedingEventData(_Payload):
    kind: Literal["feeding"] = "feeding"
    feeding_schedule_id: int
    subject_name: Optional[str] = None
    interval_hours: float
    last_feeding_time: Optional[datetime] = None
    next_due: datetime
    overdue_minutes: int = Field(ge=0)
    intensity: int = Field(
        ge=0, le=100,
        description="Urgency cue for the presentation layer; grows with overdue_minutes.",
    )


class VaccinationEventData(_Payload):
    kind: Literal["vaccination"] = "vaccination"
    schedule_item_id: int
    vaccine_name: str
    vaccine_code: Optional[str] = None
    dose_number: int
    total_doses: int
    age_months: int
    schedule_priority: str


class CheckupEventData(_Payload):
    kind: Literal["checkup"] = "checkup"
    schedule_item_id: int
    checkup_name: str
    dose_number: int = 1
    age_months: int
    schedule_priority: str


class LifecycleMilestoneEventData(_Payload):
    kind: Literal["lifecycle_milestone"] = "lifecycle_milestone"
    schedule_item_id: int
    milestone_name: str
    dose_number: int = 1
    age_months: int
    schedule_priority: str


class PublicHealthAlertEventData(_Payload):
    kind: Literal["public_health_alert"] = "public_health_alert"
    source_alert_id: str
    title: str
    severity: str
    alert_type: Optional[str] = None
    content: Optional[str] = None


class CustomEventData(_Payload):
    kind: Literal["custom"] = "custom"
    title: str = Field(min_length=1, max_length=256)
    note: Optional[str] = None


EventData = Annotated[
    Union[
        MedicationEventData,
        FeedingEventData,
        VaccinationEventData,
        CheckupEventData,
        LifecycleMilestoneEventData,
        PublicHealthAlertEventData,
        CustomEventData,
    ],
    Field(discriminator="kind"),
]

_adapter: TypeAdapter = TypeAdapter(EventData)


def dump_event_data(data) -> str:
    return data.model_dump_json()


def load_event_data(raw: str):
    return _adapter.validate_json(raw)
