"""
Public-health alert feed schemas (PUT /alerts, used by the feed poller).
"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from careloop.models.health_alert import AlertSeverity


class AlertUpsertRequest(BaseModel):
    source_alert_id: str = Field(min_length=1, max_length=128)
    title: str = Field(min_length=1, max_length=256)
    severity: AlertSeverity = AlertSeverity.info
    content: Optional[str] = None
    alert_type: Optional[str] = Field(default=None, max_length=64)
    target_age_group: Optional[Literal["infant", "child", "adult", "senior"]] = None
    published_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_active: bool = True


class AlertResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    source_alert_id: str
    title: str
    severity: AlertSeverity
    alert_type: Optional[str] = None
    target_age_group: Optional[str] = None
    published_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_active: bool
    created: bool = False
