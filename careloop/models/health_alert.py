"""
PublicHealthAlert — local cache of the external public-health feed.

Rows are written by the feed poller (out of process) through
PUT /alerts; the alert generator only reads active, unexpired rows.
"""
from datetime import datetime
import enum

from sqlalchemy import Integer, String, Text, Boolean, Enum, func
from sqlalchemy.orm import Mapped, mapped_column

from careloop.db.base import Base
from careloop.db.types import UTCDateTime, utcnow


class AlertSeverity(str, enum.Enum):
    critical = "critical"
    warning = "warning"
    info = "info"


class PublicHealthAlert(Base):
    __tablename__ = "public_health_alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    source_alert_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    # "flu" | "vaccination" | "disease_outbreak" | ...
    alert_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    severity: Mapped[AlertSeverity] = mapped_column(
        Enum(AlertSeverity, name="alert_severity_enum"),
        nullable=False,
        default=AlertSeverity.info,
    )
    # "infant" | "child" | "adult" | "senior" | None (everyone)
    target_age_group: Mapped[str | None] = mapped_column(String(16), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    fetched_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, server_default=func.now(), nullable=False
    )
