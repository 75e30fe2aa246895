"""initial care scheduling schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_OPEN_ROWS = sa.text("status IN ('pending', 'active')")


def _timestamps(updated: bool = True) -> list:
    cols = [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]
    if updated:
        cols.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
        )
    return cols


def upgrade() -> None:
    # --- care_events ---
    op.create_table(
        "care_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_user_id", sa.Integer(), nullable=False),
        sa.Column("subject_id", sa.Integer(), nullable=True),
        sa.Column("subject_key", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.Enum(
            "medication", "feeding", "checkup", "vaccination",
            "public_health_alert", "lifecycle_milestone", "custom",
            name="care_event_type_enum",
        ), nullable=False),
        sa.Column("natural_key", sa.String(256), nullable=False),
        sa.Column("event_data", sa.Text(), nullable=False),
        sa.Column("scheduled_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.Enum(
            "pending", "active", "completed", "missed", "cancelled",
            name="care_event_status_enum",
        ), nullable=False),
        sa.Column("priority", sa.Enum(
            "low", "normal", "high", "urgent",
            name="care_event_priority_enum",
        ), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("priority_adjusted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("points_earned", sa.Integer(), nullable=False),
        sa.Column("experience_earned", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_care_events_id", "care_events", ["id"])
    op.create_index(
        "uq_care_events_open_natural_key",
        "care_events",
        ["owner_user_id", "subject_key", "event_type", "natural_key"],
        unique=True,
        postgresql_where=_OPEN_ROWS,
        sqlite_where=_OPEN_ROWS,
    )
    op.create_index("ix_care_events_owner_status", "care_events", ["owner_user_id", "status"])
    op.create_index("ix_care_events_status_scheduled", "care_events", ["status", "scheduled_time"])

    # --- care_accounts ---
    op.create_table(
        "care_accounts",
        sa.Column("owner_user_id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("display_name", sa.String(128), nullable=True),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("gender", sa.String(16), nullable=True),
        sa.Column("total_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_experience", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("owner_user_id"),
    )

    # --- dependents ---
    op.create_table(
        "dependents",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("gender", sa.String(16), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_dependents_id", "dependents", ["id"])
    op.create_index("ix_dependents_owner_user_id", "dependents", ["owner_user_id"])

    # --- prescriptions ---
    op.create_table(
        "prescriptions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_user_id", sa.Integer(), nullable=False),
        sa.Column("subject_id", sa.Integer(), nullable=True),
        sa.Column("medication_name", sa.String(256), nullable=False),
        sa.Column("dosage", sa.String(128), nullable=True),
        sa.Column("frequency", sa.String(64), nullable=True),
        sa.Column("reminder_times", sa.Text(), nullable=True),
        sa.Column("reminder_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_prescriptions_id", "prescriptions", ["id"])
    op.create_index("ix_prescriptions_owner_user_id", "prescriptions", ["owner_user_id"])
    op.create_index("ix_prescriptions_subject_id", "prescriptions", ["subject_id"])

    # --- feeding_schedules ---
    op.create_table(
        "feeding_schedules",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_user_id", sa.Integer(), nullable=False),
        sa.Column("subject_id", sa.Integer(), nullable=False),
        sa.Column("subject_name", sa.String(128), nullable=True),
        sa.Column("interval_hours", sa.Float(), nullable=True),
        sa.Column("last_feeding_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reminder_lead_minutes", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_user_id", "subject_id", name="uq_feeding_schedule_subject"),
    )
    op.create_index("ix_feeding_schedules_id", "feeding_schedules", ["id"])
    op.create_index("ix_feeding_schedules_owner_user_id", "feeding_schedules", ["owner_user_id"])

    # --- lifecycle_schedule_items ---
    op.create_table(
        "lifecycle_schedule_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_type", sa.Enum(
            "vaccination", "checkup", "milestone", name="lifecycle_item_type_enum",
        ), nullable=False),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("code", sa.String(64), nullable=True),
        sa.Column("dose_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("total_doses", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("target_age_min_months", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("target_age_max_months", sa.Integer(), nullable=True),
        sa.Column("gender_requirement", sa.String(16), nullable=True),
        sa.Column("priority", sa.Enum(
            "required", "recommended", "optional", name="schedule_priority_enum",
        ), nullable=False),
        sa.Column("interval_days", sa.Integer(), nullable=True),
        sa.Column("source", sa.String(64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_lifecycle_schedule_items_id", "lifecycle_schedule_items", ["id"])

    # --- lifecycle_records ---
    op.create_table(
        "lifecycle_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_user_id", sa.Integer(), nullable=False),
        sa.Column("subject_key", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("schedule_item_id", sa.Integer(), nullable=False),
        sa.Column("dose_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("completed_on", sa.Date(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "owner_user_id", "subject_key", "schedule_item_id", "dose_number",
            name="uq_lifecycle_record_dose",
        ),
    )
    op.create_index("ix_lifecycle_records_id", "lifecycle_records", ["id"])
    op.create_index("ix_lifecycle_records_owner_user_id", "lifecycle_records", ["owner_user_id"])
    op.create_index("ix_lifecycle_records_schedule_item_id", "lifecycle_records", ["schedule_item_id"])

    # --- public_health_alerts ---
    op.create_table(
        "public_health_alerts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("source_alert_id", sa.String(128), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("alert_type", sa.String(64), nullable=True),
        sa.Column("severity", sa.Enum(
            "critical", "warning", "info", name="alert_severity_enum",
        ), nullable=False),
        sa.Column("target_age_group", sa.String(16), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("fetched_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source_alert_id"),
    )
    op.create_index("ix_public_health_alerts_id", "public_health_alerts", ["id"])

    # --- reward_ledger ---
    op.create_table(
        "reward_ledger",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_user_id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("experience", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(256), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("event_id"),
    )
    op.create_index("ix_reward_ledger_id", "reward_ledger", ["id"])
    op.create_index("ix_reward_ledger_owner_user_id", "reward_ledger", ["owner_user_id"])

    # --- priority_adjustments ---
    op.create_table(
        "priority_adjustments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("owner_user_id", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("old_priority", sa.String(16), nullable=False),
        sa.Column("new_priority", sa.String(16), nullable=False),
        sa.Column("reason", sa.String(256), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_priority_adjustments_id", "priority_adjustments", ["id"])
    op.create_index("ix_priority_adjustments_event_id", "priority_adjustments", ["event_id"])
    op.create_index("ix_priority_adjustments_owner_user_id", "priority_adjustments", ["owner_user_id"])


def downgrade() -> None:
    op.drop_table("priority_adjustments")
    op.drop_table("reward_ledger")
    op.drop_table("public_health_alerts")
    op.drop_table("lifecycle_records")
    op.drop_table("lifecycle_schedule_items")
    op.drop_table("feeding_schedules")
    op.drop_table("prescriptions")
    op.drop_table("dependents")
    op.drop_table("care_accounts")
    op.drop_table("care_events")

    op.execute("DROP TYPE IF EXISTS alert_severity_enum")
    op.execute("DROP TYPE IF EXISTS schedule_priority_enum")
    op.execute("DROP TYPE IF EXISTS lifecycle_item_type_enum")
    op.execute("DROP TYPE IF EXISTS care_event_priority_enum")
    op.execute("DROP TYPE IF EXISTS care_event_status_enum")
    op.execute("DROP TYPE IF EXISTS care_event_type_enum")
