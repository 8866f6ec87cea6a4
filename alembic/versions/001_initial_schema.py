# alembic/versions/001_initial_schema.py
"""Initial schema - scheduling, compliance and invoicing

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates every table in its final form. Timestamps are timezone-aware;
ids are 26-character ULID strings generated by the application.
"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TS = sa.DateTime(timezone=True)
ID = sa.String(26)
JSON_DOC = postgresql.JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite")
OPEN_STATUS_PREDICATE = "status IN ('pending', 'acknowledged')"


def upgrade() -> None:
    """Create the scheduling engine schema."""
    op.create_table(
        "users",
        sa.Column("id", ID, primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "students",
        sa.Column("id", ID, primary_key=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("parent_user_id", ID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("tutor_id", ID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("sessions_remaining", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("auto_invoice_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("default_session_pack", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("recurring_invoice_send_date", sa.Date(), nullable=True),
        sa.Column("parent_rate", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("tutor_rate", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=True),
    )
    op.create_index("ix_students_id", "students", ["id"])
    op.create_index("ix_students_parent_user_id", "students", ["parent_user_id"])
    op.create_index("ix_students_tutor_id", "students", ["tutor_id"])

    op.create_table(
        "student_groups",
        sa.Column("id", ID, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("tutor_id", ID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_index("ix_student_groups_id", "student_groups", ["id"])

    op.create_table(
        "student_group_members",
        sa.Column(
            "group_id",
            ID,
            sa.ForeignKey("student_groups.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "student_id", ID, sa.ForeignKey("students.id", ondelete="CASCADE"), primary_key=True
        ),
    )

    op.create_table(
        "recurring_session_templates",
        sa.Column("id", ID, primary_key=True),
        sa.Column("tutor_id", ID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("student_id", ID, sa.ForeignKey("students.id"), nullable=True),
        sa.Column("group_id", ID, sa.ForeignKey("student_groups.id"), nullable=True),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("subject", sa.String(255), nullable=True),
        sa.Column("class_type", sa.String(20), nullable=False, server_default="individual"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", ID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=True),
        sa.CheckConstraint(
            "day_of_week >= 0 AND day_of_week <= 6", name="ck_template_day_of_week"
        ),
        sa.CheckConstraint("duration_minutes > 0", name="ck_template_duration_positive"),
        sa.CheckConstraint(
            "(student_id IS NOT NULL AND group_id IS NULL) "
            "OR (student_id IS NULL AND group_id IS NOT NULL)",
            name="ck_template_student_xor_group",
        ),
        sa.CheckConstraint(
            "end_date IS NULL OR end_date >= start_date", name="ck_template_date_range"
        ),
    )
    op.create_index("ix_recurring_session_templates_id", "recurring_session_templates", ["id"])
    for column in ("tutor_id", "student_id", "group_id", "is_active"):
        op.create_index(
            f"ix_recurring_session_templates_{column}", "recurring_session_templates", [column]
        )
    op.create_index(
        "ix_templates_tutor_active", "recurring_session_templates", ["tutor_id", "is_active"]
    )

    op.create_table(
        "session_occurrences",
        sa.Column("id", ID, primary_key=True),
        sa.Column(
            "template_id",
            ID,
            sa.ForeignKey("recurring_session_templates.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("template_slot_date", sa.Date(), nullable=True),
        sa.Column("tutor_id", ID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("student_id", ID, sa.ForeignKey("students.id"), nullable=True),
        sa.Column("group_id", ID, sa.ForeignKey("student_groups.id"), nullable=True),
        sa.Column("occurrence_date", sa.Date(), nullable=False),
        sa.Column("start_at", TS, nullable=False),
        sa.Column("end_at", TS, nullable=False),
        sa.Column("subject", sa.String(255), nullable=True),
        sa.Column("class_type", sa.String(20), nullable=False, server_default="individual"),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("source", sa.String(20), nullable=False, server_default="generated"),
        sa.Column("original_date", TS, nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("parent_flagged", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("parent_flag_comment", sa.Text(), nullable=True),
        sa.Column("parent_flagged_at", TS, nullable=True),
        sa.Column("created_by", ID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=True),
        sa.UniqueConstraint(
            "template_id", "template_slot_date", name="uq_occurrence_template_slot"
        ),
        sa.CheckConstraint("end_at > start_at", name="ck_occurrence_end_after_start"),
    )
    op.create_index("ix_session_occurrences_id", "session_occurrences", ["id"])
    for column in (
        "template_id",
        "tutor_id",
        "student_id",
        "group_id",
        "occurrence_date",
        "end_at",
        "status",
    ):
        op.create_index(f"ix_session_occurrences_{column}", "session_occurrences", [column])
    op.create_index("ix_occurrences_status_end", "session_occurrences", ["status", "end_at"])

    op.create_table(
        "session_change_requests",
        sa.Column("id", ID, primary_key=True),
        sa.Column(
            "session_occurrence_id",
            ID,
            sa.ForeignKey("session_occurrences.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("requester_type", sa.String(10), nullable=False),
        sa.Column("requester_id", ID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("parent_id", ID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("tutor_id", ID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("student_id", ID, sa.ForeignKey("students.id"), nullable=True),
        sa.Column("group_id", ID, sa.ForeignKey("student_groups.id"), nullable=True),
        sa.Column("request_type", sa.String(20), nullable=False),
        sa.Column("original_date", TS, nullable=False),
        sa.Column("proposed_start_at", TS, nullable=True),
        sa.Column("proposed_end_at", TS, nullable=True),
        sa.Column("proposed_message", sa.Text(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("processed_at", TS, nullable=True),
        sa.Column("processed_by", ID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("acknowledged_at", TS, nullable=True),
        sa.Column("acknowledged_by", ID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=True),
    )
    op.create_index("ix_session_change_requests_id", "session_change_requests", ["id"])
    for column in ("session_occurrence_id", "requester_id", "tutor_id", "status"):
        op.create_index(
            f"ix_session_change_requests_{column}", "session_change_requests", [column]
        )
    op.create_index(
        "uq_change_requests_one_open_per_occurrence",
        "session_change_requests",
        ["session_occurrence_id"],
        unique=True,
        postgresql_where=sa.text(OPEN_STATUS_PREDICATE),
        sqlite_where=sa.text(OPEN_STATUS_PREDICATE),
    )

    op.create_table(
        "timesheet_entries",
        sa.Column("id", ID, primary_key=True),
        sa.Column("tutor_id", ID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("student_id", ID, sa.ForeignKey("students.id"), nullable=True),
        sa.Column(
            "session_occurrence_id",
            ID,
            sa.ForeignKey("session_occurrences.id", ondelete="SET NULL"),
            nullable=True,
            unique=True,
        ),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("hours", sa.Numeric(6, 2), nullable=False),
        sa.Column("tutor_rate", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("parent_rate", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("tutor_earnings", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by", ID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_index("ix_timesheet_entries_id", "timesheet_entries", ["id"])
    op.create_index("ix_timesheet_entries_tutor_id", "timesheet_entries", ["tutor_id"])
    op.create_index("ix_timesheet_entries_student_id", "timesheet_entries", ["student_id"])

    op.create_table(
        "invoices",
        sa.Column("id", ID, primary_key=True),
        sa.Column("invoice_number", sa.String(64), nullable=False, unique=True),
        sa.Column("student_id", ID, sa.ForeignKey("students.id"), nullable=False),
        sa.Column("parent_id", ID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("invoice_type", sa.String(20), nullable=False, server_default="manual"),
        sa.Column("sessions_included", sa.Integer(), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("scheduled_send_date", sa.Date(), nullable=True),
        sa.Column("sent_at", TS, nullable=True),
        sa.Column("due_date", TS, nullable=True),
        sa.Column("paid_at", TS, nullable=True),
        sa.Column("parent_claimed_paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=True),
    )
    op.create_index("ix_invoices_id", "invoices", ["id"])
    op.create_index("ix_invoices_student_id", "invoices", ["student_id"])
    op.create_index("ix_invoices_parent_id", "invoices", ["parent_id"])
    op.create_index("ix_invoices_status", "invoices", ["status"])

    op.create_table(
        "invoice_reminders",
        sa.Column("id", ID, primary_key=True),
        sa.Column(
            "invoice_id", ID, sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("threshold_days", sa.Integer(), nullable=False),
        sa.Column("sent_at", TS, nullable=False),
        sa.UniqueConstraint("invoice_id", "threshold_days", name="uq_invoice_reminder_threshold"),
    )
    op.create_index("ix_invoice_reminders_invoice_id", "invoice_reminders", ["invoice_id"])

    op.create_table(
        "session_logging_alerts",
        sa.Column("id", ID, primary_key=True),
        sa.Column(
            "session_occurrence_id",
            ID,
            sa.ForeignKey("session_occurrences.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("tutor_id", ID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("student_id", ID, sa.ForeignKey("students.id"), nullable=True),
        sa.Column("session_end_at", TS, nullable=False),
        sa.Column("alert_created_at", TS, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("resolved_at", TS, nullable=True),
        sa.Column(
            "resolved_by_timesheet_entry_id",
            ID,
            sa.ForeignKey("timesheet_entries.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("hours_late", sa.Numeric(8, 2), nullable=True),
        sa.Column("dismissed_by", ID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("dismissed_at", TS, nullable=True),
        sa.Column("dismiss_reason", sa.Text(), nullable=True),
    )
    op.create_index("ix_session_logging_alerts_id", "session_logging_alerts", ["id"])
    op.create_index("ix_session_logging_alerts_tutor_id", "session_logging_alerts", ["tutor_id"])
    op.create_index("ix_session_logging_alerts_status", "session_logging_alerts", ["status"])

    op.create_table(
        "invoice_payment_alerts",
        sa.Column("id", ID, primary_key=True),
        sa.Column(
            "invoice_id",
            ID,
            sa.ForeignKey("invoices.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("parent_id", ID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("student_id", ID, sa.ForeignKey("students.id"), nullable=True),
        sa.Column("invoice_sent_at", TS, nullable=False),
        sa.Column("due_date", TS, nullable=False),
        sa.Column("alert_created_at", TS, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("resolved_at", TS, nullable=True),
        sa.Column("days_overdue", sa.Integer(), nullable=True),
        sa.Column("dismissed_by", ID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("dismissed_at", TS, nullable=True),
        sa.Column("dismiss_reason", sa.Text(), nullable=True),
    )
    op.create_index("ix_invoice_payment_alerts_id", "invoice_payment_alerts", ["id"])
    op.create_index("ix_invoice_payment_alerts_parent_id", "invoice_payment_alerts", ["parent_id"])
    op.create_index("ix_invoice_payment_alerts_status", "invoice_payment_alerts", ["status"])

    op.create_table(
        "notifications",
        sa.Column("id", ID, primary_key=True),
        sa.Column(
            "recipient_id", ID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("notification_type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])
    op.create_index(
        "ix_notifications_recipient_unread", "notifications", ["recipient_id", "is_read"]
    )

    op.create_table(
        "audit_log",
        sa.Column("id", ID, primary_key=True),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("actor_id", ID, nullable=True),
        sa.Column("actor_role", sa.String(30), nullable=True),
        sa.Column("occurred_at", TS, nullable=False),
        sa.Column("before", JSON_DOC, nullable=True),
        sa.Column("after", JSON_DOC, nullable=True),
    )
    op.create_index("ix_audit_log_entity_type", "audit_log", ["entity_type"])
    op.create_index("ix_audit_log_entity_id", "audit_log", ["entity_id"])

    op.create_table(
        "scan_watermarks",
        sa.Column("job_name", sa.String(100), primary_key=True),
        sa.Column("last_started_at", TS, nullable=True),
        sa.Column("last_completed_at", TS, nullable=True),
        sa.Column("last_result_count", sa.Integer(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
    )


def downgrade() -> None:
    """Drop every table in reverse dependency order."""
    for table in (
        "scan_watermarks",
        "audit_log",
        "notifications",
        "invoice_payment_alerts",
        "session_logging_alerts",
        "invoice_reminders",
        "invoices",
        "timesheet_entries",
        "session_change_requests",
        "session_occurrences",
        "recurring_session_templates",
        "student_group_members",
        "student_groups",
        "students",
        "users",
    ):
        op.drop_table(table)
