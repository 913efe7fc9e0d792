# backend/alembic/versions/001_scheduling_schema.py
"""Scheduling schema - teachers, sessions, bookings, packages, webhook ledger

Revision ID: 001_scheduling_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates every table the scheduling backend uses. Statuses and kinds are
VARCHAR columns guarded by CHECK constraints rather than native enums.
"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_scheduling_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _json() -> sa.types.TypeEngine:
    return postgresql.JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    print("Creating users, teachers and students...")

    op.create_table(
        "users",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(100), nullable=False, server_default=""),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "teachers",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("user_id", sa.String(26), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("tier", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", name="uq_teachers_user_id"),
    )

    op.create_table(
        "students",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("user_id", sa.String(26), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", name="uq_students_user_id"),
        sa.UniqueConstraint("stripe_customer_id", name="uq_students_stripe_customer_id"),
    )

    op.create_table(
        "teacher_availability",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("teacher_id", sa.String(26), sa.ForeignKey("teachers.id"), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("weekday", sa.Integer(), nullable=True),
        sa.Column("start_time_minutes", sa.Integer(), nullable=True),
        sa.Column("end_time_minutes", sa.Integer(), nullable=True),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "kind IN ('ONE_OFF', 'RECURRING', 'BLACKOUT')",
            name="ck_teacher_availability_kind",
        ),
        sa.CheckConstraint(
            "weekday IS NULL OR (weekday >= 0 AND weekday <= 6)",
            name="ck_teacher_availability_weekday",
        ),
    )
    op.create_index(
        "ix_teacher_availability_teacher_active",
        "teacher_availability",
        ["teacher_id", "is_active"],
    )

    print("Creating sessions and bookings...")

    op.create_table(
        "sessions",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("teacher_id", sa.String(26), sa.ForeignKey("teachers.id"), nullable=False),
        sa.Column("course_id", sa.String(26), nullable=True),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("capacity_max", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        sa.Column("visibility", sa.String(20), nullable=False, server_default="PRIVATE"),
        sa.Column(
            "requires_enrollment", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("meeting_url", sa.String(500), nullable=True),
        sa.Column("source_timezone", sa.String(64), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("end_at > start_at", name="ck_sessions_time_order"),
        sa.CheckConstraint(
            "status IN ('DRAFT', 'SCHEDULED', 'CANCELLED', 'COMPLETED')",
            name="ck_sessions_status",
        ),
    )
    op.create_index("ix_sessions_teacher_start", "sessions", ["teacher_id", "start_at"])
    op.create_index("ix_sessions_status", "sessions", ["status"])

    print("Creating Stripe product map and packages...")

    op.create_table(
        "stripe_product_map",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("service_key", sa.String(100), nullable=False),
        sa.Column("stripe_product_id", sa.String(255), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("scope_type", sa.String(20), nullable=False, server_default="session"),
        sa.Column("scope_id", sa.String(26), nullable=True),
        sa.Column("metadata", _json(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("service_key", name="uq_stripe_product_map_service_key"),
        sa.UniqueConstraint("stripe_product_id", name="uq_stripe_product_map_product_id"),
    )

    op.create_table(
        "package_allowances",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column(
            "stripe_product_map_id",
            sa.String(26),
            sa.ForeignKey("stripe_product_map.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("service_type", sa.String(20), nullable=False),
        sa.Column("teacher_tier", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("credits", sa.Integer(), nullable=False),
        sa.Column("credit_unit_minutes", sa.Integer(), nullable=False, server_default="30"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "student_packages",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("student_id", sa.String(26), sa.ForeignKey("students.id"), nullable=False),
        sa.Column(
            "stripe_product_map_id",
            sa.String(26),
            sa.ForeignKey("stripe_product_map.id"),
            nullable=True,
        ),
        sa.Column("package_name", sa.String(255), nullable=False),
        sa.Column("total_sessions", sa.Integer(), nullable=False),
        sa.Column(
            "purchased_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("source_payment_id", sa.String(255), nullable=True),
        sa.Column("metadata", _json(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source_payment_id", name="uq_student_packages_source_payment_id"),
    )
    op.create_index("ix_student_packages_student", "student_packages", ["student_id"])

    op.create_table(
        "package_uses",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column(
            "student_package_id",
            sa.String(26),
            sa.ForeignKey("student_packages.id"),
            nullable=False,
        ),
        sa.Column(
            "allowance_id", sa.String(26), sa.ForeignKey("package_allowances.id"), nullable=True
        ),
        sa.Column("booking_id", sa.String(26), nullable=True),
        sa.Column("session_id", sa.String(26), nullable=True),
        sa.Column("service_type", sa.String(20), nullable=True),
        sa.Column("credits_used", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "used_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("used_by", sa.String(26), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_package_uses_package", "package_uses", ["student_package_id"])
    op.create_index("ix_package_uses_booking", "package_uses", ["booking_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("session_id", sa.String(26), sa.ForeignKey("sessions.id"), nullable=False),
        sa.Column("student_id", sa.String(26), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("invited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_by_student", sa.Boolean(), nullable=True),
        sa.Column(
            "student_package_id",
            sa.String(26),
            sa.ForeignKey("student_packages.id"),
            nullable=True,
        ),
        sa.Column("package_use_id", sa.String(26), nullable=True),
        sa.Column("credits_cost", sa.Integer(), nullable=True),
        sa.Column("rescheduled_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("original_session_id", sa.String(26), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "student_id", name="uq_bookings_session_student"),
    )
    op.create_index("ix_bookings_student_status", "bookings", ["student_id", "status"])

    print("Creating webhook ledger...")

    op.create_table(
        "webhook_events",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("source", sa.String(50), nullable=False),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("event_id", sa.String(255), nullable=True),
        sa.Column("payload", _json(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="received"),
        sa.Column("processing_error", sa.Text(), nullable=True),
        sa.Column("processing_duration_ms", sa.Integer(), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_retry_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "received_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source", "event_id", name="uq_webhook_events_source_event_id"),
    )
    op.create_index("ix_webhook_events_event_type", "webhook_events", ["event_type"])
    op.create_index("ix_webhook_events_status", "webhook_events", ["status"])
    op.create_index("ix_webhook_events_received_at", "webhook_events", ["received_at"])

    print("Scheduling schema created successfully!")


def downgrade() -> None:
    print("Dropping scheduling schema...")

    op.drop_index("ix_webhook_events_received_at", table_name="webhook_events")
    op.drop_index("ix_webhook_events_status", table_name="webhook_events")
    op.drop_index("ix_webhook_events_event_type", table_name="webhook_events")
    op.drop_table("webhook_events")

    op.drop_index("ix_bookings_student_status", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("ix_package_uses_booking", table_name="package_uses")
    op.drop_index("ix_package_uses_package", table_name="package_uses")
    op.drop_table("package_uses")

    op.drop_index("ix_student_packages_student", table_name="student_packages")
    op.drop_table("student_packages")
    op.drop_table("package_allowances")
    op.drop_table("stripe_product_map")

    op.drop_index("ix_sessions_status", table_name="sessions")
    op.drop_index("ix_sessions_teacher_start", table_name="sessions")
    op.drop_table("sessions")

    op.drop_index("ix_teacher_availability_teacher_active", table_name="teacher_availability")
    op.drop_table("teacher_availability")
    op.drop_table("students")
    op.drop_table("teachers")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
