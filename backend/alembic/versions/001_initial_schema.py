# backend/alembic/versions/001_initial_schema.py
"""Initial schema - tenants, users, passes, subscriptions, classes, bookings, payments

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000

Every tenant-owned table carries tenant_id. Seat and credit counters are
guarded by check constraints so a bad conditional update fails loudly.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("slug", sa.String(80), nullable=False),
        sa.Column("school_name", sa.String(200), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="Europe/Oslo"),
        _created_at(),
    )
    op.create_index("ix_tenants_slug", "tenants", ["slug"], unique=True)

    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("tenant_id", sa.String(26), sa.ForeignKey("tenants.id"), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(200), nullable=False, server_default=""),
        sa.Column("role", sa.String(20), nullable=False, server_default="student"),
        sa.Column("is_platform_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.CheckConstraint("role IN ('admin', 'instructor', 'student')", name="ck_users_role"),
    )
    op.create_index("ix_users_tenant_id", "users", ["tenant_id"])
    op.create_index("ix_users_tenant_email", "users", ["tenant_id", "email"], unique=True)

    op.create_table(
        "pass_definitions",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("tenant_id", sa.String(26), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("price_minor_units", sa.Integer(), nullable=False),
        sa.Column("validity_type", sa.String(10), nullable=False, server_default="days"),
        sa.Column("validity_days", sa.Integer(), nullable=True),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("class_credit_limit", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "kind IN ('single', 'multi-pass', 'clipcard', 'unlimited')",
            name="ck_pass_definitions_kind",
        ),
        sa.CheckConstraint("validity_type IN ('days', 'date')", name="ck_pass_definitions_validity"),
        sa.CheckConstraint("price_minor_units >= 0", name="ck_pass_definitions_price"),
        sa.CheckConstraint(
            "class_credit_limit IS NULL OR class_credit_limit >= 1",
            name="ck_pass_definitions_credit_limit",
        ),
    )
    op.create_index(
        "ix_pass_definitions_tenant_active_price",
        "pass_definitions",
        ["tenant_id", "is_active", "price_minor_units"],
    )

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("tenant_id", sa.String(26), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("user_id", sa.String(64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "pass_definition_id",
            sa.String(26),
            sa.ForeignKey("pass_definitions.id"),
            nullable=False,
        ),
        sa.Column("pass_name", sa.String(120), nullable=False),
        sa.Column("pass_kind", sa.String(20), nullable=False),
        sa.Column("pass_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("purchase_price_minor_units", sa.Integer(), nullable=False),
        sa.Column("credit_limit", sa.Integer(), nullable=True),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("remaining_credits", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("deactivation_reason", sa.String(30), nullable=True),
        sa.Column("payment_provider", sa.String(20), nullable=False, server_default="internal"),
        sa.Column("external_payment_reference", sa.String(255), nullable=False, unique=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "remaining_credits IS NULL OR remaining_credits >= 0",
            name="ck_subscriptions_remaining_credits",
        ),
        sa.CheckConstraint(
            "remaining_credits IS NULL OR credit_limit IS NULL OR remaining_credits <= credit_limit",
            name="ck_subscriptions_credit_cap",
        ),
    )
    op.create_index("ix_subscriptions_tenant_user", "subscriptions", ["tenant_id", "user_id"])
    op.create_index(
        "ix_subscriptions_pass_active", "subscriptions", ["pass_definition_id", "is_active"]
    )

    op.create_table(
        "class_templates",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("tenant_id", sa.String(26), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("instructor_id", sa.String(64), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("price_minor_units", sa.Integer(), nullable=True),
        sa.Column("timezone", sa.String(64), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("capacity >= 1", name="ck_class_templates_capacity"),
        sa.CheckConstraint("duration_minutes >= 1", name="ck_class_templates_duration"),
    )
    op.create_index("ix_class_templates_tenant_id", "class_templates", ["tenant_id"])

    op.create_table(
        "class_template_schedule",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "template_id",
            sa.String(26),
            sa.ForeignKey("class_templates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("day_of_week", sa.String(10), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.UniqueConstraint(
            "template_id", "day_of_week", "start_time", name="uq_class_template_schedule_slot"
        ),
    )

    op.create_table(
        "class_instances",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("tenant_id", sa.String(26), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column(
            "template_id", sa.String(26), sa.ForeignKey("class_templates.id"), nullable=False
        ),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("booked_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_cancelled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.CheckConstraint(
            "booked_count >= 0 AND booked_count <= capacity",
            name="ck_class_instances_booked_count",
        ),
        sa.UniqueConstraint("template_id", "starts_at", name="uq_class_instances_template_start"),
    )
    op.create_index("ix_class_instances_template_id", "class_instances", ["template_id"])
    op.create_index(
        "ix_class_instances_tenant_starts_at", "class_instances", ["tenant_id", "starts_at"]
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("tenant_id", sa.String(26), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("user_id", sa.String(64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "class_instance_id",
            sa.String(26),
            sa.ForeignKey("class_instances.id"),
            nullable=False,
        ),
        sa.Column(
            "subscription_id", sa.String(26), sa.ForeignKey("subscriptions.id"), nullable=False
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="confirmed"),
        _created_at(),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by_id", sa.String(64), nullable=True),
        sa.Column("cancelled_by_role", sa.String(20), nullable=True),
        sa.CheckConstraint("status IN ('confirmed', 'cancelled')", name="ck_bookings_status"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_instance_status", "bookings", ["class_instance_id", "status"])
    op.create_index("ix_bookings_tenant_user", "bookings", ["tenant_id", "user_id"])
    op.create_index(
        "uq_bookings_confirmed_instance_user",
        "bookings",
        ["class_instance_id", "user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'confirmed'"),
    )

    op.create_table(
        "payment_checkouts",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("provider", sa.String(20), nullable=False),
        sa.Column("reference", sa.String(255), nullable=False),
        sa.Column("tenant_id", sa.String(26), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("user_id", sa.String(64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "pass_definition_id",
            sa.String(26),
            sa.ForeignKey("pass_definitions.id"),
            nullable=False,
        ),
        sa.Column("amount_minor_units", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("subscription_id", sa.String(26), nullable=True),
        _created_at(),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "provider", "reference", name="uq_payment_checkouts_provider_reference"
        ),
    )
    op.create_index("ix_payment_checkouts_reference", "payment_checkouts", ["reference"])

    op.create_table(
        "webhook_events",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("event_id", sa.String(255), nullable=False),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        sa.Column("outcome", sa.String(20), nullable=True),
        sa.Column("payload", JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("headers", JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="received"),
        sa.Column("processing_error", sa.Text(), nullable=True),
        sa.Column("processing_duration_ms", sa.Integer(), nullable=True),
        sa.Column("related_entity_type", sa.String(50), nullable=True),
        sa.Column("related_entity_id", sa.String(26), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "received_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("source", "event_id", name="uq_webhook_events_source_event_id"),
    )
    op.create_index("ix_webhook_events_status", "webhook_events", ["status"])
    op.create_index("ix_webhook_events_reference", "webhook_events", ["payment_reference"])


def downgrade() -> None:
    op.drop_table("webhook_events")
    op.drop_table("payment_checkouts")
    op.drop_table("bookings")
    op.drop_table("class_instances")
    op.drop_table("class_template_schedule")
    op.drop_table("class_templates")
    op.drop_table("subscriptions")
    op.drop_table("pass_definitions")
    op.drop_table("users")
    op.drop_table("tenants")
