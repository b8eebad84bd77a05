"""add subscription plans, subscriptions and invoices

Revision ID: 0009_subscriptions
Revises: 0008_compliance
Create Date: 2026-10-01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from acclms.domain.states import BILLING_INTERVALS, INVOICE, PLAN_TIERS, SUBSCRIPTION
from acclms.persistence.provisioning import updated_at_trigger_sql


revision = "0009_subscriptions"
down_revision = "0008_compliance"
branch_labels = None
depends_on = None

_ENUMS = (
    ("plan_tier", PLAN_TIERS),
    ("billing_interval", BILLING_INTERVALS),
    ("subscription_status", SUBSCRIPTION.statuses),
    ("invoice_status", INVOICE.statuses),
)


def _enum(name: str) -> postgresql.ENUM:
    values = dict(_ENUMS)[name]
    return postgresql.ENUM(*values, name=name, schema="subscriptions", create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in _ENUMS:
        postgresql.ENUM(*values, name=name, schema="subscriptions").create(bind, checkfirst=True)

    op.create_table(
        "plans",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("tier", _enum("plan_tier"), nullable=False, server_default="basic"),
        sa.Column("billing_interval", _enum("billing_interval"), nullable=False, server_default="monthly"),
        sa.Column("price_cents", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("trial_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("features", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("limits", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("price_cents >= 0", name="ck_plans_price_non_negative"),
        sa.CheckConstraint("trial_days >= 0", name="ck_plans_trial_days"),
        schema="subscriptions",
    )
    op.execute(updated_at_trigger_sql("subscriptions", "plans"))

    op.create_table(
        "subscriptions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("plan_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("subscriptions.plans.id"), nullable=False),
        sa.Column("status", _enum("subscription_status"), nullable=False, server_default="pending"),
        sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("trial_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trial_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("current_period_end > current_period_start", name="ck_subscriptions_period"),
        schema="subscriptions",
    )
    op.create_index("ix_subscriptions_subscriptions_user_id", "subscriptions", ["user_id"], schema="subscriptions")
    op.create_index("ix_subscriptions_subscriptions_plan_id", "subscriptions", ["plan_id"], schema="subscriptions")
    # At most one live subscription per user.
    op.create_index(
        "uq_subscriptions_user_live",
        "subscriptions",
        ["user_id"],
        unique=True,
        schema="subscriptions",
        postgresql_where=sa.text("status IN ('active', 'trialing')"),
    )
    op.execute(updated_at_trigger_sql("subscriptions", "subscriptions"))

    op.create_table(
        "invoices",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "subscription_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("subscriptions.subscriptions.id"),
            nullable=False,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("invoice_number", sa.String(50), nullable=False, unique=True),
        sa.Column("status", _enum("invoice_status"), nullable=False, server_default="draft"),
        sa.Column("subtotal_cents", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("discount_cents", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("tax_cents", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("total_cents", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("line_items", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        schema="subscriptions",
    )
    op.create_index("ix_subscriptions_invoices_subscription_id", "invoices", ["subscription_id"], schema="subscriptions")
    op.create_index("ix_subscriptions_invoices_user_id", "invoices", ["user_id"], schema="subscriptions")
    op.execute(updated_at_trigger_sql("subscriptions", "invoices"))

    op.execute(
        """
        INSERT INTO subscriptions.plans
            (name, description, tier, billing_interval, price_cents, trial_days, features, display_order)
        VALUES
            ('Free', 'Free courses and community access', 'free', 'monthly', 0, 0,
             '["free_courses", "community_forum"]'::jsonb, 1),
            ('Basic', 'Full catalog access', 'basic', 'monthly', 2900, 14,
             '["all_courses", "certificates", "community_forum"]'::jsonb, 2),
            ('Professional', 'Catalog plus AI tutor and offline access', 'professional', 'monthly', 7900, 14,
             '["all_courses", "certificates", "ai_tutor", "offline_access", "priority_support"]'::jsonb, 3),
            ('Enterprise', 'Team management and dedicated support', 'enterprise', 'monthly', 29900, 30,
             '["all_courses", "certificates", "ai_tutor", "team_management", "sso", "dedicated_support"]'::jsonb, 4)
        """
    )


def downgrade() -> None:
    op.drop_table("invoices", schema="subscriptions")
    op.drop_table("subscriptions", schema="subscriptions")
    op.drop_table("plans", schema="subscriptions")
    bind = op.get_bind()
    for name, _values in reversed(_ENUMS):
        postgresql.ENUM(name=name, schema="subscriptions").drop(bind, checkfirst=True)
