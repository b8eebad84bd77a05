"""add orders, transactions, discount codes and reviews

Revision ID: 0005_payments_orders
Revises: 0004_assessments
Create Date: 2026-10-01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from acclms.domain.registry import get_schema
from acclms.persistence.provisioning import function_grant_statements, updated_at_trigger_sql


revision = "0005_payments_orders"
down_revision = "0004_assessments"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE SEQUENCE IF NOT EXISTS payments.order_number_seq START WITH 1 INCREMENT BY 1")
    # Pad to six digits but never truncate, so numbers past 999999 widen instead of colliding.
    op.execute(
        """
        CREATE OR REPLACE FUNCTION payments.generate_order_number()
        RETURNS TEXT AS $$
        DECLARE
            seq_value TEXT;
        BEGIN
            seq_value := nextval('payments.order_number_seq')::TEXT;
            RETURN 'ORD-' || to_char(NOW() AT TIME ZONE 'UTC', 'YYYY') || '-'
                || lpad(seq_value, greatest(6, length(seq_value)), '0');
        END;
        $$ LANGUAGE plpgsql
        """
    )
    for statement in function_grant_statements(get_schema("payments")):
        op.execute(statement)

    op.create_table(
        "orders",
        sa.Column("order_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "order_number",
            sa.Text(),
            nullable=False,
            unique=True,
            server_default=sa.text("payments.generate_order_number()"),
        ),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False),
        sa.Column("tax_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.Text(), nullable=False, server_default="USD"),
        sa.Column("payment_provider", sa.Text(), nullable=True),
        sa.Column("payment_intent_id", sa.Text(), nullable=True),
        sa.Column("discount_code", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'paid', 'failed', 'cancelled', 'refunded')",
            name="ck_orders_status",
        ),
        sa.CheckConstraint("order_number ~ '^ORD-[0-9]{4}-[0-9]{6,}$'", name="ck_orders_number_format"),
        sa.CheckConstraint("total_cents >= 0", name="ck_orders_total_non_negative"),
        schema="payments",
    )
    op.create_index("ix_payments_orders_user_id", "orders", ["user_id"], schema="payments")
    op.create_index("ix_payments_orders_course_id", "orders", ["course_id"], schema="payments")
    op.create_index("ix_payments_orders_status", "orders", ["status"], schema="payments")
    op.create_index("ix_orders_created_at", "orders", ["created_at"], schema="payments")
    op.execute(updated_at_trigger_sql("payments", "orders"))

    op.create_table(
        "transactions",
        sa.Column("transaction_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "order_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("payments.orders.order_id"),
            nullable=False,
        ),
        sa.Column("provider", sa.Text(), nullable=False),
        sa.Column("provider_transaction_id", sa.Text(), nullable=False),
        sa.Column("transaction_type", sa.Text(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "transaction_type IN ('payment', 'refund', 'chargeback')", name="ck_transactions_type"
        ),
        schema="payments",
    )
    op.create_index("ix_payments_transactions_order_id", "transactions", ["order_id"], schema="payments")

    op.create_table(
        "discount_codes",
        sa.Column("code_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("code", sa.Text(), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("discount_type", sa.Text(), nullable=False),
        sa.Column("discount_value", sa.Numeric(10, 2), nullable=False),
        sa.Column("minimum_order_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column("current_uses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "discount_type IN ('percentage', 'fixed_amount')", name="ck_discount_codes_type"
        ),
        schema="payments",
    )

    op.create_table(
        "reviews",
        sa.Column("review_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("enrollment_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("review_title", sa.Text(), nullable=True),
        sa.Column("review_text", sa.Text(), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("course_id", "user_id", name="uq_reviews_course_user"),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating"),
        schema="payments",
    )
    op.create_index("ix_payments_reviews_course_id", "reviews", ["course_id"], schema="payments")
    op.create_index("ix_payments_reviews_user_id", "reviews", ["user_id"], schema="payments")
    op.execute(updated_at_trigger_sql("payments", "reviews"))


def downgrade() -> None:
    op.drop_table("reviews", schema="payments")
    op.drop_table("discount_codes", schema="payments")
    op.drop_table("transactions", schema="payments")
    op.drop_table("orders", schema="payments")
    op.execute("DROP FUNCTION IF EXISTS payments.generate_order_number()")
    op.execute("DROP SEQUENCE IF EXISTS payments.order_number_seq")
