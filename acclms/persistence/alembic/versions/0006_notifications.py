"""add notification templates and user notifications

Revision ID: 0006_notifications
Revises: 0005_payments_orders
Create Date: 2026-10-01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from acclms.persistence.provisioning import updated_at_trigger_sql


revision = "0006_notifications"
down_revision = "0005_payments_orders"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "templates",
        sa.Column("template_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.Text(), nullable=False, unique=True),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("subject", sa.Text(), nullable=True),
        sa.Column("body_template", sa.Text(), nullable=False),
        sa.Column("variables", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("type IN ('email', 'push', 'in_app')", name="ck_templates_type"),
        schema="notifications",
    )
    op.execute(updated_at_trigger_sql("notifications", "templates"))

    op.create_table(
        "user_notifications",
        sa.Column("notification_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "template_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("notifications.templates.template_id"),
            nullable=True,
        ),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('pending', 'sent', 'failed', 'read')", name="ck_user_notifications_status"
        ),
        schema="notifications",
    )
    op.create_index(
        "ix_notifications_user_notifications_user_id", "user_notifications", ["user_id"], schema="notifications"
    )
    op.create_index(
        "ix_user_notifications_unread",
        "user_notifications",
        ["user_id", "created_at"],
        schema="notifications",
        postgresql_where=sa.text("read_at IS NULL"),
    )

    templates = sa.table(
        "templates",
        sa.column("name", sa.Text()),
        sa.column("type", sa.Text()),
        sa.column("subject", sa.Text()),
        sa.column("body_template", sa.Text()),
        sa.column("variables", postgresql.JSONB()),
        schema="notifications",
    )
    op.bulk_insert(
        templates,
        [
            {
                "name": "welcome_email",
                "type": "email",
                "subject": "Welcome to ACC LMS",
                "body_template": "Hi {{first_name}}, welcome aboard.",
                "variables": ["first_name"],
            },
            {
                "name": "enrollment_confirmation",
                "type": "email",
                "subject": "You are enrolled in {{course_title}}",
                "body_template": "Hi {{first_name}}, your enrollment in {{course_title}} is confirmed.",
                "variables": ["first_name", "course_title"],
            },
            {
                "name": "course_completed",
                "type": "in_app",
                "subject": None,
                "body_template": "Congratulations on completing {{course_title}}.",
                "variables": ["course_title"],
            },
            {
                "name": "payment_receipt",
                "type": "email",
                "subject": "Receipt for order {{order_number}}",
                "body_template": "We received {{amount}} for order {{order_number}}.",
                "variables": ["order_number", "amount"],
            },
        ],
    )


def downgrade() -> None:
    op.drop_table("user_notifications", schema="notifications")
    op.drop_table("templates", schema="notifications")
