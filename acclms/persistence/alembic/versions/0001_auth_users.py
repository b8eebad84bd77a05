"""add auth users and user preferences

Revision ID: 0001_auth_users
Revises: 0000_schema_setup
Create Date: 2026-10-01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from acclms.persistence.provisioning import updated_at_trigger_sql


revision = "0001_auth_users"
down_revision = "0000_schema_setup"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("hashed_password", sa.Text(), nullable=False),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("timezone", sa.Text(), nullable=False, server_default="UTC"),
        sa.Column("language_preference", sa.Text(), nullable=False, server_default="en"),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        # Soft delete keeps the UUID resolvable for rows in other schemas.
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("role IN ('student', 'instructor', 'admin')", name="ck_users_role"),
        schema="auth",
    )
    op.create_index(
        "ix_users_role_active", "users", ["role"], schema="auth", postgresql_where=sa.text("deleted_at IS NULL")
    )
    op.create_index("ix_users_created_at", "users", ["created_at"], schema="auth")
    op.execute(updated_at_trigger_sql("auth", "users"))

    op.create_table(
        "refresh_tokens",
        sa.Column("token_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("auth.users.user_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("token_hash", sa.Text(), nullable=False),
        sa.Column("device_fingerprint", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        schema="auth",
    )
    op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"], schema="auth")
    op.create_index("ix_refresh_tokens_expires_at", "refresh_tokens", ["expires_at"], schema="auth")

    # users.user_preferences.user_id points at auth.users by value only.
    op.create_table(
        "user_preferences",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("language", sa.Text(), nullable=False, server_default="en"),
        sa.Column("theme", sa.Text(), nullable=False, server_default="system"),
        sa.Column("email_notifications", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("push_notifications", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("marketing_emails", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("course_reminders", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("weekly_progress_email", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        schema="users",
    )
    op.execute(updated_at_trigger_sql("users", "user_preferences"))

    # Bootstrap administrator; the password hash is a placeholder to be rotated on first login.
    op.execute(
        "INSERT INTO auth.users (email, hashed_password, first_name, last_name, role, email_verified) "
        "VALUES ('admin@acc-lms.com', '!disabled', 'System', 'Admin', 'admin', true) "
        "ON CONFLICT (email) DO NOTHING"
    )


def downgrade() -> None:
    op.drop_table("user_preferences", schema="users")
    op.drop_index("ix_refresh_tokens_expires_at", table_name="refresh_tokens", schema="auth")
    op.drop_index("ix_refresh_tokens_user_id", table_name="refresh_tokens", schema="auth")
    op.drop_table("refresh_tokens", schema="auth")
    op.drop_index("ix_users_created_at", table_name="users", schema="auth")
    op.drop_index("ix_users_role_active", table_name="users", schema="auth")
    op.drop_table("users", schema="auth")
