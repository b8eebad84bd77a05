"""add enrollments and lesson progress

Revision ID: 0003_enrollments
Revises: 0002_courses
Create Date: 2026-10-01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from acclms.persistence.provisioning import updated_at_trigger_sql


revision = "0003_enrollments"
down_revision = "0002_courses"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # user_id and course_id are cross-schema references validated by the application.
    op.create_table(
        "enrollments",
        sa.Column("enrollment_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        sa.Column("progress_percentage", sa.Numeric(5, 2), nullable=False, server_default="0.00"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_accessed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("certificate_issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("enrollment_source", sa.Text(), nullable=False, server_default="purchase"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "course_id", name="uq_enrollments_user_course"),
        sa.CheckConstraint(
            "status IN ('active', 'completed', 'paused', 'refunded', 'expired')", name="ck_enrollments_status"
        ),
        sa.CheckConstraint(
            "progress_percentage >= 0 AND progress_percentage <= 100", name="ck_enrollments_progress_range"
        ),
        schema="enrollments",
    )
    op.create_index("ix_enrollments_enrollments_user_id", "enrollments", ["user_id"], schema="enrollments")
    op.create_index("ix_enrollments_enrollments_course_id", "enrollments", ["course_id"], schema="enrollments")
    op.create_index("ix_enrollments_status", "enrollments", ["status"], schema="enrollments")
    op.execute(updated_at_trigger_sql("enrollments", "enrollments"))

    op.create_table(
        "lesson_progress",
        sa.Column("progress_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "enrollment_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("enrollments.enrollments.enrollment_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("lesson_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="not_started"),
        sa.Column("time_spent_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_position_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("first_accessed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_accessed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("enrollment_id", "lesson_id", name="uq_lesson_progress_enrollment_lesson"),
        sa.CheckConstraint(
            "status IN ('not_started', 'in_progress', 'completed')", name="ck_lesson_progress_status"
        ),
        schema="enrollments",
    )
    op.create_index(
        "ix_enrollments_lesson_progress_enrollment_id", "lesson_progress", ["enrollment_id"], schema="enrollments"
    )
    op.create_index("ix_enrollments_lesson_progress_lesson_id", "lesson_progress", ["lesson_id"], schema="enrollments")
    op.create_index("ix_enrollments_lesson_progress_user_id", "lesson_progress", ["user_id"], schema="enrollments")


def downgrade() -> None:
    op.drop_table("lesson_progress", schema="enrollments")
    op.drop_table("enrollments", schema="enrollments")
