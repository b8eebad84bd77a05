"""add quizzes and quiz submissions

Revision ID: 0004_assessments
Revises: 0003_enrollments
Create Date: 2026-10-01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from acclms.persistence.provisioning import updated_at_trigger_sql


revision = "0004_assessments"
down_revision = "0003_enrollments"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "quizzes",
        sa.Column("quiz_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("lesson_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("total_points", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("passing_score_percentage", sa.Numeric(5, 2), nullable=False, server_default="70.00"),
        sa.Column("time_limit_minutes", sa.Integer(), nullable=True),
        sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        schema="assessments",
    )
    op.create_index("ix_assessments_quizzes_course_id", "quizzes", ["course_id"], schema="assessments")
    op.create_index("ix_assessments_quizzes_lesson_id", "quizzes", ["lesson_id"], schema="assessments")
    op.execute(updated_at_trigger_sql("assessments", "quizzes"))

    op.create_table(
        "quiz_submissions",
        sa.Column("submission_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "quiz_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("assessments.quizzes.quiz_id"),
            nullable=False,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("enrollment_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("attempt_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", sa.Text(), nullable=False, server_default="in_progress"),
        sa.Column("score", sa.Numeric(5, 2), nullable=False, server_default="0.00"),
        sa.Column("max_score", sa.Numeric(5, 2), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("graded_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('in_progress', 'submitted', 'graded')", name="ck_quiz_submissions_status"
        ),
        schema="assessments",
    )
    op.create_index("ix_assessments_quiz_submissions_quiz_id", "quiz_submissions", ["quiz_id"], schema="assessments")
    op.create_index("ix_assessments_quiz_submissions_user_id", "quiz_submissions", ["user_id"], schema="assessments")
    op.create_index(
        "ix_assessments_quiz_submissions_enrollment_id", "quiz_submissions", ["enrollment_id"], schema="assessments"
    )


def downgrade() -> None:
    op.drop_table("quiz_submissions", schema="assessments")
    op.drop_table("quizzes", schema="assessments")
