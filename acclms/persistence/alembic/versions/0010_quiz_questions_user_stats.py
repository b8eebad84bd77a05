"""add quiz questions, quiz responses and user statistics

Revision ID: 0010_quiz_questions_user_stats
Revises: 0009_subscriptions
Create Date: 2026-10-16
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from acclms.domain.states import QUESTION_TYPES


revision = "0010_quiz_questions_user_stats"
down_revision = "0009_subscriptions"
branch_labels = None
depends_on = None


def upgrade() -> None:
    question_types = ", ".join(f"'{value}'" for value in QUESTION_TYPES)
    op.create_table(
        "quiz_questions",
        sa.Column("question_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "quiz_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("assessments.quizzes.quiz_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("question_type", sa.Text(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("explanation", sa.Text(), nullable=True),
        sa.Column("options", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("correct_answers", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("code_language", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(f"question_type IN ({question_types})", name="ck_quiz_questions_type"),
        sa.CheckConstraint("points >= 0", name="ck_quiz_questions_points_non_negative"),
        schema="assessments",
    )
    op.create_index("ix_assessments_quiz_questions_quiz_id", "quiz_questions", ["quiz_id"], schema="assessments")

    op.create_table(
        "quiz_responses",
        sa.Column("response_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "submission_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("assessments.quiz_submissions.submission_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "question_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("assessments.quiz_questions.question_id"),
            nullable=False,
        ),
        sa.Column("answer_data", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=True),
        sa.Column("points_earned", sa.Numeric(5, 2), nullable=False, server_default="0.00"),
        sa.Column("instructor_feedback", sa.Text(), nullable=True),
        sa.Column("auto_graded", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("submission_id", "question_id", name="uq_quiz_responses_submission_question"),
        schema="assessments",
    )
    op.create_index(
        "ix_assessments_quiz_responses_submission_id", "quiz_responses", ["submission_id"], schema="assessments"
    )
    op.create_index(
        "ix_assessments_quiz_responses_question_id", "quiz_responses", ["question_id"], schema="assessments"
    )

    op.create_table(
        "user_stats",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("courses_enrolled", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("courses_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("certificates_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_learning_time_minutes", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("average_completion_rate", sa.Numeric(5, 4), nullable=False, server_default="0.0000"),
        sa.Column("current_streak_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("calculated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        schema="users",
    )
    op.create_index(
        "ix_user_stats_courses_completed", "user_stats", [sa.text("courses_completed DESC")], schema="users"
    )
    op.create_index(
        "ix_user_stats_learning_time", "user_stats", [sa.text("total_learning_time_minutes DESC")], schema="users"
    )
    op.create_index(
        "ix_user_stats_current_streak", "user_stats", [sa.text("current_streak_days DESC")], schema="users"
    )


def downgrade() -> None:
    op.drop_table("user_stats", schema="users")
    op.drop_table("quiz_responses", schema="assessments")
    op.drop_table("quiz_questions", schema="assessments")
