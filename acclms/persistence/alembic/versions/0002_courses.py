"""add course catalog tables

Revision ID: 0002_courses
Revises: 0001_auth_users
Create Date: 2026-10-01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from acclms.persistence.provisioning import updated_at_trigger_sql


revision = "0002_courses"
down_revision = "0001_auth_users"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "course_categories",
        sa.Column("category_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "parent_category_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.course_categories.category_id"),
            nullable=True,
        ),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        schema="courses",
    )

    op.create_table(
        "courses",
        sa.Column("course_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        # instructor_id references auth.users by value; no cross-schema foreign key.
        sa.Column("instructor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "category_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.course_categories.category_id"),
            nullable=True,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        sa.Column("short_description", sa.Text(), nullable=False),
        sa.Column("full_description", sa.Text(), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("currency", sa.Text(), nullable=False, server_default="USD"),
        sa.Column("difficulty_level", sa.Text(), nullable=False, server_default="beginner"),
        sa.Column("estimated_duration_hours", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("language", sa.Text(), nullable=False, server_default="en"),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("average_rating", sa.Numeric(3, 2), nullable=False, server_default="0.00"),
        sa.Column("total_ratings", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_enrollments", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("requirements", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column(
            "learning_objectives",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("price_cents >= 0", name="ck_courses_price_non_negative"),
        sa.CheckConstraint(
            "difficulty_level IN ('beginner', 'intermediate', 'advanced')", name="ck_courses_difficulty"
        ),
        sa.CheckConstraint("average_rating >= 0 AND average_rating <= 5", name="ck_courses_rating_range"),
        schema="courses",
    )
    op.create_index("ix_courses_courses_instructor_id", "courses", ["instructor_id"], schema="courses")
    op.create_index("ix_courses_courses_category_id", "courses", ["category_id"], schema="courses")
    op.create_index("ix_courses_published", "courses", ["is_published", "published_at"], schema="courses")
    op.create_index(
        "ix_courses_rating",
        "courses",
        ["average_rating"],
        schema="courses",
        postgresql_where=sa.text("deleted_at IS NULL"),
    )
    op.execute(
        "CREATE INDEX ix_courses_text_search ON courses.courses "
        "USING gin (to_tsvector('simple', title || ' ' || short_description))"
    )
    op.execute(updated_at_trigger_sql("courses", "courses"))

    op.create_table(
        "course_sections",
        sa.Column("section_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.courses.course_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        schema="courses",
    )
    op.create_index("ix_courses_course_sections_course_id", "course_sections", ["course_id"], schema="courses")

    op.create_table(
        "lessons",
        sa.Column("lesson_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "section_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.course_sections.section_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.courses.course_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content_type", sa.Text(), nullable=False, server_default="video"),
        sa.Column("content_ref", sa.Text(), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_preview", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "content_type IN ('video', 'article', 'quiz', 'assignment', 'live_session')",
            name="ck_lessons_content_type",
        ),
        schema="courses",
    )
    op.create_index("ix_courses_lessons_section_id", "lessons", ["section_id"], schema="courses")
    op.create_index("ix_courses_lessons_course_id", "lessons", ["course_id"], schema="courses")
    op.execute(updated_at_trigger_sql("courses", "lessons"))

    op.execute(
        "INSERT INTO courses.course_categories (name, slug, description, sort_order) VALUES "
        "('Programming', 'programming', 'Software development and coding courses', 1), "
        "('Data Science', 'data-science', 'Data analysis and machine learning', 2), "
        "('Business', 'business', 'Business and entrepreneurship', 3), "
        "('Design', 'design', 'UI/UX and graphic design', 4) "
        "ON CONFLICT (slug) DO NOTHING"
    )


def downgrade() -> None:
    op.drop_table("lessons", schema="courses")
    op.drop_table("course_sections", schema="courses")
    op.execute("DROP INDEX IF EXISTS courses.ix_courses_text_search")
    op.drop_table("courses", schema="courses")
    op.drop_table("course_categories", schema="courses")
