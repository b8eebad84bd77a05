from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    FetchedValue,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import ENUM, INET, JSONB, UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from acclms.domain import states


REFERENCES_INFO_KEY = "references"


class Base(DeclarativeBase):
    # Fetch server-generated values (order numbers, deadlines, updated_at) via RETURNING;
    # async sessions cannot lazy-load expired attributes.
    __mapper_args__ = {"eager_defaults": True}


def _uuid_pk() -> Mapped[UUID]:
    return mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)


def cross_ref(target: str, *, nullable: bool = False, index: bool = True) -> Mapped[Any]:
    # Bare UUID pointing into another schema; no ForeignKey so services stay deployable on their own.
    return mapped_column(
        PG_UUID(as_uuid=True),
        nullable=nullable,
        index=index,
        info={REFERENCES_INFO_KEY: target},
    )


def _pg_enum(values: tuple[str, ...], name: str, schema: str) -> ENUM:
    # Types are created by migrations; the ORM only binds to them.
    return ENUM(*values, name=name, schema=schema, create_type=False)


def _created_at() -> Mapped[datetime]:
    return mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


def _updated_at() -> Mapped[datetime]:
    # Refreshed by the shared update_updated_at_column() trigger on every UPDATE.
    return mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        server_onupdate=FetchedValue(),
        nullable=False,
    )


# --- auth -----------------------------------------------------------------


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(f"role IN ({', '.join(repr(r) for r in states.USER_ROLES)})", name="ck_users_role"),
        {"schema": "auth"},
    )

    user_id: Mapped[UUID] = _uuid_pk()
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(Text, nullable=False)
    first_name: Mapped[str] = mapped_column(Text, nullable=False)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(Text, nullable=False, default="student")
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    timezone: Mapped[str] = mapped_column(Text, nullable=False, server_default="UTC")
    language_preference: Mapped[str] = mapped_column(Text, nullable=False, server_default="en")
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()
    # Soft delete keeps the UUID resolvable for rows in other schemas.
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"
    __table_args__ = {"schema": "auth"}

    token_id: Mapped[UUID] = _uuid_pk()
    # Same-schema link, so a real foreign key is allowed here.
    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("auth.users.user_id", ondelete="CASCADE"), index=True
    )
    token_hash: Mapped[str] = mapped_column(Text, nullable=False)
    device_fingerprint: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = _created_at()
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# --- users ----------------------------------------------------------------


class UserPreferences(Base):
    __tablename__ = "user_preferences"
    __table_args__ = {"schema": "users"}

    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, info={REFERENCES_INFO_KEY: "auth.users"}
    )
    language: Mapped[str] = mapped_column(Text, nullable=False, default="en")
    theme: Mapped[str] = mapped_column(Text, nullable=False, default="system")
    email_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    push_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    marketing_emails: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    course_reminders: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    weekly_progress_email: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = _updated_at()


class UserStats(Base):
    """Denormalized learning statistics, recomputed by ``services.users.refresh_user_stats``."""

    __tablename__ = "user_stats"
    __table_args__ = {"schema": "users"}

    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, info={REFERENCES_INFO_KEY: "auth.users"}
    )
    courses_enrolled: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    courses_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    certificates_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_learning_time_minutes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    average_completion_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 4), nullable=False, default=Decimal("0.0000")
    )
    current_streak_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_activity_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


# Leaderboard orderings.
Index("ix_user_stats_courses_completed", UserStats.courses_completed.desc())
Index("ix_user_stats_learning_time", UserStats.total_learning_time_minutes.desc())
Index("ix_user_stats_current_streak", UserStats.current_streak_days.desc())


# --- courses --------------------------------------------------------------


class CourseCategory(Base):
    __tablename__ = "course_categories"
    __table_args__ = {"schema": "courses"}

    category_id: Mapped[UUID] = _uuid_pk()
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_category_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("courses.course_categories.category_id"), nullable=True
    )
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = _created_at()


class Course(Base):
    __tablename__ = "courses"
    __table_args__ = (
        CheckConstraint("price_cents >= 0", name="ck_courses_price_non_negative"),
        CheckConstraint(
            f"difficulty_level IN ({', '.join(repr(d) for d in states.COURSE_DIFFICULTIES)})",
            name="ck_courses_difficulty",
        ),
        CheckConstraint("average_rating >= 0 AND average_rating <= 5", name="ck_courses_rating_range"),
        Index("ix_courses_published", "is_published", "published_at"),
        {"schema": "courses"},
    )

    course_id: Mapped[UUID] = _uuid_pk()
    instructor_id: Mapped[UUID] = cross_ref("auth.users")
    category_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("courses.course_categories.category_id"), nullable=True, index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    short_description: Mapped[str] = mapped_column(Text, nullable=False)
    full_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Money is always integer cents.
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(Text, nullable=False, default="USD")
    difficulty_level: Mapped[str] = mapped_column(Text, nullable=False, default="beginner")
    estimated_duration_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    language: Mapped[str] = mapped_column(Text, nullable=False, default="en")
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Aggregates are maintained by acclms.services.courses, not by triggers.
    average_rating: Mapped[Decimal] = mapped_column(Numeric(3, 2), nullable=False, default=Decimal("0.00"))
    total_ratings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_enrollments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    requirements: Mapped[list[Any]] = mapped_column(JSONB, nullable=False, default=list)
    learning_objectives: Mapped[list[Any]] = mapped_column(JSONB, nullable=False, default=list)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class CourseSection(Base):
    __tablename__ = "course_sections"
    __table_args__ = {"schema": "courses"}

    section_id: Mapped[UUID] = _uuid_pk()
    course_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("courses.courses.course_id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = _created_at()


class Lesson(Base):
    __tablename__ = "lessons"
    __table_args__ = (
        CheckConstraint(
            "content_type IN ('video', 'article', 'quiz', 'assignment', 'live_session')",
            name="ck_lessons_content_type",
        ),
        {"schema": "courses"},
    )

    lesson_id: Mapped[UUID] = _uuid_pk()
    section_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("courses.course_sections.section_id", ondelete="CASCADE"), index=True
    )
    course_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("courses.courses.course_id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str] = mapped_column(Text, nullable=False, default="video")
    content_ref: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_preview: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


# --- enrollments ----------------------------------------------------------


class Enrollment(Base):
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_enrollments_user_course"),
        CheckConstraint(states.ENROLLMENT.check_sql(), name="ck_enrollments_status"),
        CheckConstraint(
            "progress_percentage >= 0 AND progress_percentage <= 100",
            name="ck_enrollments_progress_range",
        ),
        {"schema": "enrollments"},
    )

    enrollment_id: Mapped[UUID] = _uuid_pk()
    user_id: Mapped[UUID] = cross_ref("auth.users")
    course_id: Mapped[UUID] = cross_ref("courses.courses")
    status: Mapped[str] = mapped_column(Text, nullable=False, default=states.ENROLLMENT_STATUS_ACTIVE)
    # Never decreases; see acclms.services.enrollments.record_progress.
    progress_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_accessed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    certificate_issued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    enrollment_source: Mapped[str] = mapped_column(Text, nullable=False, default="purchase")
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class LessonProgress(Base):
    __tablename__ = "lesson_progress"
    __table_args__ = (
        UniqueConstraint("enrollment_id", "lesson_id", name="uq_lesson_progress_enrollment_lesson"),
        CheckConstraint(states.LESSON_PROGRESS.check_sql(), name="ck_lesson_progress_status"),
        {"schema": "enrollments"},
    )

    progress_id: Mapped[UUID] = _uuid_pk()
    enrollment_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("enrollments.enrollments.enrollment_id", ondelete="CASCADE"),
        index=True,
    )
    lesson_id: Mapped[UUID] = cross_ref("courses.lessons")
    user_id: Mapped[UUID] = cross_ref("auth.users")
    status: Mapped[str] = mapped_column(Text, nullable=False, default="not_started")
    time_spent_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_position_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    first_accessed_at: Mapped[datetime] = _created_at()
    last_accessed_at: Mapped[datetime] = _created_at()


# --- assessments ----------------------------------------------------------


class Quiz(Base):
    __tablename__ = "quizzes"
    __table_args__ = {"schema": "assessments"}

    quiz_id: Mapped[UUID] = _uuid_pk()
    course_id: Mapped[UUID] = cross_ref("courses.courses")
    lesson_id: Mapped[UUID | None] = cross_ref("courses.lessons", nullable=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    passing_score_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("70.00")
    )
    time_limit_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class QuizSubmission(Base):
    __tablename__ = "quiz_submissions"
    __table_args__ = (
        CheckConstraint(states.QUIZ_SUBMISSION.check_sql(), name="ck_quiz_submissions_status"),
        {"schema": "assessments"},
    )

    submission_id: Mapped[UUID] = _uuid_pk()
    quiz_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("assessments.quizzes.quiz_id"), index=True
    )
    user_id: Mapped[UUID] = cross_ref("auth.users")
    enrollment_id: Mapped[UUID] = cross_ref("enrollments.enrollments")
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="in_progress")
    score: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    max_score: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    passed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    started_at: Mapped[datetime] = _created_at()
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    graded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"
    __table_args__ = (
        CheckConstraint(
            f"question_type IN ({', '.join(repr(t) for t in states.QUESTION_TYPES)})",
            name="ck_quiz_questions_type",
        ),
        CheckConstraint("points >= 0", name="ck_quiz_questions_points_non_negative"),
        {"schema": "assessments"},
    )

    question_id: Mapped[UUID] = _uuid_pk()
    quiz_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("assessments.quizzes.quiz_id", ondelete="CASCADE"), index=True
    )
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[str] = mapped_column(Text, nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    options: Mapped[list[Any]] = mapped_column(JSONB, nullable=False, default=list)
    correct_answers: Mapped[list[Any]] = mapped_column(JSONB, nullable=False, default=list)
    code_language: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at()


class QuizResponse(Base):
    __tablename__ = "quiz_responses"
    __table_args__ = (
        UniqueConstraint("submission_id", "question_id", name="uq_quiz_responses_submission_question"),
        {"schema": "assessments"},
    )

    response_id: Mapped[UUID] = _uuid_pk()
    submission_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("assessments.quiz_submissions.submission_id", ondelete="CASCADE"),
        index=True,
    )
    question_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("assessments.quiz_questions.question_id"), index=True
    )
    answer_data: Mapped[Any] = mapped_column(JSONB, nullable=False)
    # None until graded; essay and code answers stay None until an instructor scores them.
    is_correct: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    points_earned: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    instructor_feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    auto_graded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = _created_at()


# --- payments -------------------------------------------------------------


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint(states.ORDER.check_sql(), name="ck_orders_status"),
        CheckConstraint(r"order_number ~ '^ORD-[0-9]{4}-[0-9]{6,}$'", name="ck_orders_number_format"),
        CheckConstraint("total_cents >= 0", name="ck_orders_total_non_negative"),
        Index("ix_orders_created_at", "created_at"),
        {"schema": "payments"},
    )

    order_id: Mapped[UUID] = _uuid_pk()
    user_id: Mapped[UUID] = cross_ref("auth.users")
    course_id: Mapped[UUID] = cross_ref("courses.courses")
    order_number: Mapped[str] = mapped_column(
        Text,
        unique=True,
        nullable=False,
        server_default=text("payments.generate_order_number()"),
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, default=states.ORDER_STATUS_PENDING, index=True)
    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    tax_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(Text, nullable=False, default="USD")
    payment_provider: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_intent_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    discount_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_json: Mapped[dict[str, Any]] = mapped_column("metadata", JSONB, nullable=False, default=dict)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint(
            f"transaction_type IN ({', '.join(repr(t) for t in states.TRANSACTION_TYPES)})",
            name="ck_transactions_type",
        ),
        {"schema": "payments"},
    )

    transaction_id: Mapped[UUID] = _uuid_pk()
    order_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("payments.orders.order_id"), index=True
    )
    provider: Mapped[str] = mapped_column(Text, nullable=False)
    provider_transaction_id: Mapped[str] = mapped_column(Text, nullable=False)
    transaction_type: Mapped[str] = mapped_column(Text, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    processed_at: Mapped[datetime] = _created_at()


class DiscountCode(Base):
    __tablename__ = "discount_codes"
    __table_args__ = (
        CheckConstraint(
            f"discount_type IN ({', '.join(repr(t) for t in states.DISCOUNT_TYPES)})",
            name="ck_discount_codes_type",
        ),
        {"schema": "payments"},
    )

    code_id: Mapped[UUID] = _uuid_pk()
    code: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    discount_type: Mapped[str] = mapped_column(Text, nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    minimum_order_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_uses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    valid_from: Mapped[datetime] = _created_at()
    valid_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[UUID] = cross_ref("auth.users", index=False)
    created_at: Mapped[datetime] = _created_at()


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("course_id", "user_id", name="uq_reviews_course_user"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating"),
        {"schema": "payments"},
    )

    review_id: Mapped[UUID] = _uuid_pk()
    course_id: Mapped[UUID] = cross_ref("courses.courses")
    user_id: Mapped[UUID] = cross_ref("auth.users")
    enrollment_id: Mapped[UUID] = cross_ref("enrollments.enrollments", index=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    review_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    review_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


# --- notifications --------------------------------------------------------


class NotificationTemplate(Base):
    __tablename__ = "templates"
    __table_args__ = (
        CheckConstraint(
            f"type IN ({', '.join(repr(t) for t in states.NOTIFICATION_TYPES)})",
            name="ck_templates_type",
        ),
        {"schema": "notifications"},
    )

    template_id: Mapped[UUID] = _uuid_pk()
    name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    subject: Mapped[str | None] = mapped_column(Text, nullable=True)
    body_template: Mapped[str] = mapped_column(Text, nullable=False)
    variables: Mapped[list[Any]] = mapped_column(JSONB, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class UserNotification(Base):
    __tablename__ = "user_notifications"
    __table_args__ = (
        CheckConstraint(
            f"status IN ({', '.join(repr(s) for s in states.NOTIFICATION_STATUSES)})",
            name="ck_user_notifications_status",
        ),
        {"schema": "notifications"},
    )

    notification_id: Mapped[UUID] = _uuid_pk()
    user_id: Mapped[UUID] = cross_ref("auth.users")
    template_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("notifications.templates.template_id"), nullable=True
    )
    type: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = _created_at()


# --- analytics ------------------------------------------------------------


class AnalyticsEvent(Base):
    __tablename__ = "events"
    __table_args__ = (
        # Partition routing depends on this; the service sets it, the CHECK proves it.
        CheckConstraint(
            "created_month = (date_trunc('month', \"timestamp\" AT TIME ZONE 'UTC'))::date",
            name="ck_events_created_month",
        ),
        {"schema": "analytics", "postgresql_partition_by": "RANGE (created_month)"},
    )

    # PostgreSQL requires the partition key inside the primary key.
    event_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    created_month: Mapped[date] = mapped_column(Date, primary_key=True)
    event_type: Mapped[str] = mapped_column(
        _pg_enum(states.ANALYTICS_EVENT_TYPES, "event_type", "analytics"), nullable=False
    )
    custom_event_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    tenant_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    user_id: Mapped[UUID | None] = cross_ref("auth.users", nullable=True, index=False)
    session_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False)
    timestamp: Mapped[datetime] = mapped_column("timestamp", DateTime(timezone=True), nullable=False)
    page_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    referrer: Mapped[str | None] = mapped_column(Text, nullable=True)
    platform: Mapped[str] = mapped_column(
        _pg_enum(states.ANALYTICS_PLATFORMS, "platform", "analytics"), nullable=False, default="unknown"
    )
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(INET, nullable=True)
    country_code: Mapped[str | None] = mapped_column(String(2), nullable=True)
    properties: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    duration_ms: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    entity_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    entity_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)


class AnalyticsSession(Base):
    __tablename__ = "sessions"
    __table_args__ = {"schema": "analytics"}

    session_id: Mapped[UUID] = _uuid_pk()
    tenant_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    user_id: Mapped[UUID | None] = cross_ref("auth.users", nullable=True)
    started_at: Mapped[datetime] = _created_at()
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_activity_at: Mapped[datetime] = _created_at()
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    entry_page: Mapped[str | None] = mapped_column(Text, nullable=True)
    exit_page: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Incremented by the analytics.update_session_stats() trigger.
    page_views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    events_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    platform: Mapped[str] = mapped_column(
        _pg_enum(states.ANALYTICS_PLATFORMS, "platform", "analytics"), nullable=False, default="unknown"
    )
    created_at: Mapped[datetime] = _created_at()


# --- compliance -----------------------------------------------------------


class DataRightsRequest(Base):
    __tablename__ = "data_rights_requests"
    __table_args__ = {"schema": "compliance"}

    id: Mapped[UUID] = _uuid_pk()
    user_id: Mapped[UUID | None] = cross_ref("auth.users", nullable=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    jurisdiction: Mapped[str] = mapped_column(
        _pg_enum(states.JURISDICTIONS, "jurisdiction", "compliance"), nullable=False
    )
    right_type: Mapped[str] = mapped_column(
        _pg_enum(states.DATA_RIGHT_TYPES, "data_right_type", "compliance"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        _pg_enum(states.DATA_RIGHTS_REQUEST.statuses, "request_status", "compliance"),
        nullable=False,
        default="received",
    )
    specific_request: Mapped[str | None] = mapped_column(Text, nullable=True)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    # Filled by the set_request_deadline trigger when omitted.
    deadline_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=FetchedValue(), nullable=False
    )
    extended_deadline_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    identity_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    identity_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    decision: Mapped[str | None] = mapped_column(Text, nullable=True)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    appealed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    appeal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    tenant_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class ConsentRecord(Base):
    __tablename__ = "consent_records"
    __table_args__ = {"schema": "compliance"}

    id: Mapped[UUID] = _uuid_pk()
    user_id: Mapped[UUID | None] = cross_ref("auth.users", nullable=True)
    anonymous_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    consent_type: Mapped[str] = mapped_column(
        _pg_enum(states.CONSENT_TYPES, "consent_type", "compliance"), nullable=False
    )
    granted: Mapped[bool] = mapped_column(Boolean, nullable=False)
    policy_version: Mapped[str] = mapped_column(String(50), nullable=False)
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    consented_at: Mapped[datetime] = _created_at()
    withdrawn_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = _created_at()


# --- content --------------------------------------------------------------


class ContentAsset(Base):
    __tablename__ = "assets"
    __table_args__ = (
        CheckConstraint("size_bytes > 0", name="ck_assets_size_positive"),
        Index("ix_assets_course_lesson", "course_id", "lesson_id"),
        {"schema": "content"},
    )

    asset_id: Mapped[UUID] = _uuid_pk()
    owner_id: Mapped[UUID] = cross_ref("auth.users")
    tenant_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    course_id: Mapped[UUID | None] = cross_ref("courses.courses", nullable=True, index=False)
    lesson_id: Mapped[UUID | None] = cross_ref("courses.lessons", nullable=True, index=False)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    checksum: Mapped[str | None] = mapped_column(String(64), nullable=True)
    storage_key: Mapped[str] = mapped_column(String(500), unique=True, nullable=False)
    storage_backend: Mapped[str] = mapped_column(String(20), nullable=False, default="local")
    storage_bucket: Mapped[str | None] = mapped_column(String(255), nullable=True)
    asset_type: Mapped[str] = mapped_column(_pg_enum(states.ASSET_TYPES, "asset_type", "content"), nullable=False)
    status: Mapped[str] = mapped_column(
        _pg_enum(states.CONTENT_ASSET.statuses, "processing_status", "content"),
        nullable=False,
        default="pending",
        index=True,
    )
    metadata_json: Mapped[dict[str, Any]] = mapped_column("metadata", JSONB, nullable=False, default=dict)
    processing_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processing_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processing_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


def _asset_fk() -> Mapped[UUID]:
    return mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("content.assets.asset_id", ondelete="CASCADE"), index=True
    )


class VideoVariant(Base):
    __tablename__ = "video_variants"
    __table_args__ = (
        UniqueConstraint("asset_id", "quality", "codec", name="uq_video_variants_asset_quality_codec"),
        {"schema": "content"},
    )

    variant_id: Mapped[UUID] = _uuid_pk()
    asset_id: Mapped[UUID] = _asset_fk()
    quality: Mapped[str] = mapped_column(String(20), nullable=False)
    codec: Mapped[str] = mapped_column(String(20), nullable=False)
    bitrate_kbps: Mapped[int] = mapped_column(Integer, nullable=False)
    width: Mapped[int] = mapped_column(Integer, nullable=False)
    height: Mapped[int] = mapped_column(Integer, nullable=False)
    storage_key: Mapped[str] = mapped_column(String(500), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_ready: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = _created_at()


class Thumbnail(Base):
    __tablename__ = "thumbnails"
    __table_args__ = (
        UniqueConstraint("asset_id", "thumbnail_type", name="uq_thumbnails_asset_type"),
        {"schema": "content"},
    )

    thumbnail_id: Mapped[UUID] = _uuid_pk()
    asset_id: Mapped[UUID] = _asset_fk()
    thumbnail_type: Mapped[str] = mapped_column(String(20), nullable=False)
    width: Mapped[int] = mapped_column(Integer, nullable=False)
    height: Mapped[int] = mapped_column(Integer, nullable=False)
    timestamp_seconds: Mapped[Decimal | None] = mapped_column(Numeric(10, 3), nullable=True)
    storage_key: Mapped[str] = mapped_column(String(500), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = _created_at()


class Transcription(Base):
    __tablename__ = "transcriptions"
    __table_args__ = (
        UniqueConstraint("asset_id", "language", "format", name="uq_transcriptions_asset_language_format"),
        {"schema": "content"},
    )

    transcription_id: Mapped[UUID] = _uuid_pk()
    asset_id: Mapped[UUID] = _asset_fk()
    language: Mapped[str] = mapped_column(String(10), nullable=False)
    format: Mapped[str] = mapped_column(String(10), nullable=False)
    is_auto_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    storage_key: Mapped[str] = mapped_column(String(500), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = _created_at()


class AssetAccessToken(Base):
    __tablename__ = "access_tokens"
    __table_args__ = (
        CheckConstraint(
            f"token_type IN ({', '.join(repr(t) for t in states.ACCESS_TOKEN_TYPES)})",
            name="ck_access_tokens_type",
        ),
        CheckConstraint("use_count <= max_uses", name="ck_access_tokens_uses"),
        {"schema": "content"},
    )

    token_id: Mapped[UUID] = _uuid_pk()
    asset_id: Mapped[UUID] = _asset_fk()
    user_id: Mapped[UUID | None] = cross_ref("auth.users", nullable=True)
    # Only the SHA-256 digest is stored; the raw token is returned once at issue time.
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    token_type: Mapped[str] = mapped_column(String(20), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    max_uses: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    use_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(INET, nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at()


class AssetUsageStats(Base):
    __tablename__ = "usage_stats"
    __table_args__ = (
        UniqueConstraint("asset_id", "period_start", "period_type", name="uq_usage_stats_asset_period"),
        CheckConstraint(
            f"period_type IN ({', '.join(repr(t) for t in states.USAGE_PERIOD_TYPES)})",
            name="ck_usage_stats_period_type",
        ),
        {"schema": "content"},
    )

    stat_id: Mapped[UUID] = _uuid_pk()
    asset_id: Mapped[UUID] = _asset_fk()
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_type: Mapped[str] = mapped_column(String(10), nullable=False)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    download_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stream_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bytes_transferred: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    unique_users: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = _updated_at()


# --- kb -------------------------------------------------------------------


class KbCategory(Base):
    __tablename__ = "categories"
    __table_args__ = (
        UniqueConstraint("slug", "tenant_id", name="uq_kb_categories_slug_tenant"),
        {"schema": "kb"},
    )

    category_id: Mapped[UUID] = _uuid_pk()
    tenant_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    color: Mapped[str | None] = mapped_column(String(7), nullable=True)
    parent_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("kb.categories.category_id", ondelete="SET NULL"), nullable=True, index=True
    )
    # Ancestor ids from the root down; depth == len(path).
    path: Mapped[list[Any]] = mapped_column(JSONB, nullable=False, default=list)
    depth: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    article_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class KbArticle(Base):
    __tablename__ = "articles"
    __table_args__ = (
        UniqueConstraint("slug", "tenant_id", name="uq_kb_articles_slug_tenant"),
        Index("ix_kb_articles_status_published", "status", "published_at"),
        {"schema": "kb"},
    )

    article_id: Mapped[UUID] = _uuid_pk()
    tenant_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    excerpt: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str] = mapped_column(
        _pg_enum(states.KB_CONTENT_TYPES, "content_type", "kb"), nullable=False, default="markdown"
    )
    rendered_html: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("kb.categories.category_id", ondelete="SET NULL"), nullable=True, index=True
    )
    tags: Mapped[list[Any]] = mapped_column(JSONB, nullable=False, default=list)
    meta_title: Mapped[str | None] = mapped_column(String(70), nullable=True)
    meta_description: Mapped[str | None] = mapped_column(String(160), nullable=True)
    meta_keywords: Mapped[list[Any]] = mapped_column(JSONB, nullable=False, default=list)
    status: Mapped[str] = mapped_column(
        _pg_enum(states.KB_ARTICLE.statuses, "article_status", "kb"), nullable=False, default="draft"
    )
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    visibility: Mapped[str] = mapped_column(
        _pg_enum(states.KB_VISIBILITIES, "article_visibility", "kb"), nullable=False, default="public"
    )
    allowed_roles: Mapped[list[Any]] = mapped_column(JSONB, nullable=False, default=list)
    author_id: Mapped[UUID] = cross_ref("auth.users")
    author_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    previous_version_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    helpful_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    not_helpful_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class KbArticleVersion(Base):
    __tablename__ = "article_versions"
    __table_args__ = (
        UniqueConstraint("article_id", "version_number", name="uq_kb_article_versions_number"),
        {"schema": "kb"},
    )

    version_id: Mapped[UUID] = _uuid_pk()
    article_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("kb.articles.article_id", ondelete="CASCADE"), index=True
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str] = mapped_column(
        _pg_enum(states.KB_CONTENT_TYPES, "content_type", "kb"), nullable=False
    )
    change_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    changed_by: Mapped[UUID] = cross_ref("auth.users", index=False)
    changed_at: Mapped[datetime] = _created_at()


class KbArticleFeedback(Base):
    __tablename__ = "article_feedback"
    __table_args__ = {"schema": "kb"}

    feedback_id: Mapped[UUID] = _uuid_pk()
    article_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("kb.articles.article_id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[UUID | None] = cross_ref("auth.users", nullable=True, index=False)
    anonymous_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_helpful: Mapped[bool] = mapped_column(Boolean, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(INET, nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at()


class KbRelatedArticle(Base):
    __tablename__ = "related_articles"
    __table_args__ = (
        CheckConstraint("article_id <> related_article_id", name="ck_related_articles_not_self"),
        {"schema": "kb"},
    )

    article_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("kb.articles.article_id", ondelete="CASCADE"), primary_key=True
    )
    related_article_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("kb.articles.article_id", ondelete="CASCADE"), primary_key=True
    )
    relevance_score: Mapped[Decimal] = mapped_column(Numeric(3, 2), nullable=False, default=Decimal("1.00"))
    created_at: Mapped[datetime] = _created_at()


# --- subscriptions --------------------------------------------------------


class Plan(Base):
    __tablename__ = "plans"
    __table_args__ = {"schema": "subscriptions"}

    id: Mapped[UUID] = _uuid_pk()
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    tier: Mapped[str] = mapped_column(
        _pg_enum(states.PLAN_TIERS, "plan_tier", "subscriptions"), nullable=False, default="basic"
    )
    billing_interval: Mapped[str] = mapped_column(
        _pg_enum(states.BILLING_INTERVALS, "billing_interval", "subscriptions"),
        nullable=False,
        default="monthly",
    )
    price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    trial_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    features: Mapped[list[Any]] = mapped_column(JSONB, nullable=False, default=list)
    limits: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class Subscription(Base):
    __tablename__ = "subscriptions"
    __table_args__ = {"schema": "subscriptions"}

    id: Mapped[UUID] = _uuid_pk()
    user_id: Mapped[UUID] = cross_ref("auth.users")
    plan_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("subscriptions.plans.id"), index=True
    )
    status: Mapped[str] = mapped_column(
        _pg_enum(states.SUBSCRIPTION.statuses, "subscription_status", "subscriptions"),
        nullable=False,
        default="pending",
    )
    current_period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    current_period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    trial_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    trial_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    metadata_json: Mapped[dict[str, Any]] = mapped_column("metadata", JSONB, nullable=False, default=dict)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = {"schema": "subscriptions"}

    id: Mapped[UUID] = _uuid_pk()
    subscription_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("subscriptions.subscriptions.id"), index=True
    )
    user_id: Mapped[UUID] = cross_ref("auth.users")
    invoice_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(
        _pg_enum(states.INVOICE.statuses, "invoice_status", "subscriptions"),
        nullable=False,
        default="draft",
    )
    subtotal_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    discount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    tax_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    line_items: Mapped[list[Any]] = mapped_column(JSONB, nullable=False, default=list)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()
