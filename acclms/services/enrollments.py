from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.core.errors import CourseNotPublishedError, DuplicateEnrollmentError, ReferenceIntegrityError
from acclms.domain import states
from acclms.domain.models import Enrollment, LessonProgress
from acclms.persistence.repos import courses as courses_repo
from acclms.persistence.repos import enrollments as enrollments_repo
from acclms.services.references import ensure_reference


logger = logging.getLogger(__name__)

_HUNDRED = Decimal("100.00")
_ACCESS_STATUSES = frozenset({states.ENROLLMENT_STATUS_ACTIVE, states.ENROLLMENT_STATUS_COMPLETED})


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def enroll(
    session: AsyncSession,
    *,
    user_id: UUID,
    course_id: UUID,
    enrollment_source: str = "purchase",
    expires_at: datetime | None = None,
) -> Enrollment:
    """Enroll a user after validating both cross-schema references.

    The (user_id, course_id) unique constraint is the arbiter for concurrent
    attempts; its violation surfaces as :class:`DuplicateEnrollmentError`.
    """
    await ensure_reference(session, "auth.users", user_id, source="enrollments.enrollments.user_id")
    course = await courses_repo.get_course(session, course_id)
    if course is None:
        raise ReferenceIntegrityError(
            source="enrollments.enrollments.course_id", target="courses.courses", value=course_id
        )
    if not course.is_published:
        raise CourseNotPublishedError(f"course {course_id} is not published")
    try:
        async with session.begin_nested():
            enrollment = await enrollments_repo.create_enrollment(
                session,
                user_id=user_id,
                course_id=course_id,
                enrollment_source=enrollment_source,
                expires_at=expires_at,
            )
    except IntegrityError as exc:
        if "uq_enrollments_user_course" in str(exc.orig):
            raise DuplicateEnrollmentError(f"user {user_id} is already enrolled in {course_id}") from exc
        raise
    await courses_repo.increment_enrollments(session, course_id)
    logger.info("enrollment_created enrollment_id=%s course_id=%s", enrollment.enrollment_id, course_id)
    return enrollment


def has_access(enrollment: Enrollment, now: datetime | None = None) -> bool:
    if enrollment.status not in _ACCESS_STATUSES:
        return False
    if enrollment.expires_at is None:
        return True
    return enrollment.expires_at > (now or _now())


async def transition_enrollment(session: AsyncSession, enrollment: Enrollment, status: str) -> Enrollment:
    states.ENROLLMENT.require_transition(enrollment.status, status)
    enrollment.status = status
    if status == states.ENROLLMENT_STATUS_COMPLETED and enrollment.completed_at is None:
        enrollment.completed_at = _now()
    await session.flush()
    return enrollment


def _clamp_percentage(value: Decimal | float | int) -> Decimal:
    pct = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return max(Decimal("0.00"), min(_HUNDRED, pct))


async def record_progress(
    session: AsyncSession, enrollment: Enrollment, percentage: Decimal | float | int
) -> bool:
    """Raise progress to ``percentage``; lower values are ignored.

    Returns whether the stored value changed. Reaching 100 completes an
    active enrollment.
    """
    if enrollment.status != states.ENROLLMENT_STATUS_ACTIVE:
        return False
    pct = _clamp_percentage(percentage)
    current = Decimal(enrollment.progress_percentage or 0)
    enrollment.last_accessed_at = _now()
    if pct <= current:
        await session.flush()
        return False
    enrollment.progress_percentage = pct
    if pct >= _HUNDRED:
        await transition_enrollment(session, enrollment, states.ENROLLMENT_STATUS_COMPLETED)
    else:
        await session.flush()
    return True


async def complete_lesson(
    session: AsyncSession,
    enrollment: Enrollment,
    lesson_id: UUID,
    *,
    time_spent_seconds: int = 0,
) -> LessonProgress:
    lesson = await courses_repo.get_lesson(session, lesson_id)
    if lesson is None or lesson.course_id != enrollment.course_id:
        raise ReferenceIntegrityError(
            source="enrollments.lesson_progress.lesson_id", target="courses.lessons", value=lesson_id
        )
    now = _now()
    progress = await enrollments_repo.get_lesson_progress(session, enrollment.enrollment_id, lesson_id)
    if progress is None:
        progress = LessonProgress(
            enrollment_id=enrollment.enrollment_id,
            lesson_id=lesson_id,
            user_id=enrollment.user_id,
        )
        progress.status = "not_started"
        session.add(progress)
    if progress.status != "completed":
        progress.status = states.LESSON_PROGRESS.require_transition(progress.status, "completed")
        progress.completed_at = now
    progress.time_spent_seconds = (progress.time_spent_seconds or 0) + max(0, time_spent_seconds)
    progress.last_accessed_at = now
    await session.flush()

    total = await courses_repo.count_lessons(session, enrollment.course_id)
    if total:
        completed = await enrollments_repo.count_completed_lessons(session, enrollment.enrollment_id)
        await record_progress(session, enrollment, Decimal(completed) * _HUNDRED / Decimal(total))
    return progress
