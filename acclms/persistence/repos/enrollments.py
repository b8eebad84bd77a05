from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.domain.models import Enrollment, LessonProgress


async def create_enrollment(
    session: AsyncSession,
    *,
    user_id: UUID,
    course_id: UUID,
    enrollment_source: str = "purchase",
    expires_at: datetime | None = None,
) -> Enrollment:
    enrollment = Enrollment(
        user_id=user_id,
        course_id=course_id,
        enrollment_source=enrollment_source,
        expires_at=expires_at,
        started_at=datetime.now(timezone.utc),
    )
    session.add(enrollment)
    # Flush now so the (user_id, course_id) unique constraint fires inside the caller's try block.
    await session.flush()
    return enrollment


async def get_enrollment(session: AsyncSession, enrollment_id: UUID) -> Enrollment | None:
    result = await session.execute(select(Enrollment).where(Enrollment.enrollment_id == enrollment_id))
    return result.scalar_one_or_none()


async def get_for_user_course(session: AsyncSession, user_id: UUID, course_id: UUID) -> Enrollment | None:
    result = await session.execute(
        select(Enrollment).where(Enrollment.user_id == user_id, Enrollment.course_id == course_id)
    )
    return result.scalar_one_or_none()


async def list_for_user(
    session: AsyncSession, user_id: UUID, *, status: str | None = None
) -> list[Enrollment]:
    stmt = select(Enrollment).where(Enrollment.user_id == user_id)
    if status:
        stmt = stmt.where(Enrollment.status == status)
    result = await session.execute(stmt.order_by(Enrollment.created_at.desc(), Enrollment.enrollment_id))
    return list(result.scalars().all())


async def get_lesson_progress(
    session: AsyncSession, enrollment_id: UUID, lesson_id: UUID
) -> LessonProgress | None:
    result = await session.execute(
        select(LessonProgress).where(
            LessonProgress.enrollment_id == enrollment_id,
            LessonProgress.lesson_id == lesson_id,
        )
    )
    return result.scalar_one_or_none()


async def list_lesson_progress(session: AsyncSession, enrollment_id: UUID) -> list[LessonProgress]:
    result = await session.execute(
        select(LessonProgress)
        .where(LessonProgress.enrollment_id == enrollment_id)
        .order_by(LessonProgress.first_accessed_at, LessonProgress.progress_id)
    )
    return list(result.scalars().all())


async def count_completed_lessons(session: AsyncSession, enrollment_id: UUID) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(LessonProgress)
        .where(LessonProgress.enrollment_id == enrollment_id, LessonProgress.status == "completed")
    )
    return int(result.scalar() or 0)
