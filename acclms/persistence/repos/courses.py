from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.domain.models import Course, CourseCategory, Lesson


LIKE_ESCAPE = "\\"


def contains_pattern(term: str) -> str:
    # User input matches literally: wildcards and the escape character itself are escaped.
    escaped = (
        term.strip()
        .replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def _visible():
    # Catalog queries only ever expose published, non-deleted courses.
    return (Course.is_published.is_(True), Course.deleted_at.is_(None))


async def list_courses(
    session: AsyncSession,
    *,
    category_slug: str | None = None,
    difficulty: str | None = None,
    language: str | None = None,
    max_price_cents: int | None = None,
    offset: int = 0,
    limit: int = 20,
) -> tuple[list[Course], int]:
    stmt = select(Course).where(*_visible())
    if category_slug:
        stmt = stmt.join(CourseCategory, CourseCategory.category_id == Course.category_id).where(
            CourseCategory.slug == category_slug
        )
    if difficulty:
        stmt = stmt.where(Course.difficulty_level == difficulty)
    if language:
        stmt = stmt.where(Course.language == language)
    if max_price_cents is not None:
        stmt = stmt.where(Course.price_cents <= max_price_cents)
    total = await session.scalar(select(func.count()).select_from(stmt.subquery()))
    result = await session.execute(
        stmt.order_by(Course.published_at.desc(), Course.course_id).offset(offset).limit(limit)
    )
    return list(result.scalars().all()), int(total or 0)


async def search_courses(
    session: AsyncSession, query: str, *, offset: int = 0, limit: int = 20
) -> tuple[list[Course], int]:
    pattern = contains_pattern(query)
    stmt = select(Course).where(
        *_visible(),
        or_(
            Course.title.ilike(pattern, escape=LIKE_ESCAPE),
            Course.short_description.ilike(pattern, escape=LIKE_ESCAPE),
        ),
    )
    total = await session.scalar(select(func.count()).select_from(stmt.subquery()))
    result = await session.execute(
        stmt.order_by(Course.total_enrollments.desc(), Course.course_id).offset(offset).limit(limit)
    )
    return list(result.scalars().all()), int(total or 0)


async def list_featured(session: AsyncSession, *, limit: int = 10) -> list[Course]:
    # Featured ranks by rating, breaking ties with rating volume.
    result = await session.execute(
        select(Course)
        .where(*_visible(), Course.total_ratings > 0)
        .order_by(Course.average_rating.desc(), Course.total_ratings.desc(), Course.course_id)
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_popular(session: AsyncSession, *, limit: int = 10) -> list[Course]:
    result = await session.execute(
        select(Course)
        .where(*_visible())
        .order_by(Course.total_enrollments.desc(), Course.course_id)
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_by_instructor(session: AsyncSession, instructor_id: UUID) -> list[Course]:
    result = await session.execute(
        select(Course)
        .where(*_visible(), Course.instructor_id == instructor_id)
        .order_by(Course.created_at, Course.course_id)
    )
    return list(result.scalars().all())


async def list_categories(session: AsyncSession) -> list[CourseCategory]:
    result = await session.execute(
        select(CourseCategory)
        .where(CourseCategory.is_active.is_(True))
        .order_by(CourseCategory.sort_order, CourseCategory.name)
    )
    return list(result.scalars().all())


async def get_course(session: AsyncSession, course_id: UUID) -> Course | None:
    result = await session.execute(
        select(Course).where(Course.course_id == course_id, Course.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def get_course_by_slug(session: AsyncSession, slug: str) -> Course | None:
    result = await session.execute(
        select(Course).where(Course.slug == slug, Course.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def get_lesson(session: AsyncSession, lesson_id: UUID) -> Lesson | None:
    result = await session.execute(select(Lesson).where(Lesson.lesson_id == lesson_id))
    return result.scalar_one_or_none()


async def count_lessons(session: AsyncSession, course_id: UUID) -> int:
    result = await session.execute(
        select(func.count()).select_from(Lesson).where(Lesson.course_id == course_id)
    )
    return int(result.scalar() or 0)


async def increment_enrollments(session: AsyncSession, course_id: UUID, *, delta: int = 1) -> None:
    # Single UPDATE keeps concurrent enrollments from losing increments.
    await session.execute(
        update(Course)
        .where(Course.course_id == course_id)
        .values(total_enrollments=Course.total_enrollments + delta)
    )
