from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from acclms.domain.models import Course
from acclms.persistence.repos import courses as courses_repo
from acclms.services.references import ensure_reference


logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def page_window(page: int, page_size: int) -> tuple[int, int]:
    # Clamp client paging so a single request cannot scan the whole catalog.
    page = max(1, int(page))
    page_size = min(MAX_PAGE_SIZE, max(1, int(page_size)))
    return (page - 1) * page_size, page_size


async def list_courses(
    session: AsyncSession,
    *,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    category: str | None = None,
    difficulty: str | None = None,
    language: str | None = None,
    max_price_cents: int | None = None,
) -> tuple[list[Course], int]:
    offset, limit = page_window(page, page_size)
    return await courses_repo.list_courses(
        session,
        category_slug=category,
        difficulty=difficulty,
        language=language,
        max_price_cents=max_price_cents,
        offset=offset,
        limit=limit,
    )


async def search_courses(
    session: AsyncSession, query: str, *, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE
) -> tuple[list[Course], int]:
    if not query.strip():
        return [], 0
    offset, limit = page_window(page, page_size)
    return await courses_repo.search_courses(session, query, offset=offset, limit=limit)


async def featured_courses(session: AsyncSession, *, limit: int = 10) -> list[Course]:
    return await courses_repo.list_featured(session, limit=min(MAX_PAGE_SIZE, max(1, limit)))


async def popular_courses(session: AsyncSession, *, limit: int = 10) -> list[Course]:
    return await courses_repo.list_popular(session, limit=min(MAX_PAGE_SIZE, max(1, limit)))


async def create_course(
    session: AsyncSession,
    *,
    instructor_id: UUID,
    title: str,
    slug: str,
    short_description: str,
    price_cents: int = 0,
    currency: str = "USD",
    difficulty_level: str = "beginner",
    category_id: UUID | None = None,
) -> Course:
    if price_cents < 0:
        raise ValueError("price_cents must be non-negative")
    await ensure_reference(session, "auth.users", instructor_id, source="courses.courses.instructor_id")
    course = Course(
        instructor_id=instructor_id,
        title=title,
        slug=slug,
        short_description=short_description,
        price_cents=price_cents,
        currency=currency,
        difficulty_level=difficulty_level,
        category_id=category_id,
    )
    session.add(course)
    await session.flush()
    return course


async def publish_course(session: AsyncSession, course: Course) -> Course:
    # published_at records the first publication and is never moved afterwards.
    if not course.is_published:
        course.is_published = True
        if course.published_at is None:
            course.published_at = datetime.now(timezone.utc)
        await session.flush()
        logger.info("course_published course_id=%s", course.course_id)
    return course


def apply_rating(course: Course, rating: int) -> Decimal:
    """Fold one new rating into the course's running average."""
    if not 1 <= rating <= 5:
        raise ValueError("rating must be between 1 and 5")
    total = course.total_ratings or 0
    current = Decimal(course.average_rating or 0)
    average = (current * total + Decimal(rating)) / Decimal(total + 1)
    course.average_rating = average.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    course.total_ratings = total + 1
    return course.average_rating
