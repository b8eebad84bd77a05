from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.apps.api.deps import Principal, _forbidden_error, get_db, require_role
from acclms.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from acclms.apps.api.response import Page, SuccessEnvelope
from acclms.domain.models import Course, CourseCategory
from acclms.persistence.repos import courses as courses_repo
from acclms.services import courses as courses_service


router = APIRouter(prefix="/courses", tags=["courses"], responses=DEFAULT_ERROR_RESPONSES)


class CourseResponse(BaseModel):
    course_id: UUID
    instructor_id: UUID
    category_id: UUID | None
    title: str
    slug: str
    short_description: str
    full_description: str | None
    thumbnail_url: str | None
    price_cents: int
    currency: str
    difficulty_level: str
    estimated_duration_hours: int
    language: str
    is_published: bool
    published_at: datetime | None
    average_rating: Decimal
    total_ratings: int
    total_enrollments: int
    requirements: list[Any]
    learning_objectives: list[Any]
    created_at: datetime


class CategoryResponse(BaseModel):
    category_id: UUID
    name: str
    slug: str
    description: str | None
    parent_category_id: UUID | None
    sort_order: int


def _to_response(course: Course) -> CourseResponse:
    return CourseResponse(
        course_id=course.course_id,
        instructor_id=course.instructor_id,
        category_id=course.category_id,
        title=course.title,
        slug=course.slug,
        short_description=course.short_description,
        full_description=course.full_description,
        thumbnail_url=course.thumbnail_url,
        price_cents=course.price_cents,
        currency=course.currency,
        difficulty_level=course.difficulty_level,
        estimated_duration_hours=course.estimated_duration_hours,
        language=course.language,
        is_published=course.is_published,
        published_at=course.published_at,
        average_rating=course.average_rating,
        total_ratings=course.total_ratings,
        total_enrollments=course.total_enrollments,
        requirements=list(course.requirements or []),
        learning_objectives=list(course.learning_objectives or []),
        created_at=course.created_at,
    )


def _category_response(category: CourseCategory) -> CategoryResponse:
    return CategoryResponse(
        category_id=category.category_id,
        name=category.name,
        slug=category.slug,
        description=category.description,
        parent_category_id=category.parent_category_id,
        sort_order=category.sort_order,
    )


def _published_or_404(course: Course | None) -> Course:
    # Drafts are invisible to the public catalog.
    if course is None or not course.is_published:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


@router.get("", response_model=SuccessEnvelope[Page[CourseResponse]] | Page[CourseResponse])
async def list_courses(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=courses_service.DEFAULT_PAGE_SIZE, ge=1, le=courses_service.MAX_PAGE_SIZE),
    category: str | None = None,
    difficulty: str | None = None,
    language: str | None = None,
    max_price_cents: int | None = Query(default=None, ge=0),
    db: AsyncSession = Depends(get_db),
) -> Page[CourseResponse]:
    try:
        courses, total = await courses_service.list_courses(
            db,
            page=page,
            page_size=page_size,
            category=category,
            difficulty=difficulty,
            language=language,
            max_price_cents=max_price_cents,
        )
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while listing courses") from exc
    return Page[CourseResponse](
        items=[_to_response(course) for course in courses],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/categories", response_model=SuccessEnvelope[list[CategoryResponse]] | list[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)) -> list[CategoryResponse]:
    try:
        categories = await courses_repo.list_categories(db)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while listing categories") from exc
    return [_category_response(category) for category in categories]


@router.get("/featured", response_model=SuccessEnvelope[list[CourseResponse]] | list[CourseResponse])
async def featured_courses(
    limit: int = Query(default=10, ge=1, le=courses_service.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
) -> list[CourseResponse]:
    try:
        courses = await courses_service.featured_courses(db, limit=limit)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while listing featured courses") from exc
    return [_to_response(course) for course in courses]


@router.get("/popular", response_model=SuccessEnvelope[list[CourseResponse]] | list[CourseResponse])
async def popular_courses(
    limit: int = Query(default=10, ge=1, le=courses_service.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
) -> list[CourseResponse]:
    try:
        courses = await courses_service.popular_courses(db, limit=limit)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while listing popular courses") from exc
    return [_to_response(course) for course in courses]


@router.get("/search", response_model=SuccessEnvelope[Page[CourseResponse]] | Page[CourseResponse])
async def search_courses(
    q: str = Query(min_length=1, max_length=200),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=courses_service.DEFAULT_PAGE_SIZE, ge=1, le=courses_service.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
) -> Page[CourseResponse]:
    try:
        courses, total = await courses_service.search_courses(db, q, page=page, page_size=page_size)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while searching courses") from exc
    return Page[CourseResponse](
        items=[_to_response(course) for course in courses],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/slug/{slug}", response_model=SuccessEnvelope[CourseResponse] | CourseResponse)
async def get_course_by_slug(slug: str, db: AsyncSession = Depends(get_db)) -> CourseResponse:
    try:
        course = await courses_repo.get_course_by_slug(db, slug)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while fetching course") from exc
    return _to_response(_published_or_404(course))


@router.get(
    "/instructor/{instructor_id}",
    response_model=SuccessEnvelope[list[CourseResponse]] | list[CourseResponse],
)
async def get_courses_by_instructor(instructor_id: UUID, db: AsyncSession = Depends(get_db)) -> list[CourseResponse]:
    try:
        courses = await courses_repo.list_by_instructor(db, instructor_id)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while listing instructor courses") from exc
    return [_to_response(course) for course in courses]


@router.get("/{course_id}", response_model=SuccessEnvelope[CourseResponse] | CourseResponse)
async def get_course(course_id: UUID, db: AsyncSession = Depends(get_db)) -> CourseResponse:
    try:
        course = await courses_repo.get_course(db, course_id)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while fetching course") from exc
    return _to_response(_published_or_404(course))


@router.post("/{course_id}/publish", response_model=SuccessEnvelope[CourseResponse] | CourseResponse)
async def publish_course(
    course_id: UUID,
    principal: Principal = Depends(require_role("instructor")),
    db: AsyncSession = Depends(get_db),
) -> CourseResponse:
    try:
        course = await courses_repo.get_course(db, course_id)
        if course is None:
            raise HTTPException(status_code=404, detail="Course not found")
        # Instructors publish only their own courses; admins publish any.
        if principal.role != "admin" and course.instructor_id != principal.user_id:
            raise _forbidden_error("Only the course instructor can publish this course")
        course = await courses_service.publish_course(db, course)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while publishing course") from exc
    return _to_response(course)
