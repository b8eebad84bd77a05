from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.apps.api.deps import Principal, get_current_principal, get_db
from acclms.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from acclms.apps.api.response import SuccessEnvelope
from acclms.domain.models import Enrollment, LessonProgress
from acclms.persistence.repos import courses as courses_repo
from acclms.persistence.repos import enrollments as enrollments_repo
from acclms.services import enrollments as enrollments_service


router = APIRouter(prefix="/enrollments", tags=["enrollments"], responses=DEFAULT_ERROR_RESPONSES)


class EnrollmentResponse(BaseModel):
    enrollment_id: UUID
    user_id: UUID
    course_id: UUID
    status: str
    progress_percentage: Decimal
    has_access: bool
    started_at: datetime | None
    completed_at: datetime | None
    last_accessed_at: datetime | None
    expires_at: datetime | None
    enrollment_source: str
    created_at: datetime


class EnrollRequest(BaseModel):
    course_id: UUID
    enrollment_source: str = Field(default="purchase", max_length=50)

    model_config = {"extra": "forbid"}


class LessonProgressResponse(BaseModel):
    lesson_id: UUID
    status: str
    time_spent_seconds: int
    completed_at: datetime | None


class ProgressResponse(BaseModel):
    enrollment_id: UUID
    status: str
    progress_percentage: Decimal
    completed_lessons: int
    total_lessons: int
    lessons: list[LessonProgressResponse]


class CompleteLessonRequest(BaseModel):
    time_spent_seconds: int = Field(default=0, ge=0)

    model_config = {"extra": "forbid"}


class CertificateResponse(BaseModel):
    enrollment_id: UUID
    course_id: UUID
    user_id: UUID
    completed_at: datetime
    issued_at: datetime


def _to_response(enrollment: Enrollment) -> EnrollmentResponse:
    return EnrollmentResponse(
        enrollment_id=enrollment.enrollment_id,
        user_id=enrollment.user_id,
        course_id=enrollment.course_id,
        status=enrollment.status,
        progress_percentage=enrollment.progress_percentage,
        has_access=enrollments_service.has_access(enrollment),
        started_at=enrollment.started_at,
        completed_at=enrollment.completed_at,
        last_accessed_at=enrollment.last_accessed_at,
        expires_at=enrollment.expires_at,
        enrollment_source=enrollment.enrollment_source,
        created_at=enrollment.created_at,
    )


def _lesson_response(progress: LessonProgress) -> LessonProgressResponse:
    return LessonProgressResponse(
        lesson_id=progress.lesson_id,
        status=progress.status,
        time_spent_seconds=progress.time_spent_seconds,
        completed_at=progress.completed_at,
    )


async def _owned_enrollment(db: AsyncSession, enrollment_id: UUID, principal: Principal) -> Enrollment:
    enrollment = await enrollments_repo.get_enrollment(db, enrollment_id)
    # 404 rather than 403 so enrollment ids of other users are not disclosed.
    if enrollment is None or (principal.role != "admin" and enrollment.user_id != principal.user_id):
        raise HTTPException(status_code=404, detail="Enrollment not found")
    return enrollment


@router.get("/me", response_model=SuccessEnvelope[list[EnrollmentResponse]] | list[EnrollmentResponse])
async def my_enrollments(
    status_filter: str | None = Query(default=None, alias="status"),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> list[EnrollmentResponse]:
    try:
        enrollments = await enrollments_repo.list_for_user(db, principal.user_id, status=status_filter)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while listing enrollments") from exc
    return [_to_response(enrollment) for enrollment in enrollments]


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessEnvelope[EnrollmentResponse] | EnrollmentResponse,
)
async def enroll(
    payload: EnrollRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> EnrollmentResponse:
    try:
        enrollment = await enrollments_service.enroll(
            db,
            user_id=principal.user_id,
            course_id=payload.course_id,
            enrollment_source=payload.enrollment_source,
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while creating enrollment") from exc
    return _to_response(enrollment)


@router.get("/{enrollment_id}", response_model=SuccessEnvelope[EnrollmentResponse] | EnrollmentResponse)
async def get_enrollment(
    enrollment_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> EnrollmentResponse:
    try:
        enrollment = await _owned_enrollment(db, enrollment_id, principal)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while fetching enrollment") from exc
    return _to_response(enrollment)


@router.get("/{enrollment_id}/progress", response_model=SuccessEnvelope[ProgressResponse] | ProgressResponse)
async def get_progress(
    enrollment_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> ProgressResponse:
    try:
        enrollment = await _owned_enrollment(db, enrollment_id, principal)
        lessons = await enrollments_repo.list_lesson_progress(db, enrollment_id)
        total = await courses_repo.count_lessons(db, enrollment.course_id)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while fetching progress") from exc
    return ProgressResponse(
        enrollment_id=enrollment.enrollment_id,
        status=enrollment.status,
        progress_percentage=enrollment.progress_percentage,
        completed_lessons=sum(1 for lesson in lessons if lesson.status == "completed"),
        total_lessons=total,
        lessons=[_lesson_response(lesson) for lesson in lessons],
    )


@router.post(
    "/{enrollment_id}/lessons/{lesson_id}/complete",
    response_model=SuccessEnvelope[ProgressResponse] | ProgressResponse,
)
async def complete_lesson(
    enrollment_id: UUID,
    lesson_id: UUID,
    payload: CompleteLessonRequest | None = None,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> ProgressResponse:
    time_spent = payload.time_spent_seconds if payload is not None else 0
    try:
        enrollment = await _owned_enrollment(db, enrollment_id, principal)
        if not enrollments_service.has_access(enrollment):
            raise HTTPException(
                status_code=403,
                detail={"code": "AUTH_FORBIDDEN", "message": "Enrollment does not grant access"},
            )
        await enrollments_service.complete_lesson(db, enrollment, lesson_id, time_spent_seconds=time_spent)
        await db.commit()
        lessons = await enrollments_repo.list_lesson_progress(db, enrollment_id)
        total = await courses_repo.count_lessons(db, enrollment.course_id)
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while completing lesson") from exc
    return ProgressResponse(
        enrollment_id=enrollment.enrollment_id,
        status=enrollment.status,
        progress_percentage=enrollment.progress_percentage,
        completed_lessons=sum(1 for lesson in lessons if lesson.status == "completed"),
        total_lessons=total,
        lessons=[_lesson_response(lesson) for lesson in lessons],
    )


@router.get(
    "/{enrollment_id}/certificate",
    response_model=SuccessEnvelope[CertificateResponse] | CertificateResponse,
)
async def get_certificate(
    enrollment_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> CertificateResponse:
    try:
        enrollment = await _owned_enrollment(db, enrollment_id, principal)
        if enrollment.status != "completed" or enrollment.completed_at is None:
            raise HTTPException(
                status_code=409,
                detail={"code": "CONFLICT", "message": "Certificate is issued after course completion"},
            )
        # First retrieval issues the certificate; later calls return the same timestamp.
        if enrollment.certificate_issued_at is None:
            enrollment.certificate_issued_at = datetime.now(timezone.utc)
            await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while issuing certificate") from exc
    return CertificateResponse(
        enrollment_id=enrollment.enrollment_id,
        course_id=enrollment.course_id,
        user_id=enrollment.user_id,
        completed_at=enrollment.completed_at,
        issued_at=enrollment.certificate_issued_at,
    )
