from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.apps.api.deps import Principal, get_current_principal, get_db, require_role
from acclms.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from acclms.apps.api.response import SuccessEnvelope
from acclms.domain.models import DataRightsRequest
from acclms.persistence.repos import compliance as compliance_repo
from acclms.services import compliance as compliance_service


router = APIRouter(prefix="/compliance", tags=["compliance"], responses=DEFAULT_ERROR_RESPONSES)


class DataRightsRequestResponse(BaseModel):
    id: UUID
    user_id: UUID | None
    email: str
    jurisdiction: str
    right_type: str
    status: str
    received_at: datetime
    deadline_at: datetime
    extended_deadline_at: datetime | None
    effective_deadline_at: datetime
    overdue: bool
    resolved_at: datetime | None
    decision: str | None


class CreateDataRightsRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    name: str = Field(min_length=1, max_length=255)
    right_type: str = Field(min_length=1, max_length=64)
    jurisdiction: str | None = Field(default=None, max_length=32)
    specific_request: str | None = Field(default=None, max_length=5000)

    model_config = {"extra": "forbid"}


class TransitionRequest(BaseModel):
    status: str = Field(min_length=1, max_length=32)
    decision: str | None = Field(default=None, max_length=255)
    explanation: str | None = Field(default=None, max_length=5000)
    appeal_reason: str | None = Field(default=None, max_length=5000)

    model_config = {"extra": "forbid"}


class LegalDeadlineResponse(BaseModel):
    jurisdiction: str
    response_days: int
    extension_days: int | None
    breach_notification_hours: int | None
    deadline_if_received_now: datetime


def _to_response(request: DataRightsRequest) -> DataRightsRequestResponse:
    return DataRightsRequestResponse(
        id=request.id,
        user_id=request.user_id,
        email=request.email,
        jurisdiction=request.jurisdiction,
        right_type=request.right_type,
        status=request.status,
        received_at=request.received_at,
        deadline_at=request.deadline_at,
        extended_deadline_at=request.extended_deadline_at,
        effective_deadline_at=compliance_service.effective_deadline(request),
        overdue=compliance_service.is_overdue(request),
        resolved_at=request.resolved_at,
        decision=request.decision,
    )


async def _visible_request(db: AsyncSession, request_id: UUID, principal: Principal) -> DataRightsRequest:
    request = await compliance_repo.get_request(db, request_id)
    if request is None or (principal.role != "admin" and request.user_id != principal.user_id):
        raise HTTPException(status_code=404, detail="Data rights request not found")
    return request


@router.post(
    "/requests",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessEnvelope[DataRightsRequestResponse] | DataRightsRequestResponse,
)
async def create_request(
    payload: CreateDataRightsRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> DataRightsRequestResponse:
    try:
        request = await compliance_service.create_data_rights_request(
            db,
            email=payload.email,
            name=payload.name,
            jurisdiction=payload.jurisdiction,
            right_type=payload.right_type,
            user_id=principal.user_id,
            specific_request=payload.specific_request,
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while creating data rights request") from exc
    return _to_response(request)


@router.get(
    "/requests/{request_id}",
    response_model=SuccessEnvelope[DataRightsRequestResponse] | DataRightsRequestResponse,
)
async def get_request(
    request_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> DataRightsRequestResponse:
    try:
        request = await _visible_request(db, request_id, principal)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while fetching data rights request") from exc
    return _to_response(request)


@router.post(
    "/requests/{request_id}/status",
    response_model=SuccessEnvelope[DataRightsRequestResponse] | DataRightsRequestResponse,
)
async def transition_request(
    request_id: UUID,
    payload: TransitionRequest,
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
) -> DataRightsRequestResponse:
    try:
        request = await _visible_request(db, request_id, principal)
        request = await compliance_service.transition_request(
            db,
            request,
            payload.status,
            decision=payload.decision,
            explanation=payload.explanation,
            appeal_reason=payload.appeal_reason,
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while updating data rights request") from exc
    return _to_response(request)


@router.post(
    "/requests/{request_id}/extend",
    response_model=SuccessEnvelope[DataRightsRequestResponse] | DataRightsRequestResponse,
)
async def extend_request(
    request_id: UUID,
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
) -> DataRightsRequestResponse:
    try:
        request = await _visible_request(db, request_id, principal)
        try:
            compliance_service.extend_deadline(request)
        except ValueError as exc:
            raise HTTPException(
                status_code=409, detail={"code": "CONFLICT", "message": str(exc)}
            ) from exc
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while extending data rights request") from exc
    return _to_response(request)


@router.get(
    "/deadlines/{jurisdiction}",
    response_model=SuccessEnvelope[LegalDeadlineResponse] | LegalDeadlineResponse,
)
async def get_legal_deadline(jurisdiction: str) -> LegalDeadlineResponse:
    # Public lookup; unknown jurisdictions are rejected rather than mapped to general.
    resolved = compliance_service.parse_jurisdiction(jurisdiction, strict=True)
    rules = compliance_service.legal_deadline(resolved)
    return LegalDeadlineResponse(
        jurisdiction=rules.jurisdiction,
        response_days=rules.response_days,
        extension_days=rules.extension_days,
        breach_notification_hours=rules.breach_notification_hours,
        deadline_if_received_now=compliance_service.compute_deadline(resolved, datetime.now(timezone.utc)),
    )
