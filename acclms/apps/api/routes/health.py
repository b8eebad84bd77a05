from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

from acclms.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from acclms.apps.api.response import SuccessEnvelope, success_response
from acclms.core.config import get_settings
from acclms.persistence.db import pool_stats

router = APIRouter(tags=["health"], responses=DEFAULT_ERROR_RESPONSES)


class PoolStats(BaseModel):
    size: int | None = None
    checked_out: int | None = None
    overflow: int | None = None


class HealthResponse(BaseModel):
    status: str
    service: str
    database_pool: PoolStats


# Allow unwrapped responses outside /api/v1 while the middleware wraps versioned ones.
@router.get("/health", response_model=SuccessEnvelope[HealthResponse] | HealthResponse)
async def health(request: Request) -> dict:
    payload = HealthResponse(
        status="ok",
        service=get_settings().app_name,
        database_pool=PoolStats(**pool_stats()),
    )
    return success_response(request=request, data=payload.model_dump())
