from __future__ import annotations

from typing import AsyncGenerator
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.core.config import get_settings
from acclms.persistence.db import get_session
from acclms.services.roles import normalize_role, role_allows


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    # One AsyncSession per request; context manager ensures close on success/error.
    async with get_session() as session:
        yield session


class Principal(BaseModel):
    # Identity the routes scope "me" queries and role checks to.
    user_id: UUID
    role: str
    auth_method: str = "dev_bypass"


def _auth_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "AUTH_UNAUTHORIZED", "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _forbidden_error(message: str, *, required_role: str | None = None) -> HTTPException:
    detail: dict[str, str] = {"code": "AUTH_FORBIDDEN", "message": message}
    if required_role:
        detail["required_role"] = required_role
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def _principal_from_dev_headers(request: Request) -> Principal:
    # Identity headers are trusted only while the dev bypass is enabled.
    raw_user_id = request.headers.get("X-User-Id")
    if not raw_user_id:
        raise _auth_error("X-User-Id header is required")
    try:
        user_id = UUID(raw_user_id)
    except ValueError as exc:
        raise _auth_error("X-User-Id must be a UUID") from exc
    try:
        role = normalize_role(request.headers.get("X-Role", "student"))
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "AUTH_INVALID_ROLE", "message": str(exc)},
        ) from exc
    return Principal(user_id=user_id, role=role)


async def get_current_principal(request: Request) -> Principal:
    settings = get_settings()
    if settings.auth_dev_bypass:
        return _principal_from_dev_headers(request)
    # Token verification belongs to the auth service; without it every request is anonymous.
    raise _auth_error("Bearer authentication is not available on this deployment")


def require_role(minimum_role: str):
    # Dependency factory to enforce RBAC at the route level.
    async def _dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not role_allows(role=principal.role, minimum_role=minimum_role):
            raise _forbidden_error("Insufficient role", required_role=minimum_role)
        return principal

    return _dependency
