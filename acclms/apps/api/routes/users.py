from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.apps.api.deps import Principal, get_current_principal, get_db
from acclms.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from acclms.apps.api.response import SuccessEnvelope
from acclms.core.config import get_settings
from acclms.domain.models import User, UserPreferences
from acclms.persistence.repos import users as users_repo


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"], responses=DEFAULT_ERROR_RESPONSES)

THEMES = ("light", "dark", "system")


class ProfileResponse(BaseModel):
    user_id: UUID
    email: str
    first_name: str
    last_name: str
    role: str
    avatar_url: str | None
    bio: str | None
    timezone: str
    language_preference: str
    email_verified: bool
    created_at: datetime


class ProfileUpdateRequest(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    bio: str | None = Field(default=None, max_length=2000)
    avatar_url: str | None = Field(default=None, max_length=2048)
    timezone: str | None = Field(default=None, max_length=64)
    language_preference: str | None = Field(default=None, min_length=2, max_length=10)

    model_config = {"extra": "forbid"}


class PreferencesResponse(BaseModel):
    language: str
    theme: str
    updated_at: datetime


class PreferencesUpdateRequest(BaseModel):
    language: str | None = Field(default=None, min_length=2, max_length=10)
    theme: str | None = None

    model_config = {"extra": "forbid"}


class NotificationSettingsResponse(BaseModel):
    email_notifications: bool
    push_notifications: bool
    marketing_emails: bool
    course_reminders: bool
    weekly_progress_email: bool


class NotificationSettingsUpdateRequest(BaseModel):
    email_notifications: bool | None = None
    push_notifications: bool | None = None
    marketing_emails: bool | None = None
    course_reminders: bool | None = None
    weekly_progress_email: bool | None = None

    model_config = {"extra": "forbid"}


def _profile(user: User) -> ProfileResponse:
    return ProfileResponse(
        user_id=user.user_id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        avatar_url=user.avatar_url,
        bio=user.bio,
        timezone=user.timezone,
        language_preference=user.language_preference,
        email_verified=user.email_verified,
        created_at=user.created_at,
    )


def _preferences(prefs: UserPreferences) -> PreferencesResponse:
    return PreferencesResponse(language=prefs.language, theme=prefs.theme, updated_at=prefs.updated_at)


def _notification_settings(prefs: UserPreferences) -> NotificationSettingsResponse:
    return NotificationSettingsResponse(
        email_notifications=prefs.email_notifications,
        push_notifications=prefs.push_notifications,
        marketing_emails=prefs.marketing_emails,
        course_reminders=prefs.course_reminders,
        weekly_progress_email=prefs.weekly_progress_email,
    )


async def _current_user(db: AsyncSession, principal: Principal) -> User:
    user = await users_repo.get_user(db, principal.user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/me", response_model=SuccessEnvelope[ProfileResponse] | ProfileResponse)
async def get_me(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    try:
        user = await _current_user(db, principal)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while fetching profile") from exc
    return _profile(user)


@router.patch("/me", response_model=SuccessEnvelope[ProfileResponse] | ProfileResponse)
async def update_me(
    payload: ProfileUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    try:
        user = await users_repo.update_profile(db, principal.user_id, **payload.model_dump(exclude_none=True))
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while updating profile") from exc
    return _profile(user)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Response:
    try:
        user = await _current_user(db, principal)
        # Soft delete; rows in other schemas keep resolving the UUID.
        user.deleted_at = datetime.now(timezone.utc)
        await db.commit()
        purge_after = user.deleted_at + timedelta(days=get_settings().deletion_grace_period_days)
        logger.info("account_deleted user_id=%s purge_after=%s", user.user_id, purge_after.isoformat())
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while deleting account") from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me/preferences", response_model=SuccessEnvelope[PreferencesResponse] | PreferencesResponse)
async def get_preferences(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> PreferencesResponse:
    try:
        await _current_user(db, principal)
        prefs = await users_repo.get_or_create_preferences(db, principal.user_id)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while fetching preferences") from exc
    return _preferences(prefs)


@router.patch("/me/preferences", response_model=SuccessEnvelope[PreferencesResponse] | PreferencesResponse)
async def update_preferences(
    payload: PreferencesUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> PreferencesResponse:
    if payload.theme is not None and payload.theme not in THEMES:
        raise HTTPException(status_code=422, detail=f"theme must be one of {', '.join(THEMES)}")
    try:
        await _current_user(db, principal)
        prefs = await users_repo.get_or_create_preferences(db, principal.user_id)
        for field, value in payload.model_dump(exclude_none=True).items():
            setattr(prefs, field, value)
        await db.flush()
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while updating preferences") from exc
    return _preferences(prefs)


@router.get(
    "/me/notifications",
    response_model=SuccessEnvelope[NotificationSettingsResponse] | NotificationSettingsResponse,
)
async def get_notification_settings(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> NotificationSettingsResponse:
    try:
        await _current_user(db, principal)
        prefs = await users_repo.get_or_create_preferences(db, principal.user_id)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while fetching notification settings") from exc
    return _notification_settings(prefs)


@router.patch(
    "/me/notifications",
    response_model=SuccessEnvelope[NotificationSettingsResponse] | NotificationSettingsResponse,
)
async def update_notification_settings(
    payload: NotificationSettingsUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> NotificationSettingsResponse:
    try:
        await _current_user(db, principal)
        prefs = await users_repo.get_or_create_preferences(db, principal.user_id)
        for field, value in payload.model_dump(exclude_none=True).items():
            setattr(prefs, field, value)
        await db.flush()
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while updating notification settings") from exc
    return _notification_settings(prefs)
