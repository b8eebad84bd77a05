from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.domain.models import Enrollment, LessonProgress, User, UserNotification, UserPreferences, UserStats


async def get_user(session: AsyncSession, user_id: UUID) -> User | None:
    # Soft-deleted accounts stay resolvable for references but are hidden here.
    result = await session.execute(
        select(User).where(User.user_id == user_id, User.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def create_user(
    session: AsyncSession,
    *,
    email: str,
    hashed_password: str,
    first_name: str,
    last_name: str,
    role: str = "student",
) -> User:
    user = User(
        email=email.lower(),
        hashed_password=hashed_password,
        first_name=first_name,
        last_name=last_name,
        role=role,
    )
    session.add(user)
    await session.flush()
    return user


async def update_profile(
    session: AsyncSession,
    user_id: UUID,
    *,
    first_name: str | None = None,
    last_name: str | None = None,
    bio: str | None = None,
    avatar_url: str | None = None,
    timezone: str | None = None,
    language_preference: str | None = None,
) -> User | None:
    # Fetch first so a missing user stays a 404 rather than a silent no-op.
    user = await get_user(session, user_id)
    if user is None:
        return None
    if first_name is not None:
        user.first_name = first_name
    if last_name is not None:
        user.last_name = last_name
    if bio is not None:
        user.bio = bio
    if avatar_url is not None:
        user.avatar_url = avatar_url
    if timezone is not None:
        user.timezone = timezone
    if language_preference is not None:
        user.language_preference = language_preference
    return user


async def get_preferences(session: AsyncSession, user_id: UUID) -> UserPreferences | None:
    result = await session.execute(select(UserPreferences).where(UserPreferences.user_id == user_id))
    return result.scalar_one_or_none()


async def get_or_create_preferences(session: AsyncSession, user_id: UUID) -> UserPreferences:
    # Preferences rows are created lazily with column defaults on first access.
    prefs = await get_preferences(session, user_id)
    if prefs is None:
        prefs = UserPreferences(user_id=user_id)
        session.add(prefs)
        await session.flush()
    return prefs


async def list_notifications(
    session: AsyncSession, user_id: UUID, *, unread_only: bool = False, limit: int = 50
) -> list[UserNotification]:
    stmt = select(UserNotification).where(UserNotification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(UserNotification.read_at.is_(None))
    result = await session.execute(
        stmt.order_by(UserNotification.created_at.desc(), UserNotification.notification_id).limit(limit)
    )
    return list(result.scalars().all())


async def get_stats(session: AsyncSession, user_id: UUID) -> UserStats | None:
    result = await session.execute(select(UserStats).where(UserStats.user_id == user_id))
    return result.scalar_one_or_none()


async def list_learning_activity(
    session: AsyncSession, user_id: UUID
) -> tuple[list[Enrollment], list[LessonProgress]]:
    # Read-only view of the enrollments schema, used to rebuild users.user_stats.
    enrollments = await session.execute(select(Enrollment).where(Enrollment.user_id == user_id))
    progress = await session.execute(select(LessonProgress).where(LessonProgress.user_id == user_id))
    return list(enrollments.scalars().all()), list(progress.scalars().all())
