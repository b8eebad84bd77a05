from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.domain.models import AnalyticsEvent, AnalyticsSession


async def add_event(session: AsyncSession, event: AnalyticsEvent) -> AnalyticsEvent:
    session.add(event)
    await session.flush()
    return event


async def create_session(
    session: AsyncSession,
    *,
    user_id: UUID | None,
    platform: str,
    entry_page: str | None = None,
    tenant_id: UUID | None = None,
) -> AnalyticsSession:
    row = AnalyticsSession(
        user_id=user_id,
        platform=platform,
        entry_page=entry_page,
        tenant_id=tenant_id,
    )
    session.add(row)
    await session.flush()
    return row


async def get_session_row(session: AsyncSession, session_id: UUID) -> AnalyticsSession | None:
    result = await session.execute(select(AnalyticsSession).where(AnalyticsSession.session_id == session_id))
    return result.scalar_one_or_none()
