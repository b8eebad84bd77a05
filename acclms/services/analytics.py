from __future__ import annotations

from datetime import date, datetime, timezone
import logging
from typing import Any
from uuid import UUID

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.core.config import get_settings
from acclms.core.errors import PartitionRoutingError
from acclms.domain.models import AnalyticsEvent, AnalyticsSession
from acclms.domain.states import ANALYTICS_EVENT_TYPES, ANALYTICS_PLATFORMS
from acclms.persistence.repos import analytics as analytics_repo
from acclms.services.partitions import create_event_partition, month_start


logger = logging.getLogger(__name__)


def _utc(value: datetime | None) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def build_event(
    *,
    event_type: str,
    session_id: UUID,
    timestamp: datetime | None = None,
    user_id: UUID | None = None,
    custom_event_name: str | None = None,
    page_url: str | None = None,
    referrer: str | None = None,
    platform: str = "unknown",
    user_agent: str | None = None,
    ip_address: str | None = None,
    country_code: str | None = None,
    properties: dict[str, Any] | None = None,
    duration_ms: int | None = None,
    entity_type: str | None = None,
    entity_id: UUID | None = None,
    tenant_id: UUID | None = None,
) -> AnalyticsEvent:
    if event_type not in ANALYTICS_EVENT_TYPES:
        raise ValueError(f"unknown analytics event type: {event_type}")
    if platform not in ANALYTICS_PLATFORMS:
        raise ValueError(f"unknown analytics platform: {platform}")
    if event_type == "custom" and not custom_event_name:
        raise ValueError("custom events require custom_event_name")
    ts = _utc(timestamp)
    return AnalyticsEvent(
        event_type=event_type,
        session_id=session_id,
        timestamp=ts,
        # Routing key; must equal the UTC month of timestamp (ck_events_created_month).
        created_month=month_start(ts),
        user_id=user_id,
        custom_event_name=custom_event_name,
        page_url=page_url,
        referrer=referrer,
        platform=platform,
        user_agent=user_agent,
        ip_address=ip_address,
        country_code=country_code.upper() if country_code else None,
        properties=properties or {},
        duration_ms=duration_ms,
        entity_type=entity_type,
        entity_id=entity_id,
        tenant_id=tenant_id,
    )


def _is_missing_partition(exc: DBAPIError) -> bool:
    return "no partition of relation" in str(exc.orig)


async def _insert_event(session: AsyncSession, event: AnalyticsEvent) -> None:
    # Savepoint keeps the caller's transaction usable when routing fails.
    async with session.begin_nested():
        await analytics_repo.add_event(session, event)


async def _create_partition(session: AsyncSession, month: date) -> None:
    try:
        async with session.begin_nested():
            await create_event_partition(session, month)
    except DBAPIError as exc:
        logger.warning("event_partition_create_failed month=%s", month.isoformat())
        raise PartitionRoutingError(f"could not create analytics.events partition for {month.isoformat()}") from exc
    logger.info("event_partition_created month=%s", month.isoformat())


async def record_event(
    session: AsyncSession,
    *,
    auto_create_partition: bool | None = None,
    **fields: Any,
) -> AnalyticsEvent:
    """Append one event, routing it to the partition of its UTC month.

    A missing partition is created on demand and the insert retried once.
    Nothing about existing partitions is remembered between calls, so a
    partition dropped or rolled back elsewhere is simply created again.
    With auto-creation disabled, or when creation fails, the caller gets
    :class:`PartitionRoutingError` instead of a raw database error.
    """
    event = build_event(**fields)
    if auto_create_partition is None:
        auto_create_partition = get_settings().analytics_auto_create_partitions
    month = event.created_month
    try:
        await _insert_event(session, event)
        return event
    except DBAPIError as exc:
        if not _is_missing_partition(exc):
            raise
        logger.warning("event_partition_missing month=%s auto_create=%s", month.isoformat(), auto_create_partition)
        if not auto_create_partition:
            raise PartitionRoutingError(f"no analytics.events partition for {month.isoformat()}") from exc

    await _create_partition(session, month)
    try:
        await _insert_event(session, event)
    except DBAPIError as exc:
        if _is_missing_partition(exc):
            raise PartitionRoutingError(f"no analytics.events partition for {month.isoformat()}") from exc
        raise
    return event


async def start_session(
    session: AsyncSession,
    *,
    user_id: UUID | None = None,
    platform: str = "unknown",
    entry_page: str | None = None,
    tenant_id: UUID | None = None,
) -> AnalyticsSession:
    if platform not in ANALYTICS_PLATFORMS:
        raise ValueError(f"unknown analytics platform: {platform}")
    return await analytics_repo.create_session(
        session, user_id=user_id, platform=platform, entry_page=entry_page, tenant_id=tenant_id
    )


async def end_session(
    session: AsyncSession, session_id: UUID, *, exit_page: str | None = None
) -> AnalyticsSession | None:
    # Ending twice keeps the first ended_at.
    row = await analytics_repo.get_session_row(session, session_id)
    if row is None or not row.is_active:
        return row
    row.is_active = False
    row.ended_at = datetime.now(timezone.utc)
    if exit_page is not None:
        row.exit_page = exit_page
    await session.flush()
    return row
