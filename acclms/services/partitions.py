"""Monthly range partitions of ``analytics.events``.

Partitions are named ``events_YYYY_MM`` and cover ``[first day, first day of
next month)`` on ``created_month``. Creation goes through the
``analytics.create_event_partition(date)`` database function so the service
role can add months without owning the parent table; retention drops whole
partitions, which is the only way rows ever leave the table.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
import logging
import re

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.core.config import get_settings


logger = logging.getLogger(__name__)

PARTITION_PREFIX = "events_"
_PARTITION_NAME_RE = re.compile(r"^events_(?P<year>[0-9]{4})_(?P<month>0[1-9]|1[0-2])$")


def month_start(value: datetime | date) -> date:
    # Event months are always computed in UTC; naive datetimes are taken as UTC.
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return date(value.year, value.month, 1)
    return date(value.year, value.month, 1)


def add_months(month: date, count: int) -> date:
    index = month.year * 12 + (month.month - 1) + count
    return date(index // 12, index % 12 + 1, 1)


def partition_name(month: date) -> str:
    start = month_start(month)
    return f"{PARTITION_PREFIX}{start.year:04d}_{start.month:02d}"


def partition_bounds(month: date) -> tuple[date, date]:
    start = month_start(month)
    return start, add_months(start, 1)


def partition_month(name: str) -> date | None:
    match = _PARTITION_NAME_RE.match(name)
    if match is None:
        return None
    return date(int(match.group("year")), int(match.group("month")), 1)


def months_between(start: datetime | date, end: datetime | date) -> list[date]:
    # Inclusive on both ends; empty when end precedes start.
    first = month_start(start)
    last = month_start(end)
    months: list[date] = []
    current = first
    while current <= last:
        months.append(current)
        current = add_months(current, 1)
    return months


async def create_event_partition(session: AsyncSession, month: date) -> str:
    result = await session.execute(
        text("SELECT analytics.create_event_partition(:month)"), {"month": month_start(month)}
    )
    return str(result.scalar_one())


async def ensure_event_partitions(
    session: AsyncSession,
    start: datetime | date | None = None,
    months_ahead: int | None = None,
) -> list[str]:
    """Create the partitions for ``start``'s month and the following ``months_ahead`` months.

    Existing partitions are left untouched, so the call is safe to repeat.
    """
    if start is None:
        start = datetime.now(timezone.utc)
    if months_ahead is None:
        months_ahead = get_settings().analytics_partition_months_ahead
    first = month_start(start)
    names: list[str] = []
    for month in months_between(first, add_months(first, max(0, months_ahead))):
        names.append(await create_event_partition(session, month))
    logger.info("event_partitions_ensured first=%s count=%s", first.isoformat(), len(names))
    return names


async def list_event_partitions(session: AsyncSession) -> list[str]:
    result = await session.execute(
        text(
            "SELECT child.relname FROM pg_inherits i "
            "JOIN pg_class child ON child.oid = i.inhrelid "
            "JOIN pg_class parent ON parent.oid = i.inhparent "
            "JOIN pg_namespace ns ON ns.oid = parent.relnamespace "
            "WHERE ns.nspname = 'analytics' AND parent.relname = 'events' "
            "ORDER BY child.relname"
        )
    )
    return [str(name) for name in result.scalars().all()]


def partitions_before(names: list[str], cutoff: datetime | date) -> list[str]:
    # A partition is expired only when its whole month ends on or before the cutoff month.
    boundary = month_start(cutoff)
    expired: list[str] = []
    for name in names:
        month = partition_month(name)
        if month is not None and partition_bounds(month)[1] <= boundary:
            expired.append(name)
    return expired


async def drop_event_partitions_before(session: AsyncSession, cutoff: datetime | date) -> list[str]:
    """Drop every monthly partition that lies entirely before ``cutoff``'s month.

    Requires the table owner (the provisioning connection), not ``analytics_svc``.
    """
    expired = partitions_before(await list_event_partitions(session), cutoff)
    for name in expired:
        # Names come from pg_inherits and already matched the strict partition pattern.
        await session.execute(text(f"DROP TABLE IF EXISTS analytics.{name}"))
        logger.info("event_partition_dropped name=%s", name)
    return expired


def retention_cutoff(now: datetime | None = None, retention_months: int | None = None) -> date:
    if now is None:
        now = datetime.now(timezone.utc)
    if retention_months is None:
        retention_months = get_settings().analytics_retention_months
    return add_months(month_start(now), -retention_months)
