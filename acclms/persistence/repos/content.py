from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.domain.models import AssetAccessToken, AssetUsageStats, ContentAsset


async def add_asset(session: AsyncSession, asset: ContentAsset) -> ContentAsset:
    session.add(asset)
    await session.flush()
    return asset


async def get_asset(session: AsyncSession, asset_id: UUID) -> ContentAsset | None:
    # Deleted assets are kept for usage history but hidden here.
    result = await session.execute(
        select(ContentAsset).where(ContentAsset.asset_id == asset_id, ContentAsset.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def add_access_token(session: AsyncSession, token: AssetAccessToken) -> AssetAccessToken:
    session.add(token)
    await session.flush()
    return token


async def get_access_token_for_update(session: AsyncSession, token_hash: str) -> AssetAccessToken | None:
    # Row lock so two redemptions of a single-use token cannot both pass.
    result = await session.execute(
        select(AssetAccessToken)
        .where(AssetAccessToken.token_hash == token_hash)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def increment_usage(
    session: AsyncSession,
    *,
    asset_id: UUID,
    period_start: date,
    period_type: str,
    views: int = 0,
    downloads: int = 0,
    streams: int = 0,
    bytes_transferred: int = 0,
) -> None:
    # Counters are bumped in one statement; the unique period key arbitrates first inserts.
    stmt = insert(AssetUsageStats).values(
        asset_id=asset_id,
        period_start=period_start,
        period_type=period_type,
        view_count=views,
        download_count=downloads,
        stream_count=streams,
        bytes_transferred=bytes_transferred,
        unique_users=0,
    )
    excluded = stmt.excluded
    stmt = stmt.on_conflict_do_update(
        constraint="uq_usage_stats_asset_period",
        set_={
            "view_count": AssetUsageStats.view_count + excluded.view_count,
            "download_count": AssetUsageStats.download_count + excluded.download_count,
            "stream_count": AssetUsageStats.stream_count + excluded.stream_count,
            "bytes_transferred": AssetUsageStats.bytes_transferred + excluded.bytes_transferred,
        },
    )
    await session.execute(stmt)


async def list_usage(session: AsyncSession, asset_id: UUID, period_type: str) -> list[AssetUsageStats]:
    result = await session.execute(
        select(AssetUsageStats)
        .where(AssetUsageStats.asset_id == asset_id, AssetUsageStats.period_type == period_type)
        .order_by(AssetUsageStats.period_start)
    )
    return list(result.scalars().all())
