from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.domain.models import KbArticle, KbArticleVersion, KbCategory, KbRelatedArticle


async def get_category(session: AsyncSession, category_id: UUID) -> KbCategory | None:
    result = await session.execute(select(KbCategory).where(KbCategory.category_id == category_id))
    return result.scalar_one_or_none()


async def list_versions(session: AsyncSession, article_id: UUID) -> list[KbArticleVersion]:
    result = await session.execute(
        select(KbArticleVersion)
        .where(KbArticleVersion.article_id == article_id)
        .order_by(KbArticleVersion.version_number)
    )
    return list(result.scalars().all())


async def list_related(session: AsyncSession, article_id: UUID) -> list[KbRelatedArticle]:
    result = await session.execute(
        select(KbRelatedArticle)
        .where(KbRelatedArticle.article_id == article_id)
        .order_by(KbRelatedArticle.relevance_score.desc())
    )
    return list(result.scalars().all())


async def adjust_category_count(session: AsyncSession, category_id: UUID, delta: int) -> None:
    # Single UPDATE so concurrent publishes never lose a count.
    await session.execute(
        update(KbCategory)
        .where(KbCategory.category_id == category_id)
        .values(article_count=KbCategory.article_count + delta)
    )


async def increment_article_counters(
    session: AsyncSession, article_id: UUID, *, views: int = 0, helpful: int = 0, not_helpful: int = 0
) -> None:
    await session.execute(
        update(KbArticle)
        .where(KbArticle.article_id == article_id)
        .values(
            view_count=KbArticle.view_count + views,
            helpful_count=KbArticle.helpful_count + helpful,
            not_helpful_count=KbArticle.not_helpful_count + not_helpful,
        )
    )
