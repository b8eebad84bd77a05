from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
import logging
import re
import unicodedata
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from acclms.core.errors import ReferenceIntegrityError
from acclms.domain import states
from acclms.domain.models import KbArticle, KbArticleFeedback, KbArticleVersion, KbCategory, KbRelatedArticle
from acclms.persistence.repos import kb as kb_repo
from acclms.services.references import ensure_reference


logger = logging.getLogger(__name__)

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")
MAX_SLUG_LENGTH = 255


def slugify(value: str) -> str:
    ascii_text = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = _SLUG_STRIP.sub("-", ascii_text.lower()).strip("-")
    if not slug:
        raise ValueError(f"cannot derive a slug from {value!r}")
    return slug[:MAX_SLUG_LENGTH].rstrip("-")


def excerpt_from(content: str, limit: int = 200) -> str:
    text = " ".join(content.split())
    if len(text) <= limit:
        return text
    return text[: limit - 1].rsplit(" ", 1)[0] + "…"


async def create_category(
    session: AsyncSession,
    *,
    name: str,
    slug: str | None = None,
    parent: KbCategory | None = None,
    description: str | None = None,
    tenant_id: UUID | None = None,
) -> KbCategory:
    # path holds the ancestor ids from the root; depth follows from it.
    path = [*parent.path, str(parent.category_id)] if parent is not None else []
    category = KbCategory(
        tenant_id=tenant_id,
        name=name,
        slug=slug or slugify(name),
        description=description,
        parent_id=parent.category_id if parent is not None else None,
        path=path,
        depth=len(path),
    )
    session.add(category)
    await session.flush()
    return category


def _snapshot(article: KbArticle, *, changed_by: UUID, change_summary: str | None) -> KbArticleVersion:
    return KbArticleVersion(
        article_id=article.article_id,
        version_number=article.version,
        title=article.title,
        content=article.content,
        content_type=article.content_type,
        change_summary=change_summary,
        changed_by=changed_by,
    )


async def create_article(
    session: AsyncSession,
    *,
    author_id: UUID,
    title: str,
    content: str,
    content_type: str = "markdown",
    category_id: UUID | None = None,
    tags: list[str] | None = None,
    visibility: str = "public",
    slug: str | None = None,
    tenant_id: UUID | None = None,
) -> KbArticle:
    """Create a draft article together with its version 1 snapshot."""
    if content_type not in states.KB_CONTENT_TYPES:
        raise ValueError(f"unknown content type: {content_type}")
    if visibility not in states.KB_VISIBILITIES:
        raise ValueError(f"unknown visibility: {visibility}")
    await ensure_reference(session, "auth.users", author_id, source="kb.articles.author_id")
    if category_id is not None and await kb_repo.get_category(session, category_id) is None:
        raise ReferenceIntegrityError(source="kb.articles.category_id", target="kb.categories", value=category_id)
    article = KbArticle(
        tenant_id=tenant_id,
        title=title,
        slug=slug or slugify(title),
        excerpt=excerpt_from(content),
        content=content,
        content_type=content_type,
        category_id=category_id,
        tags=list(tags or []),
        status=states.KB_ARTICLE.initial,
        visibility=visibility,
        author_id=author_id,
        version=1,
    )
    session.add(article)
    await session.flush()
    session.add(_snapshot(article, changed_by=author_id, change_summary="Initial version"))
    await session.flush()
    logger.info("kb_article_created article_id=%s slug=%s", article.article_id, article.slug)
    return article


async def update_article(
    session: AsyncSession,
    article: KbArticle,
    *,
    changed_by: UUID,
    title: str | None = None,
    content: str | None = None,
    change_summary: str | None = None,
) -> KbArticle:
    """Apply an edit and record it as the next version.

    Edits that change neither title nor content do not create a version.
    """
    new_title = title if title is not None else article.title
    new_content = content if content is not None else article.content
    if new_title == article.title and new_content == article.content:
        return article
    await ensure_reference(session, "auth.users", changed_by, source="kb.article_versions.changed_by")
    article.title = new_title
    article.content = new_content
    article.excerpt = excerpt_from(new_content)
    article.version += 1
    session.add(_snapshot(article, changed_by=changed_by, change_summary=change_summary))
    await session.flush()
    logger.info("kb_article_revised article_id=%s version=%s", article.article_id, article.version)
    return article


async def transition_article(session: AsyncSession, article: KbArticle, status: str) -> KbArticle:
    previous = article.status
    article.status = states.KB_ARTICLE.require_transition(previous, status)
    if status == "published" and article.published_at is None:
        article.published_at = datetime.now(timezone.utc)
    # Category counts cover published articles only.
    if article.category_id is not None and (previous == "published") != (status == "published"):
        await kb_repo.adjust_category_count(session, article.category_id, 1 if status == "published" else -1)
    await session.flush()
    logger.info("kb_article_status article_id=%s from=%s to=%s", article.article_id, previous, status)
    return article


async def record_view(session: AsyncSession, article: KbArticle) -> None:
    await kb_repo.increment_article_counters(session, article.article_id, views=1)


async def record_feedback(
    session: AsyncSession,
    article: KbArticle,
    *,
    is_helpful: bool,
    user_id: UUID | None = None,
    anonymous_id: str | None = None,
    comment: str | None = None,
) -> KbArticleFeedback:
    if user_id is None and not anonymous_id:
        raise ValueError("feedback needs a user_id or an anonymous_id")
    await ensure_reference(session, "auth.users", user_id, source="kb.article_feedback.user_id")
    feedback = KbArticleFeedback(
        article_id=article.article_id,
        user_id=user_id,
        anonymous_id=anonymous_id,
        is_helpful=is_helpful,
        comment=comment,
    )
    session.add(feedback)
    await kb_repo.increment_article_counters(
        session, article.article_id, helpful=int(is_helpful), not_helpful=int(not is_helpful)
    )
    await session.flush()
    return feedback


def helpfulness(article: KbArticle) -> Decimal | None:
    total = article.helpful_count + article.not_helpful_count
    if total == 0:
        return None
    return (Decimal(article.helpful_count) / total).quantize(Decimal("0.01"))


async def relate_articles(
    session: AsyncSession, article: KbArticle, related: KbArticle, *, relevance_score: Decimal = Decimal("1.00")
) -> KbRelatedArticle:
    if article.article_id == related.article_id:
        raise ValueError("an article cannot be related to itself")
    if not Decimal("0") <= relevance_score <= Decimal("1"):
        raise ValueError("relevance_score must be between 0 and 1")
    link = KbRelatedArticle(
        article_id=article.article_id,
        related_article_id=related.article_id,
        relevance_score=relevance_score,
    )
    # merge: relating the same pair again just updates the score.
    link = await session.merge(link)
    await session.flush()
    return link
