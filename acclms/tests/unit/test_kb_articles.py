from __future__ import annotations

from uuid import uuid4

import pytest

from acclms.core.errors import InvalidStateTransitionError
from acclms.domain.models import KbArticle, KbArticleVersion
from acclms.services import kb as kb_service
from acclms.services.kb import excerpt_from, helpfulness, slugify


class _Session:
    def __init__(self) -> None:
        self.added: list[object] = []

    def add(self, row: object) -> None:
        self.added.append(row)

    async def flush(self) -> None:
        return None


def _article(**fields: object) -> KbArticle:
    values = {
        "article_id": uuid4(),
        "title": "Reset your password",
        "slug": "reset-your-password",
        "content": "Open settings.",
        "content_type": "markdown",
        "status": "draft",
        "author_id": uuid4(),
        "version": 1,
        "helpful_count": 0,
        "not_helpful_count": 0,
    }
    values.update(fields)
    return KbArticle(**values)


async def _no_reference_check(session, target, value, *, source):
    return None


def test_slugify_folds_accents_and_punctuation() -> None:
    assert slugify("  Cómo pagar: ¡Tarjeta & PayPal!  ") == "como-pagar-tarjeta-paypal"
    with pytest.raises(ValueError):
        slugify("!!!")


def test_excerpt_breaks_on_a_word() -> None:
    assert excerpt_from("short\n text") == "short text"
    excerpt = excerpt_from("word " * 100, limit=22)
    assert excerpt.endswith("…")
    assert len(excerpt) <= 22


def test_helpfulness_ratio() -> None:
    assert helpfulness(_article()) is None
    assert str(helpfulness(_article(helpful_count=2, not_helpful_count=1))) == "0.67"


@pytest.mark.asyncio
async def test_edits_create_the_next_version(monkeypatch) -> None:
    monkeypatch.setattr(kb_service, "ensure_reference", _no_reference_check)
    session = _Session()
    article = _article()
    editor = uuid4()

    await kb_service.update_article(session, article, changed_by=editor, title=article.title)  # type: ignore[arg-type]
    assert article.version == 1
    assert session.added == []

    await kb_service.update_article(  # type: ignore[arg-type]
        session, article, changed_by=editor, content="Open settings, then Security.", change_summary="clarify"
    )
    assert article.version == 2
    [version] = session.added
    assert isinstance(version, KbArticleVersion)
    assert (version.version_number, version.changed_by, version.change_summary) == (2, editor, "clarify")
    assert version.content == "Open settings, then Security."


@pytest.mark.asyncio
async def test_publishing_stamps_once_and_counts_in_category(monkeypatch) -> None:
    deltas: list[int] = []

    async def _adjust(session, category_id, delta):
        deltas.append(delta)

    monkeypatch.setattr(kb_service.kb_repo, "adjust_category_count", _adjust)
    article = _article(category_id=uuid4())
    session = _Session()

    await kb_service.transition_article(session, article, "published")  # type: ignore[arg-type]
    first_published = article.published_at
    assert first_published is not None
    await kb_service.transition_article(session, article, "draft")  # type: ignore[arg-type]
    await kb_service.transition_article(session, article, "published")  # type: ignore[arg-type]
    assert article.published_at == first_published
    assert deltas == [1, -1, 1]

    await kb_service.transition_article(session, article, "archived")  # type: ignore[arg-type]
    with pytest.raises(InvalidStateTransitionError):
        await kb_service.transition_article(session, article, "published")  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_an_article_cannot_relate_to_itself() -> None:
    article = _article()
    with pytest.raises(ValueError):
        await kb_service.relate_articles(_Session(), article, article)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_feedback_needs_an_author() -> None:
    with pytest.raises(ValueError):
        await kb_service.record_feedback(_Session(), _article(), is_helpful=True)  # type: ignore[arg-type]
