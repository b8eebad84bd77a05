from __future__ import annotations

from uuid import uuid4

import pytest

from acclms.core.errors import ReferenceIntegrityError
from acclms.domain.models import Base, Enrollment
from acclms.services.references import (
    cross_schema_references,
    ensure_reference,
    ensure_references,
    foreign_keys_crossing_schemas,
    unreadable_references,
)


class _ScalarResult:
    def __init__(self, value: object) -> None:
        self._value = value

    def scalar(self) -> object:
        return self._value


class _FakeSession:
    # Answers every EXISTS query with a fixed result and records the statements.
    def __init__(self, exists: bool) -> None:
        self.exists = exists
        self.statements: list[object] = []

    async def execute(self, statement: object) -> _ScalarResult:
        self.statements.append(statement)
        return _ScalarResult(self.exists)


def test_no_foreign_key_crosses_a_schema_boundary() -> None:
    assert foreign_keys_crossing_schemas() == []


def test_every_reference_target_is_a_mapped_table_the_owner_can_read() -> None:
    refs = cross_schema_references()
    assert refs
    assert all(ref.target in Base.metadata.tables for ref in refs)
    assert unreadable_references() == []


def test_known_references_are_tagged() -> None:
    sources = {ref.source: ref.target for ref in cross_schema_references()}
    assert sources["payments.orders.course_id"] == "courses.courses"
    assert sources["enrollments.enrollments.user_id"] == "auth.users"
    assert sources["users.user_preferences.user_id"] == "auth.users"
    assert sources["users.user_stats.user_id"] == "auth.users"
    assert sources["content.assets.owner_id"] == "auth.users"
    assert sources["content.assets.course_id"] == "courses.courses"
    assert sources["content.assets.lesson_id"] == "courses.lessons"
    assert sources["content.access_tokens.user_id"] == "auth.users"
    assert sources["kb.articles.author_id"] == "auth.users"
    assert sources["kb.article_versions.changed_by"] == "auth.users"
    assert sources["kb.article_feedback.user_id"] == "auth.users"


@pytest.mark.asyncio
async def test_ensure_reference_accepts_none_without_querying() -> None:
    session = _FakeSession(exists=False)
    await ensure_reference(session, "auth.users", None, source="x.y.z")  # type: ignore[arg-type]
    assert session.statements == []


@pytest.mark.asyncio
async def test_ensure_reference_raises_for_missing_row() -> None:
    session = _FakeSession(exists=False)
    missing = uuid4()
    with pytest.raises(ReferenceIntegrityError) as excinfo:
        await ensure_reference(session, "courses.courses", missing, source="payments.orders.course_id")  # type: ignore[arg-type]
    assert excinfo.value.target == "courses.courses"
    assert excinfo.value.value == missing


@pytest.mark.asyncio
async def test_ensure_references_checks_every_tagged_column() -> None:
    session = _FakeSession(exists=True)
    enrollment = Enrollment(user_id=uuid4(), course_id=uuid4())
    await ensure_references(session, enrollment)  # type: ignore[arg-type]
    assert len(session.statements) == 2


@pytest.mark.asyncio
async def test_unknown_reference_target_is_a_programming_error() -> None:
    with pytest.raises(KeyError):
        await ensure_reference(_FakeSession(exists=True), "nope.table", uuid4(), source="a.b.c")  # type: ignore[arg-type]
