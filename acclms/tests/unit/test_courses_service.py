from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy.dialects import postgresql

from acclms.domain.models import Course
from acclms.persistence.repos.courses import contains_pattern, search_courses
from acclms.services.courses import MAX_PAGE_SIZE, apply_rating, page_window


def test_page_window_clamps_inputs() -> None:
    assert page_window(1, 20) == (0, 20)
    assert page_window(3, 10) == (20, 10)
    assert page_window(0, 0) == (0, 1)
    assert page_window(2, 10_000) == (MAX_PAGE_SIZE, MAX_PAGE_SIZE)


def test_apply_rating_keeps_a_running_average() -> None:
    course = Course(average_rating=Decimal("0.00"), total_ratings=0)
    assert apply_rating(course, 5) == Decimal("5.00")
    assert apply_rating(course, 4) == Decimal("4.50")
    assert apply_rating(course, 4) == Decimal("4.33")
    assert course.total_ratings == 3


def test_apply_rating_rejects_out_of_range() -> None:
    with pytest.raises(ValueError):
        apply_rating(Course(average_rating=Decimal("0.00"), total_ratings=0), 6)


def test_search_pattern_matches_wildcards_literally() -> None:
    assert contains_pattern("  python  ") == "%python%"
    assert contains_pattern("100%") == "%100\\%%"
    assert contains_pattern("snake_case") == "%snake\\_case%"
    assert contains_pattern("C:\\temp") == "%C:\\\\temp%"


class _RecordingSession:
    def __init__(self) -> None:
        self.statements: list[object] = []

    async def scalar(self, statement: object) -> int:
        self.statements.append(statement)
        return 0

    async def execute(self, statement: object) -> "_EmptyResult":
        self.statements.append(statement)
        return _EmptyResult()


class _EmptyResult:
    def scalars(self) -> "_EmptyResult":
        return self

    def all(self) -> list[object]:
        return []


@pytest.mark.asyncio
async def test_search_escapes_user_wildcards() -> None:
    session = _RecordingSession()
    courses, total = await search_courses(session, "50%_off", limit=5)  # type: ignore[arg-type]
    assert (courses, total) == ([], 0)
    compiled = session.statements[-1].compile(dialect=postgresql.dialect())
    assert "ILIKE" in str(compiled)
    assert "ESCAPE" in str(compiled)
    assert "%50\\%\\_off%" in compiled.params.values()
