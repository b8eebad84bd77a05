from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy.exc import DBAPIError

from acclms.core.errors import PartitionRoutingError
from acclms.domain.models import AnalyticsEvent
from acclms.services.analytics import build_event, record_event


MARCH = datetime(2031, 3, 14, 12, 0, tzinfo=timezone.utc)


class _Result:
    def __init__(self, value: object) -> None:
        self._value = value

    def scalar_one(self) -> object:
        return self._value


class _PartitionedSession:
    """Stands in for an AsyncSession over a RANGE-partitioned events table.

    Partitions created inside a transaction disappear on ``rollback()`` the
    way ``CREATE TABLE ... PARTITION OF`` does in PostgreSQL.
    """

    def __init__(self, *, committed: set[date] | None = None, create_fails: bool = False) -> None:
        self.committed: set[date] = set(committed or ())
        self.pending: set[date] = set()
        self.create_fails = create_fails
        self.partition_calls = 0
        self.inserted: list[AnalyticsEvent] = []
        self._staged: list[AnalyticsEvent] = []

    @asynccontextmanager
    async def begin_nested(self):
        try:
            yield self
        except Exception:
            self._staged.clear()
            raise

    def add(self, event: AnalyticsEvent) -> None:
        self._staged.append(event)

    async def flush(self) -> None:
        staged, self._staged = self._staged, []
        for event in staged:
            if event.created_month not in self.committed | self.pending:
                raise DBAPIError(
                    "INSERT INTO analytics.events",
                    None,
                    Exception('no partition of relation "events" found for row'),
                )
            self.inserted.append(event)

    async def execute(self, statement: object, params: dict[str, object]) -> _Result:
        self.partition_calls += 1
        if self.create_fails:
            raise DBAPIError(
                "SELECT analytics.create_event_partition",
                params,
                Exception("permission denied for function create_event_partition"),
            )
        month = params["month"]
        self.pending.add(month)  # type: ignore[arg-type]
        return _Result(f"events_{month:%Y_%m}")

    async def commit(self) -> None:
        self.committed |= self.pending
        self.pending.clear()

    async def rollback(self) -> None:
        self.pending.clear()
        self.inserted.clear()


def _fields() -> dict[str, object]:
    return {"event_type": "page_view", "session_id": uuid4(), "timestamp": MARCH, "platform": "web"}


def test_build_event_routes_by_utc_month() -> None:
    event = build_event(**_fields())  # type: ignore[arg-type]
    assert event.created_month == date(2031, 3, 1)
    with pytest.raises(ValueError):
        build_event(event_type="custom", session_id=uuid4())


@pytest.mark.asyncio
async def test_existing_partition_needs_no_creation() -> None:
    session = _PartitionedSession(committed={date(2031, 3, 1)})
    await record_event(session, auto_create_partition=True, **_fields())  # type: ignore[arg-type]
    assert session.partition_calls == 0
    assert len(session.inserted) == 1


@pytest.mark.asyncio
async def test_partition_is_recreated_after_a_rolled_back_transaction() -> None:
    session = _PartitionedSession()

    await record_event(session, auto_create_partition=True, **_fields())  # type: ignore[arg-type]
    assert session.partition_calls == 1
    await session.rollback()

    # The partition vanished with the rollback; the next transaction must create it again.
    await record_event(session, auto_create_partition=True, **_fields())  # type: ignore[arg-type]
    assert session.partition_calls == 2
    assert len(session.inserted) == 1
    await session.commit()
    assert date(2031, 3, 1) in session.committed


@pytest.mark.asyncio
async def test_missing_partition_without_auto_create_is_a_routing_error() -> None:
    session = _PartitionedSession()
    with pytest.raises(PartitionRoutingError):
        await record_event(session, auto_create_partition=False, **_fields())  # type: ignore[arg-type]
    assert session.partition_calls == 0


@pytest.mark.asyncio
async def test_failed_partition_creation_is_a_routing_error() -> None:
    session = _PartitionedSession(create_fails=True)
    with pytest.raises(PartitionRoutingError) as excinfo:
        await record_event(session, auto_create_partition=True, **_fields())  # type: ignore[arg-type]
    assert isinstance(excinfo.value.__cause__, DBAPIError)
    assert session.inserted == []
