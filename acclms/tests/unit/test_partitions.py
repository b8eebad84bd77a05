from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from acclms.services.partitions import (
    add_months,
    month_start,
    months_between,
    partition_bounds,
    partition_month,
    partition_name,
    partitions_before,
    retention_cutoff,
)


def test_month_start_uses_utc() -> None:
    # 23:30 on Jan 31 at UTC-5 is already February in UTC.
    local = datetime(2026, 1, 31, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
    assert month_start(local) == date(2026, 2, 1)
    assert month_start(datetime(2026, 1, 31, 23, 30)) == date(2026, 1, 1)


def test_names_and_bounds() -> None:
    assert partition_name(date(2026, 3, 17)) == "events_2026_03"
    assert partition_bounds(date(2026, 12, 5)) == (date(2026, 12, 1), date(2027, 1, 1))
    assert partition_month("events_2026_03") == date(2026, 3, 1)
    assert partition_month("events_default") is None
    assert partition_month("events_2026_13") is None


def test_add_months_crosses_years() -> None:
    assert add_months(date(2026, 11, 1), 3) == date(2027, 2, 1)
    assert add_months(date(2026, 1, 1), -1) == date(2025, 12, 1)


def test_months_between_is_inclusive() -> None:
    months = months_between(date(2025, 11, 20), date(2026, 2, 2))
    assert months == [date(2025, 11, 1), date(2025, 12, 1), date(2026, 1, 1), date(2026, 2, 1)]
    assert months_between(date(2026, 2, 1), date(2026, 1, 1)) == []


def test_partitions_before_keeps_the_cutoff_month() -> None:
    names = ["events_2025_12", "events_2026_01", "events_2026_02", "events_default"]
    assert partitions_before(names, date(2026, 2, 15)) == ["events_2025_12", "events_2026_01"]


def test_retention_cutoff_counts_whole_months() -> None:
    now = datetime(2026, 10, 16, tzinfo=timezone.utc)
    assert retention_cutoff(now, 24) == date(2024, 10, 1)
