from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from acclms.domain.models import Enrollment, LessonProgress
from acclms.services.users import compute_learning_stats


NOW = datetime(2026, 10, 16, 18, 0, tzinfo=timezone.utc)


def _enrollment(status: str, progress: str, *, certificate: bool = False) -> Enrollment:
    return Enrollment(
        user_id=uuid4(),
        course_id=uuid4(),
        status=status,
        progress_percentage=Decimal(progress),
        certificate_issued_at=NOW if certificate else None,
    )


def _progress(days_ago: int, seconds: int = 600) -> LessonProgress:
    return LessonProgress(
        enrollment_id=uuid4(),
        lesson_id=uuid4(),
        user_id=uuid4(),
        status="completed",
        time_spent_seconds=seconds,
        last_accessed_at=NOW - timedelta(days=days_ago),
    )


def test_counts_and_completion_rate() -> None:
    stats = compute_learning_stats(
        [
            _enrollment("completed", "100.00", certificate=True),
            _enrollment("active", "50.00"),
            _enrollment("refunded", "10.00"),
        ],
        [],
        NOW,
    )
    assert stats.courses_enrolled == 2
    assert stats.courses_completed == 1
    assert stats.certificates_earned == 1
    assert stats.average_completion_rate == Decimal("0.7500")
    assert stats.last_activity_at is None


def test_learning_time_is_whole_minutes() -> None:
    stats = compute_learning_stats([], [_progress(0, 90), _progress(0, 100)], NOW)
    assert stats.total_learning_time_minutes == 3
    assert stats.average_completion_rate == Decimal("0.0000")


def test_streak_counts_consecutive_days_up_to_yesterday() -> None:
    # Active yesterday and the two days before; a gap, then an older four-day run.
    days = [1, 2, 3, 5, 6, 7, 8]
    stats = compute_learning_stats([], [_progress(day) for day in days], NOW)
    assert stats.current_streak_days == 3
    assert stats.longest_streak_days == 4
    assert stats.last_activity_at == NOW - timedelta(days=1)


def test_streak_breaks_after_a_missed_day() -> None:
    stats = compute_learning_stats([], [_progress(2), _progress(3)], NOW)
    assert stats.current_streak_days == 0
    assert stats.longest_streak_days == 2
