from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
import logging
from typing import Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from acclms.domain import states
from acclms.domain.models import Enrollment, LessonProgress, UserStats
from acclms.persistence.repos import users as users_repo
from acclms.services.references import ensure_reference


logger = logging.getLogger(__name__)

_RATE = Decimal("0.0001")


@dataclass(frozen=True)
class LearningStats:
    courses_enrolled: int
    courses_completed: int
    certificates_earned: int
    total_learning_time_minutes: int
    average_completion_rate: Decimal
    current_streak_days: int
    longest_streak_days: int
    last_activity_at: datetime | None


def _streaks(days: Iterable[date], today: date) -> tuple[int, int]:
    """Return (current, longest) runs of consecutive activity days.

    The current streak survives a day without activity so far today.
    """
    ordered = sorted(set(days))
    longest = run = 0
    previous: date | None = None
    for day in ordered:
        run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
        longest = max(longest, run)
        previous = day
    if previous is None or today - previous > timedelta(days=1):
        return 0, longest
    return run, longest


def compute_learning_stats(
    enrollments: list[Enrollment], progress: list[LessonProgress], now: datetime | None = None
) -> LearningStats:
    now = now or datetime.now(timezone.utc)
    counted = [e for e in enrollments if e.status != states.ENROLLMENT_STATUS_REFUNDED]
    completed = [e for e in counted if e.status == states.ENROLLMENT_STATUS_COMPLETED]
    if counted:
        mean = sum((e.progress_percentage for e in counted), Decimal("0")) / len(counted) / 100
        rate = mean.quantize(_RATE)
    else:
        rate = Decimal("0.0000")
    activity = [p.last_accessed_at for p in progress if p.last_accessed_at is not None]
    current, longest = _streaks((moment.astimezone(timezone.utc).date() for moment in activity), now.date())
    return LearningStats(
        courses_enrolled=len(counted),
        courses_completed=len(completed),
        certificates_earned=sum(1 for e in enrollments if e.certificate_issued_at is not None),
        total_learning_time_minutes=sum(p.time_spent_seconds for p in progress) // 60,
        average_completion_rate=rate,
        current_streak_days=current,
        longest_streak_days=longest,
        last_activity_at=max(activity, default=None),
    )


async def refresh_user_stats(session: AsyncSession, user_id: UUID) -> UserStats:
    """Recompute ``users.user_stats`` for one user from enrollment activity."""
    await ensure_reference(session, "auth.users", user_id, source="users.user_stats.user_id")
    enrollments, progress = await users_repo.list_learning_activity(session, user_id)
    stats = compute_learning_stats(enrollments, progress)
    row = await users_repo.get_stats(session, user_id)
    if row is None:
        row = UserStats(user_id=user_id)
        session.add(row)
    for field_name, value in asdict(stats).items():
        setattr(row, field_name, value)
    row.calculated_at = datetime.now(timezone.utc)
    await session.flush()
    logger.info(
        "user_stats_refreshed user_id=%s enrolled=%s completed=%s",
        user_id,
        stats.courses_enrolled,
        stats.courses_completed,
    )
    return row
