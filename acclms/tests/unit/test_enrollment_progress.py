from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from acclms.domain.models import Enrollment
from acclms.services.enrollments import has_access, record_progress


class _FlushSession:
    def __init__(self) -> None:
        self.flushes = 0

    async def flush(self) -> None:
        self.flushes += 1


def _enrollment(status: str = "active", progress: str = "0.00", expires_at: datetime | None = None) -> Enrollment:
    return Enrollment(
        enrollment_id=uuid4(),
        user_id=uuid4(),
        course_id=uuid4(),
        status=status,
        progress_percentage=Decimal(progress),
        expires_at=expires_at,
    )


@pytest.mark.asyncio
async def test_progress_never_moves_backwards() -> None:
    session = _FlushSession()
    enrollment = _enrollment(progress="60.00")
    changed = await record_progress(session, enrollment, 40)  # type: ignore[arg-type]
    assert changed is False
    assert enrollment.progress_percentage == Decimal("60.00")
    assert enrollment.last_accessed_at is not None


@pytest.mark.asyncio
async def test_progress_is_clamped_and_completes_at_hundred() -> None:
    session = _FlushSession()
    enrollment = _enrollment(progress="90.00")
    changed = await record_progress(session, enrollment, 140)  # type: ignore[arg-type]
    assert changed is True
    assert enrollment.progress_percentage == Decimal("100.00")
    assert enrollment.status == "completed"
    assert enrollment.completed_at is not None


@pytest.mark.asyncio
async def test_progress_rounds_to_two_decimals() -> None:
    enrollment = _enrollment()
    await record_progress(_FlushSession(), enrollment, Decimal(1) * Decimal(100) / Decimal(3))  # type: ignore[arg-type]
    assert enrollment.progress_percentage == Decimal("33.33")


@pytest.mark.asyncio
async def test_progress_is_ignored_unless_active() -> None:
    enrollment = _enrollment(status="paused", progress="10.00")
    assert await record_progress(_FlushSession(), enrollment, 50) is False  # type: ignore[arg-type]
    assert enrollment.progress_percentage == Decimal("10.00")


def test_access_requires_live_status_and_unexpired_window() -> None:
    now = datetime(2026, 10, 16, tzinfo=timezone.utc)
    assert has_access(_enrollment(), now)
    assert has_access(_enrollment(status="completed"), now)
    assert not has_access(_enrollment(status="refunded"), now)
    assert has_access(_enrollment(expires_at=now + timedelta(days=1)), now)
    assert not has_access(_enrollment(expires_at=now - timedelta(seconds=1)), now)
