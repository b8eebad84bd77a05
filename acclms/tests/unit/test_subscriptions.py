from __future__ import annotations

from datetime import datetime, timedelta, timezone
import re
from uuid import uuid4

import pytest

from acclms.core.errors import ActiveSubscriptionExistsError, InvalidStateTransitionError
from acclms.domain.models import Plan, Subscription
from acclms.services.subscriptions import (
    billing_period_end,
    build_invoice,
    build_subscription,
    generate_invoice_number,
    reactivate_subscription,
)


NOW = datetime(2026, 10, 16, 9, 30, tzinfo=timezone.utc)
FUTURE = datetime.now(timezone.utc) + timedelta(days=10)


def _plan(trial_days: int = 0, interval: str = "monthly", price_cents: int = 2900) -> Plan:
    return Plan(
        id=uuid4(),
        name="Basic",
        tier="basic",
        billing_interval=interval,
        price_cents=price_cents,
        currency="USD",
        trial_days=trial_days,
    )


def test_billing_period_lengths() -> None:
    assert billing_period_end("monthly", NOW) == NOW + timedelta(days=30)
    assert billing_period_end("annual", NOW) == NOW + timedelta(days=365)
    with pytest.raises(ValueError):
        billing_period_end("fortnightly", NOW)


def test_trial_plans_start_trialing() -> None:
    subscription = build_subscription(uuid4(), _plan(trial_days=14), NOW)
    assert subscription.status == "trialing"
    assert subscription.trial_end == NOW + timedelta(days=14)
    assert subscription.current_period_end == NOW + timedelta(days=30)


def test_plans_without_trial_start_active() -> None:
    subscription = build_subscription(uuid4(), _plan(), NOW)
    assert subscription.status == "active"
    assert subscription.trial_start is None
    assert subscription.cancel_at_period_end is False


def test_invoice_number_format() -> None:
    number = generate_invoice_number(NOW)
    assert re.fullmatch(r"INV-202610-[0-9]{6}", number)


def test_invoice_covers_the_current_period() -> None:
    plan = _plan(price_cents=7900)
    subscription = build_subscription(uuid4(), plan, NOW)
    subscription.id = uuid4()
    invoice = build_invoice(subscription, plan, NOW)
    assert invoice.subscription_id == subscription.id
    assert invoice.total_cents == 7900
    assert invoice.period_end == subscription.current_period_end
    assert invoice.due_date == NOW + timedelta(days=30)
    assert invoice.line_items == [{"description": "Basic", "quantity": 1, "amount_cents": 7900}]


class _ScalarResult:
    def __init__(self, value: object) -> None:
        self._value = value

    def scalar_one_or_none(self) -> object:
        return self._value


class _SubscriptionSession:
    # Answers the live-subscription lookup with ``live``.
    def __init__(self, live: Subscription | None = None) -> None:
        self.live = live
        self.flushes = 0

    async def execute(self, statement: object) -> _ScalarResult:
        return _ScalarResult(self.live)

    async def flush(self) -> None:
        self.flushes += 1


def _subscription(status: str, *, period_end: datetime, cancel_at_period_end: bool = False) -> Subscription:
    subscription = build_subscription(uuid4(), _plan(), NOW)
    subscription.id = uuid4()
    subscription.status = status
    subscription.current_period_end = period_end
    subscription.cancel_at_period_end = cancel_at_period_end
    subscription.cancelled_at = NOW if status == "cancelled" or cancel_at_period_end else None
    return subscription


@pytest.mark.asyncio
async def test_reactivate_withdraws_a_pending_period_end_cancel() -> None:
    subscription = _subscription("active", period_end=FUTURE, cancel_at_period_end=True)
    session = _SubscriptionSession()
    await reactivate_subscription(session, subscription)  # type: ignore[arg-type]
    assert subscription.status == "active"
    assert subscription.cancel_at_period_end is False
    assert subscription.cancelled_at is None
    assert session.flushes == 1


@pytest.mark.asyncio
async def test_reactivate_restores_a_cancelled_subscription_within_its_period() -> None:
    subscription = _subscription("cancelled", period_end=FUTURE)
    await reactivate_subscription(_SubscriptionSession(), subscription)  # type: ignore[arg-type]
    assert subscription.status == "active"
    assert subscription.cancelled_at is None


@pytest.mark.asyncio
async def test_reactivate_after_the_period_ended_is_rejected() -> None:
    subscription = _subscription("cancelled", period_end=datetime.now(timezone.utc) - timedelta(days=1))
    with pytest.raises(InvalidStateTransitionError):
        await reactivate_subscription(_SubscriptionSession(), subscription)  # type: ignore[arg-type]
    assert subscription.status == "cancelled"


@pytest.mark.asyncio
async def test_reactivate_requires_no_other_live_subscription() -> None:
    subscription = _subscription("cancelled", period_end=FUTURE)
    other = _subscription("active", period_end=FUTURE)
    with pytest.raises(ActiveSubscriptionExistsError):
        await reactivate_subscription(_SubscriptionSession(live=other), subscription)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_reactivate_an_active_subscription_is_rejected() -> None:
    with pytest.raises(InvalidStateTransitionError):
        await reactivate_subscription(
            _SubscriptionSession(), _subscription("active", period_end=FUTURE)  # type: ignore[arg-type]
        )
