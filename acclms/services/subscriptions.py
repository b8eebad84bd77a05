from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
import secrets
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from acclms.core.config import get_settings
from acclms.core.errors import ActiveSubscriptionExistsError, InvalidStateTransitionError, ReferenceIntegrityError
from acclms.domain.models import Invoice, Plan, Subscription
from acclms.domain.states import SUBSCRIPTION
from acclms.persistence.repos import subscriptions as subscriptions_repo
from acclms.services.references import ensure_reference


logger = logging.getLogger(__name__)

# Period lengths in days; months and years are approximated, lifetime is a century.
BILLING_PERIOD_DAYS: dict[str, int] = {
    "daily": 1,
    "weekly": 7,
    "monthly": 30,
    "quarterly": 90,
    "semi_annual": 180,
    "annual": 365,
    "lifetime": 36500,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def billing_period_end(interval: str, start: datetime) -> datetime:
    try:
        days = BILLING_PERIOD_DAYS[interval]
    except KeyError as exc:
        raise ValueError(f"unknown billing interval: {interval}") from exc
    return start + timedelta(days=days)


def generate_invoice_number(now: datetime | None = None) -> str:
    # Random suffix; the invoices.invoice_number unique constraint rejects the rare collision.
    now = now or _now()
    prefix = get_settings().invoice_number_prefix
    return f"{prefix}-{now:%Y%m}-{secrets.randbelow(1_000_000):06d}"


def build_subscription(user_id: UUID, plan: Plan, now: datetime | None = None) -> Subscription:
    now = now or _now()
    trialing = plan.trial_days > 0
    return Subscription(
        user_id=user_id,
        plan_id=plan.id,
        status="trialing" if trialing else "active",
        current_period_start=now,
        current_period_end=billing_period_end(plan.billing_interval, now),
        trial_start=now if trialing else None,
        trial_end=now + timedelta(days=plan.trial_days) if trialing else None,
        cancel_at_period_end=False,
        metadata_json={},
    )


def build_invoice(subscription: Subscription, plan: Plan, now: datetime | None = None) -> Invoice:
    now = now or _now()
    return Invoice(
        subscription_id=subscription.id,
        user_id=subscription.user_id,
        invoice_number=generate_invoice_number(now),
        status="open",
        subtotal_cents=plan.price_cents,
        discount_cents=0,
        tax_cents=0,
        total_cents=plan.price_cents,
        currency=plan.currency,
        period_start=subscription.current_period_start,
        period_end=subscription.current_period_end,
        due_date=now + timedelta(days=get_settings().invoice_due_days),
        line_items=[{"description": plan.name, "quantity": 1, "amount_cents": plan.price_cents}],
    )


async def create_subscription(session: AsyncSession, *, user_id: UUID, plan_id: UUID) -> Subscription:
    """Start a subscription, in trial when the plan has trial days.

    A user holds at most one active or trialing subscription; the partial
    unique index ``uq_subscriptions_user_live`` backs this check.
    """
    await ensure_reference(session, "auth.users", user_id, source="subscriptions.subscriptions.user_id")
    if await subscriptions_repo.get_live_subscription(session, user_id) is not None:
        raise ActiveSubscriptionExistsError(f"user {user_id} already has a live subscription")
    plan = await subscriptions_repo.get_plan(session, plan_id)
    if plan is None or not plan.is_active:
        raise ReferenceIntegrityError(
            source="subscriptions.subscriptions.plan_id", target="subscriptions.plans", value=plan_id
        )
    subscription = await subscriptions_repo.add_subscription(session, build_subscription(user_id, plan))
    logger.info("subscription_created id=%s status=%s", subscription.id, subscription.status)
    return subscription


async def cancel_subscription(
    session: AsyncSession, subscription: Subscription, *, immediate: bool = False
) -> Subscription:
    if subscription.status not in subscriptions_repo.LIVE_SUBSCRIPTION_STATUSES:
        raise InvalidStateTransitionError(entity="subscription", current=subscription.status, requested="cancelled")
    subscription.cancelled_at = _now()
    if immediate:
        subscription.status = SUBSCRIPTION.require_transition(subscription.status, "cancelled")
    else:
        # Access continues until current_period_end; renewal then closes it.
        subscription.cancel_at_period_end = True
    await session.flush()
    return subscription


async def reactivate_subscription(session: AsyncSession, subscription: Subscription) -> Subscription:
    """Undo a cancellation while the paid period is still running.

    A pending end-of-period cancel is simply withdrawn. An immediately
    cancelled subscription returns to ``active`` unless the user has since
    started another live subscription.
    """
    if subscription.status in subscriptions_repo.LIVE_SUBSCRIPTION_STATUSES and subscription.cancel_at_period_end:
        subscription.cancel_at_period_end = False
        subscription.cancelled_at = None
        await session.flush()
        logger.info("subscription_cancel_withdrawn id=%s", subscription.id)
        return subscription
    if subscription.status != "cancelled" or subscription.current_period_end < _now():
        raise InvalidStateTransitionError(entity="subscription", current=subscription.status, requested="active")
    if await subscriptions_repo.get_live_subscription(session, subscription.user_id) is not None:
        raise ActiveSubscriptionExistsError(f"user {subscription.user_id} already has a live subscription")
    subscription.status = SUBSCRIPTION.require_transition(subscription.status, "active")
    subscription.cancelled_at = None
    subscription.cancel_at_period_end = False
    await session.flush()
    logger.info("subscription_reactivated id=%s", subscription.id)
    return subscription


async def renew_subscription(session: AsyncSession, subscription: Subscription) -> Invoice | None:
    """Roll a live subscription into its next period and invoice it.

    Subscriptions flagged ``cancel_at_period_end`` are cancelled instead and
    no invoice is produced.
    """
    if subscription.cancel_at_period_end:
        subscription.status = SUBSCRIPTION.require_transition(subscription.status, "cancelled")
        await session.flush()
        logger.info("subscription_closed_at_period_end id=%s", subscription.id)
        return None
    plan = await subscriptions_repo.get_plan(session, subscription.plan_id)
    if plan is None:
        raise ReferenceIntegrityError(
            source="subscriptions.subscriptions.plan_id", target="subscriptions.plans", value=subscription.plan_id
        )
    if subscription.status == "trialing":
        subscription.status = SUBSCRIPTION.require_transition(subscription.status, "active")
    elif subscription.status != "active":
        raise InvalidStateTransitionError(entity="subscription", current=subscription.status, requested="active")
    start = subscription.current_period_end
    subscription.current_period_start = start
    subscription.current_period_end = billing_period_end(plan.billing_interval, start)
    invoice = await subscriptions_repo.add_invoice(session, build_invoice(subscription, plan))
    logger.info("subscription_renewed id=%s invoice=%s", subscription.id, invoice.invoice_number)
    return invoice
