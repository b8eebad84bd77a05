from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.domain.models import Invoice, Plan, Subscription


LIVE_SUBSCRIPTION_STATUSES = ("active", "trialing")


async def get_plan(session: AsyncSession, plan_id: UUID) -> Plan | None:
    result = await session.execute(select(Plan).where(Plan.id == plan_id))
    return result.scalar_one_or_none()


async def list_active_plans(session: AsyncSession) -> list[Plan]:
    result = await session.execute(
        select(Plan).where(Plan.is_active.is_(True)).order_by(Plan.display_order, Plan.name)
    )
    return list(result.scalars().all())


async def get_live_subscription(session: AsyncSession, user_id: UUID) -> Subscription | None:
    result = await session.execute(
        select(Subscription).where(
            Subscription.user_id == user_id,
            Subscription.status.in_(LIVE_SUBSCRIPTION_STATUSES),
        )
    )
    return result.scalar_one_or_none()


async def get_subscription(session: AsyncSession, subscription_id: UUID) -> Subscription | None:
    result = await session.execute(select(Subscription).where(Subscription.id == subscription_id))
    return result.scalar_one_or_none()


async def add_subscription(session: AsyncSession, subscription: Subscription) -> Subscription:
    session.add(subscription)
    await session.flush()
    return subscription


async def add_invoice(session: AsyncSession, invoice: Invoice) -> Invoice:
    session.add(invoice)
    await session.flush()
    return invoice


async def list_invoices(session: AsyncSession, subscription_id: UUID) -> list[Invoice]:
    result = await session.execute(
        select(Invoice)
        .where(Invoice.subscription_id == subscription_id)
        .order_by(Invoice.period_start, Invoice.id)
    )
    return list(result.scalars().all())
