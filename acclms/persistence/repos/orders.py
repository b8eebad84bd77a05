from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.domain.models import DiscountCode, Order, Transaction


async def create_order(
    session: AsyncSession,
    *,
    user_id: UUID,
    course_id: UUID,
    subtotal_cents: int,
    discount_cents: int,
    tax_cents: int,
    total_cents: int,
    currency: str,
    discount_code: str | None = None,
    metadata_json: dict[str, Any] | None = None,
) -> Order:
    # order_number is left to payments.generate_order_number() and returned by the INSERT.
    order = Order(
        user_id=user_id,
        course_id=course_id,
        subtotal_cents=subtotal_cents,
        discount_cents=discount_cents,
        tax_cents=tax_cents,
        total_cents=total_cents,
        currency=currency,
        discount_code=discount_code,
        metadata_json=metadata_json or {},
    )
    session.add(order)
    await session.flush()
    return order


async def get_order(session: AsyncSession, order_id: UUID) -> Order | None:
    result = await session.execute(select(Order).where(Order.order_id == order_id))
    return result.scalar_one_or_none()


async def get_order_by_number(session: AsyncSession, order_number: str) -> Order | None:
    result = await session.execute(select(Order).where(Order.order_number == order_number))
    return result.scalar_one_or_none()


async def list_for_user(session: AsyncSession, user_id: UUID, *, limit: int = 50) -> list[Order]:
    result = await session.execute(
        select(Order)
        .where(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.order_id)
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_discount_code(session: AsyncSession, code: str) -> DiscountCode | None:
    # Codes are stored upper-case; lookups normalize the caller's input.
    result = await session.execute(select(DiscountCode).where(DiscountCode.code == code.strip().upper()))
    return result.scalar_one_or_none()


async def increment_discount_usage(session: AsyncSession, code: str) -> None:
    await session.execute(
        update(DiscountCode)
        .where(DiscountCode.code == code.strip().upper())
        .values(current_uses=DiscountCode.current_uses + 1)
    )


async def add_transaction(
    session: AsyncSession,
    *,
    order_id: UUID,
    provider: str,
    provider_transaction_id: str,
    transaction_type: str,
    amount_cents: int,
    currency: str,
    status: str,
) -> Transaction:
    transaction = Transaction(
        order_id=order_id,
        provider=provider,
        provider_transaction_id=provider_transaction_id,
        transaction_type=transaction_type,
        amount_cents=amount_cents,
        currency=currency,
        status=status,
    )
    session.add(transaction)
    await session.flush()
    return transaction
