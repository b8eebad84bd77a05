from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_EVEN, Decimal
import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from acclms.core.errors import CourseNotPublishedError, InvalidDiscountCodeError, ReferenceIntegrityError
from acclms.domain import states
from acclms.domain.models import DiscountCode, Order
from acclms.persistence.repos import courses as courses_repo
from acclms.persistence.repos import orders as orders_repo
from acclms.services.references import ensure_reference


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderQuote:
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    discount_code: str | None = None


def discount_amount(code: DiscountCode, subtotal_cents: int) -> int:
    """Discount in cents for ``subtotal_cents``; zero below the code's minimum order.

    Percentage codes store the percent; fixed codes store a currency amount
    (two decimals) that is converted to cents. Never exceeds the subtotal.
    """
    if subtotal_cents < (code.minimum_order_cents or 0):
        return 0
    value = Decimal(str(code.discount_value))
    if code.discount_type == "percentage":
        discount = Decimal(subtotal_cents) * value / Decimal(100)
    else:
        discount = value * Decimal(100)
    cents = int(discount.quantize(Decimal(1), rounding=ROUND_HALF_EVEN))
    return max(0, min(cents, subtotal_cents))


def discount_rejection(code: DiscountCode, now: datetime | None = None) -> str | None:
    # Returns the first failing rule, or None when the code is usable right now.
    now = now or datetime.now(timezone.utc)
    if not code.is_active:
        return "inactive"
    if code.valid_from is not None and now < code.valid_from:
        return "not_yet_valid"
    if code.valid_until is not None and now > code.valid_until:
        return "expired"
    if code.max_uses is not None and code.current_uses >= code.max_uses:
        return "exhausted"
    return None


def price_order(subtotal_cents: int, code: DiscountCode | None = None, *, tax_cents: int = 0) -> OrderQuote:
    if subtotal_cents < 0:
        raise ValueError("subtotal_cents must be non-negative")
    discount = discount_amount(code, subtotal_cents) if code is not None else 0
    total = max(0, subtotal_cents - discount + max(0, tax_cents))
    return OrderQuote(
        subtotal_cents=subtotal_cents,
        discount_cents=discount,
        tax_cents=max(0, tax_cents),
        total_cents=total,
        discount_code=code.code if code is not None else None,
    )


async def validate_coupon(
    session: AsyncSession, code: str, subtotal_cents: int, *, now: datetime | None = None
) -> OrderQuote:
    row = await orders_repo.get_discount_code(session, code)
    if row is None:
        raise InvalidDiscountCodeError(code, "not_found")
    reason = discount_rejection(row, now)
    if reason is None and subtotal_cents < (row.minimum_order_cents or 0):
        reason = "minimum_not_met"
    if reason is not None:
        raise InvalidDiscountCodeError(code, reason)
    return price_order(subtotal_cents, row)


async def create_order(
    session: AsyncSession,
    *,
    user_id: UUID,
    course_id: UUID,
    discount_code: str | None = None,
) -> Order:
    """Create a pending order priced from the course's current catalog price."""
    await ensure_reference(session, "auth.users", user_id, source="payments.orders.user_id")
    course = await courses_repo.get_course(session, course_id)
    if course is None:
        raise ReferenceIntegrityError(
            source="payments.orders.course_id", target="courses.courses", value=course_id
        )
    if not course.is_published:
        raise CourseNotPublishedError(f"course {course_id} is not published")
    if discount_code:
        quote = await validate_coupon(session, discount_code, course.price_cents)
    else:
        quote = price_order(course.price_cents)
    order = await orders_repo.create_order(
        session,
        user_id=user_id,
        course_id=course_id,
        subtotal_cents=quote.subtotal_cents,
        discount_cents=quote.discount_cents,
        tax_cents=quote.tax_cents,
        total_cents=quote.total_cents,
        currency=course.currency,
        discount_code=quote.discount_code,
        metadata_json={"course_title": course.title},
    )
    logger.info("order_created order_id=%s order_number=%s", order.order_id, order.order_number)
    return order


async def transition_order(session: AsyncSession, order: Order, status: str) -> Order:
    states.ORDER.require_transition(order.status, status)
    order.status = status
    if status == states.ORDER_STATUS_PAID and order.discount_code:
        # A code is consumed only by a paid order.
        await orders_repo.increment_discount_usage(session, order.discount_code)
    await session.flush()
    logger.info("order_transitioned order_id=%s status=%s", order.order_id, status)
    return order


async def cancel_order(session: AsyncSession, order: Order) -> Order:
    return await transition_order(session, order, states.ORDER_STATUS_CANCELLED)


async def refund_order(session: AsyncSession, order: Order) -> Order:
    return await transition_order(session, order, states.ORDER_STATUS_REFUNDED)
