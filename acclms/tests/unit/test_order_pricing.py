from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from acclms.core.errors import InvalidDiscountCodeError
from acclms.domain.models import DiscountCode
from acclms.services import orders as orders_service
from acclms.services.orders import discount_amount, discount_rejection, price_order


NOW = datetime(2026, 10, 16, tzinfo=timezone.utc)


def _code(
    discount_type: str = "percentage",
    value: str = "10.00",
    *,
    minimum_order_cents: int = 0,
    max_uses: int | None = None,
    current_uses: int = 0,
    is_active: bool = True,
    valid_from: datetime | None = None,
    valid_until: datetime | None = None,
) -> DiscountCode:
    return DiscountCode(
        code="WELCOME10",
        discount_type=discount_type,
        discount_value=Decimal(value),
        minimum_order_cents=minimum_order_cents,
        max_uses=max_uses,
        current_uses=current_uses,
        is_active=is_active,
        valid_from=valid_from or NOW - timedelta(days=1),
        valid_until=valid_until,
    )


def test_percentage_discount_rounds_half_even() -> None:
    assert discount_amount(_code(value="10.00"), 4900) == 490
    # 12.5% of 100 cents is 12.5, which rounds to the even 12.
    assert discount_amount(_code(value="12.50"), 100) == 12


def test_fixed_discount_is_in_currency_units_and_capped() -> None:
    assert discount_amount(_code("fixed_amount", "5.00"), 4900) == 500
    assert discount_amount(_code("fixed_amount", "99.00"), 4900) == 4900


def test_discount_is_zero_below_minimum_order() -> None:
    assert discount_amount(_code(minimum_order_cents=5000), 4900) == 0


def test_price_order_totals() -> None:
    quote = price_order(4900, _code(), tax_cents=100)
    assert quote.discount_cents == 490
    assert quote.total_cents == 4900 - 490 + 100
    assert quote.discount_code == "WELCOME10"
    assert price_order(0).total_cents == 0
    with pytest.raises(ValueError):
        price_order(-1)


def test_rejection_reasons() -> None:
    assert discount_rejection(_code(), NOW) is None
    assert discount_rejection(_code(is_active=False), NOW) == "inactive"
    assert discount_rejection(_code(valid_from=NOW + timedelta(days=1)), NOW) == "not_yet_valid"
    assert discount_rejection(_code(valid_until=NOW - timedelta(days=1)), NOW) == "expired"
    assert discount_rejection(_code(max_uses=3, current_uses=3), NOW) == "exhausted"


@pytest.mark.asyncio
async def test_validate_coupon_reports_minimum_not_met(monkeypatch) -> None:
    async def _lookup(_session, _code_value):
        return _code(minimum_order_cents=10_000)

    monkeypatch.setattr(orders_service.orders_repo, "get_discount_code", _lookup)
    with pytest.raises(InvalidDiscountCodeError) as excinfo:
        await orders_service.validate_coupon(None, "welcome10", 4900, now=NOW)  # type: ignore[arg-type]
    assert excinfo.value.reason == "minimum_not_met"


@pytest.mark.asyncio
async def test_validate_coupon_reports_unknown_code(monkeypatch) -> None:
    async def _lookup(_session, _code_value):
        return None

    monkeypatch.setattr(orders_service.orders_repo, "get_discount_code", _lookup)
    with pytest.raises(InvalidDiscountCodeError) as excinfo:
        await orders_service.validate_coupon(None, "nope", 4900)  # type: ignore[arg-type]
    assert excinfo.value.reason == "not_found"
