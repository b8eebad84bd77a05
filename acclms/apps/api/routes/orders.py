from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.apps.api.deps import Principal, get_current_principal, get_db, require_role
from acclms.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from acclms.apps.api.response import SuccessEnvelope
from acclms.domain.models import Order
from acclms.persistence.repos import courses as courses_repo
from acclms.persistence.repos import orders as orders_repo
from acclms.services import orders as orders_service


router = APIRouter(prefix="/orders", tags=["orders"], responses=DEFAULT_ERROR_RESPONSES)
payments_router = APIRouter(prefix="/payments", tags=["payments"], responses=DEFAULT_ERROR_RESPONSES)


class OrderResponse(BaseModel):
    order_id: UUID
    order_number: str
    user_id: UUID
    course_id: UUID
    status: str
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    currency: str
    discount_code: str | None
    metadata: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class CreateOrderRequest(BaseModel):
    course_id: UUID
    discount_code: str | None = Field(default=None, max_length=64)

    model_config = {"extra": "forbid"}


class CouponRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    course_id: UUID

    model_config = {"extra": "forbid"}


class CouponResponse(BaseModel):
    code: str
    valid: bool
    subtotal_cents: int
    discount_cents: int
    total_cents: int


def _to_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=order.order_id,
        order_number=order.order_number,
        user_id=order.user_id,
        course_id=order.course_id,
        status=order.status,
        subtotal_cents=order.subtotal_cents,
        discount_cents=order.discount_cents,
        tax_cents=order.tax_cents,
        total_cents=order.total_cents,
        currency=order.currency,
        discount_code=order.discount_code,
        metadata=dict(order.metadata_json or {}),
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


async def _owned_order(db: AsyncSession, order_id: UUID, principal: Principal) -> Order:
    order = await orders_repo.get_order(db, order_id)
    if order is None or (principal.role != "admin" and order.user_id != principal.user_id):
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SuccessEnvelope[OrderResponse] | OrderResponse)
async def create_order(
    payload: CreateOrderRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    try:
        order = await orders_service.create_order(
            db,
            user_id=principal.user_id,
            course_id=payload.course_id,
            discount_code=payload.discount_code,
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while creating order") from exc
    return _to_response(order)


@router.get("/me", response_model=SuccessEnvelope[list[OrderResponse]] | list[OrderResponse])
async def my_orders(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> list[OrderResponse]:
    try:
        orders = await orders_repo.list_for_user(db, principal.user_id)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while listing orders") from exc
    return [_to_response(order) for order in orders]


@router.get("/{order_id}", response_model=SuccessEnvelope[OrderResponse] | OrderResponse)
async def get_order(
    order_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    try:
        order = await _owned_order(db, order_id, principal)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while fetching order") from exc
    return _to_response(order)


@router.post("/{order_id}/cancel", response_model=SuccessEnvelope[OrderResponse] | OrderResponse)
async def cancel_order(
    order_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    try:
        order = await _owned_order(db, order_id, principal)
        order = await orders_service.cancel_order(db, order)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while cancelling order") from exc
    return _to_response(order)


@router.post("/{order_id}/refund", response_model=SuccessEnvelope[OrderResponse] | OrderResponse)
async def refund_order(
    order_id: UUID,
    principal: Principal = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    # Only paid orders refund; anything else is an invalid transition (409).
    try:
        order = await _owned_order(db, order_id, principal)
        order = await orders_service.refund_order(db, order)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while refunding order") from exc
    return _to_response(order)


@payments_router.post("/coupon", response_model=SuccessEnvelope[CouponResponse] | CouponResponse)
async def validate_coupon(
    payload: CouponRequest,
    _principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> CouponResponse:
    try:
        course = await courses_repo.get_course(db, payload.course_id)
        if course is None or not course.is_published:
            raise HTTPException(status_code=404, detail="Course not found")
        quote = await orders_service.validate_coupon(db, payload.code, course.price_cents)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while validating coupon") from exc
    return CouponResponse(
        code=quote.discount_code or payload.code,
        valid=True,
        subtotal_cents=quote.subtotal_cents,
        discount_cents=quote.discount_cents,
        total_cents=quote.total_cents,
    )
