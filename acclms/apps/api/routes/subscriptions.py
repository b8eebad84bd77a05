from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.apps.api.deps import Principal, get_current_principal, get_db
from acclms.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from acclms.apps.api.response import SuccessEnvelope
from acclms.domain.models import Plan, Subscription
from acclms.persistence.repos import subscriptions as subscriptions_repo
from acclms.services import subscriptions as subscriptions_service


router = APIRouter(prefix="/subscriptions", tags=["subscriptions"], responses=DEFAULT_ERROR_RESPONSES)


class PlanResponse(BaseModel):
    id: UUID
    name: str
    description: str | None
    tier: str
    billing_interval: str
    price_cents: int
    currency: str
    trial_days: int
    features: list[Any]


class SubscriptionResponse(BaseModel):
    id: UUID
    user_id: UUID
    plan_id: UUID
    status: str
    current_period_start: datetime
    current_period_end: datetime
    trial_end: datetime | None
    cancelled_at: datetime | None
    cancel_at_period_end: bool


class CreateSubscriptionRequest(BaseModel):
    plan_id: UUID

    model_config = {"extra": "forbid"}


class CancelSubscriptionRequest(BaseModel):
    immediate: bool = False

    model_config = {"extra": "forbid"}


def _plan_response(plan: Plan) -> PlanResponse:
    return PlanResponse(
        id=plan.id,
        name=plan.name,
        description=plan.description,
        tier=plan.tier,
        billing_interval=plan.billing_interval,
        price_cents=plan.price_cents,
        currency=plan.currency,
        trial_days=plan.trial_days,
        features=list(plan.features or []),
    )


def _to_response(subscription: Subscription) -> SubscriptionResponse:
    return SubscriptionResponse(
        id=subscription.id,
        user_id=subscription.user_id,
        plan_id=subscription.plan_id,
        status=subscription.status,
        current_period_start=subscription.current_period_start,
        current_period_end=subscription.current_period_end,
        trial_end=subscription.trial_end,
        cancelled_at=subscription.cancelled_at,
        cancel_at_period_end=subscription.cancel_at_period_end,
    )


async def _owned_subscription(db: AsyncSession, subscription_id: UUID, principal: Principal) -> Subscription:
    subscription = await subscriptions_repo.get_subscription(db, subscription_id)
    if subscription is None or (principal.role != "admin" and subscription.user_id != principal.user_id):
        raise HTTPException(status_code=404, detail="Subscription not found")
    return subscription


@router.get("/plans", response_model=SuccessEnvelope[list[PlanResponse]] | list[PlanResponse])
async def list_plans(db: AsyncSession = Depends(get_db)) -> list[PlanResponse]:
    try:
        plans = await subscriptions_repo.list_active_plans(db)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while listing plans") from exc
    return [_plan_response(plan) for plan in plans]


@router.get("/me", response_model=SuccessEnvelope[SubscriptionResponse] | SubscriptionResponse)
async def my_subscription(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> SubscriptionResponse:
    try:
        subscription = await subscriptions_repo.get_live_subscription(db, principal.user_id)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while fetching subscription") from exc
    if subscription is None:
        raise HTTPException(status_code=404, detail="No live subscription")
    return _to_response(subscription)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessEnvelope[SubscriptionResponse] | SubscriptionResponse,
)
async def create_subscription(
    payload: CreateSubscriptionRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> SubscriptionResponse:
    try:
        subscription = await subscriptions_service.create_subscription(
            db, user_id=principal.user_id, plan_id=payload.plan_id
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while creating subscription") from exc
    return _to_response(subscription)


@router.post(
    "/{subscription_id}/cancel",
    response_model=SuccessEnvelope[SubscriptionResponse] | SubscriptionResponse,
)
async def cancel_subscription(
    subscription_id: UUID,
    payload: CancelSubscriptionRequest | None = None,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> SubscriptionResponse:
    immediate = payload.immediate if payload is not None else False
    try:
        subscription = await _owned_subscription(db, subscription_id, principal)
        subscription = await subscriptions_service.cancel_subscription(db, subscription, immediate=immediate)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while cancelling subscription") from exc
    return _to_response(subscription)


@router.post(
    "/{subscription_id}/reactivate",
    response_model=SuccessEnvelope[SubscriptionResponse] | SubscriptionResponse,
)
async def reactivate_subscription(
    subscription_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> SubscriptionResponse:
    try:
        subscription = await _owned_subscription(db, subscription_id, principal)
        subscription = await subscriptions_service.reactivate_subscription(db, subscription)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while reactivating subscription") from exc
    return _to_response(subscription)
