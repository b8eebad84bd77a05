from __future__ import annotations

from typing import Any
from uuid import UUID

from acclms.sdk.client import ApiClient


class PaymentService:
    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def create_order(self, course_id: UUID | str, discount_code: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"course_id": str(course_id)}
        if discount_code:
            body["discount_code"] = discount_code
        return await self._client.post("/orders", body)

    async def get_order_by_id(self, order_id: UUID | str) -> dict[str, Any]:
        return await self._client.get(f"/orders/{order_id}")

    async def get_my_orders(self) -> list[dict[str, Any]]:
        return await self._client.get("/orders/me")

    async def get_payment_methods(self) -> list[dict[str, Any]]:
        return await self._client.get("/payments/methods")

    async def create_payment_intent(
        self, order_id: UUID | str, payment_method_id: str | None = None
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"order_id": str(order_id)}
        if payment_method_id:
            body["payment_method_id"] = payment_method_id
        return await self._client.post("/payments/intent", body)

    async def confirm_payment(self, payment_intent_id: str, payment_method_id: str) -> dict[str, Any]:
        return await self._client.post(
            "/payments/confirm",
            {"payment_intent_id": payment_intent_id, "payment_method_id": payment_method_id},
        )

    async def validate_coupon(self, code: str, course_id: UUID | str) -> dict[str, Any]:
        return await self._client.post("/payments/coupon", {"code": code, "course_id": str(course_id)})
