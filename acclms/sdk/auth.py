from __future__ import annotations

from typing import Any

from acclms.sdk.client import ApiClient, tokens_from_payload


class AuthService:
    def __init__(self, client: ApiClient) -> None:
        self._client = client

    def _store_tokens(self, payload: Any) -> None:
        tokens = tokens_from_payload(payload)
        if tokens is not None:
            self._client.token_store.set(tokens)

    async def login(self, email: str, password: str) -> dict[str, Any]:
        payload = await self._client.post("/auth/login", {"email": email, "password": password})
        self._store_tokens(payload)
        return payload

    async def register(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> dict[str, Any]:
        payload = await self._client.post(
            "/auth/register",
            {"email": email, "password": password, "first_name": first_name, "last_name": last_name},
        )
        self._store_tokens(payload)
        return payload

    async def logout(self) -> None:
        # Local tokens are dropped even when the server call fails.
        try:
            await self._client.post("/auth/logout")
        finally:
            self._client.token_store.clear()

    async def get_current_user(self) -> dict[str, Any]:
        return await self._client.get("/auth/me")

    async def forgot_password(self, email: str) -> None:
        await self._client.post("/auth/forgot-password", {"email": email})

    async def reset_password(self, token: str, password: str) -> None:
        await self._client.post("/auth/reset-password", {"token": token, "password": password})

    async def verify_email(self, token: str) -> None:
        await self._client.post("/auth/verify-email", {"token": token})

    async def resend_verification(self, email: str) -> None:
        await self._client.post("/auth/resend-verification", {"email": email})
