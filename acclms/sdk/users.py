from __future__ import annotations

from typing import Any

from acclms.sdk.client import ApiClient


class UserService:
    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def get_profile(self) -> dict[str, Any]:
        return await self._client.get("/users/me")

    async def update_profile(self, **fields: Any) -> dict[str, Any]:
        return await self._client.patch("/users/me", fields)

    async def change_password(self, current_password: str, new_password: str) -> None:
        await self._client.post(
            "/users/me/password",
            {"current_password": current_password, "new_password": new_password},
        )

    async def upload_avatar(self, content: bytes, filename: str, content_type: str = "image/png") -> str:
        # Multipart upload; the API answers with the stored avatar URL.
        payload = await self._client.post(
            "/users/me/avatar",
            files={"avatar": (filename, content, content_type)},
        )
        return payload["url"]

    async def delete_account(self, password: str | None = None) -> None:
        await self._client.delete("/users/me", {"password": password} if password else None)

    async def get_preferences(self) -> dict[str, Any]:
        return await self._client.get("/users/me/preferences")

    async def update_preferences(self, **preferences: Any) -> dict[str, Any]:
        return await self._client.patch("/users/me/preferences", preferences)

    async def get_notification_settings(self) -> dict[str, Any]:
        return await self._client.get("/users/me/notifications")

    async def update_notification_settings(self, **settings: Any) -> dict[str, Any]:
        return await self._client.patch("/users/me/notifications", settings)
