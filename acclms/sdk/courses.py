from __future__ import annotations

from typing import Any
from uuid import UUID

from acclms.sdk.client import ApiClient


class CourseService:
    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def get_courses(self, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self._client.get("/courses", params=params)

    async def get_course_by_id(self, course_id: UUID | str) -> dict[str, Any]:
        return await self._client.get(f"/courses/{course_id}")

    async def get_course_by_slug(self, slug: str) -> dict[str, Any]:
        return await self._client.get(f"/courses/slug/{slug}")

    async def get_categories(self) -> list[dict[str, Any]]:
        return await self._client.get("/courses/categories")

    async def get_featured_courses(self) -> list[dict[str, Any]]:
        return await self._client.get("/courses/featured")

    async def get_popular_courses(self, limit: int = 10) -> list[dict[str, Any]]:
        return await self._client.get("/courses/popular", params={"limit": limit})

    async def search_courses(self, query: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self._client.get("/courses/search", params={"q": query, **(params or {})})

    async def get_courses_by_instructor(
        self, instructor_id: UUID | str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        return await self._client.get(f"/courses/instructor/{instructor_id}", params=params)
