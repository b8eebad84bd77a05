from __future__ import annotations

from typing import Any
from uuid import UUID

from acclms.sdk.client import ApiClient


class EnrollmentService:
    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def get_my_enrollments(self) -> list[dict[str, Any]]:
        return await self._client.get("/enrollments/me")

    async def enroll_in_course(self, course_id: UUID | str) -> dict[str, Any]:
        return await self._client.post("/enrollments", {"course_id": str(course_id)})

    async def get_enrollment_by_id(self, enrollment_id: UUID | str) -> dict[str, Any]:
        return await self._client.get(f"/enrollments/{enrollment_id}")

    async def get_enrollment_progress(self, enrollment_id: UUID | str) -> dict[str, Any]:
        return await self._client.get(f"/enrollments/{enrollment_id}/progress")

    async def complete_lesson(
        self,
        enrollment_id: UUID | str,
        lesson_id: UUID | str,
        time_spent_seconds: int | None = None,
    ) -> dict[str, Any]:
        body = {"time_spent_seconds": time_spent_seconds} if time_spent_seconds is not None else {}
        return await self._client.post(f"/enrollments/{enrollment_id}/lessons/{lesson_id}/complete", body)

    async def get_certificate(self, enrollment_id: UUID | str) -> dict[str, Any]:
        return await self._client.get(f"/enrollments/{enrollment_id}/certificate")
