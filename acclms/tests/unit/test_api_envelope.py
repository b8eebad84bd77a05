from __future__ import annotations

from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from acclms.apps.api.errors import lms_error_status
from acclms.apps.api.main import create_app
from acclms.core.errors import (
    AccessTokenRejectedError,
    DuplicateEnrollmentError,
    InvalidDiscountCodeError,
    InvalidStateTransitionError,
    PartitionRoutingError,
    QuizAttemptRejectedError,
    ReferenceIntegrityError,
)
from acclms.services.roles import normalize_role, role_allows


def _headers(role: str = "student") -> dict[str, str]:
    return {"X-User-Id": str(uuid4()), "X-Role": role}


def test_domain_errors_map_to_stable_codes() -> None:
    missing = uuid4()
    status, code, details = lms_error_status(
        ReferenceIntegrityError(source="payments.orders.course_id", target="courses.courses", value=missing)
    )
    assert (status, code) == (404, "REFERENCE_NOT_FOUND")
    assert details == {"source": "payments.orders.course_id", "target": "courses.courses", "value": str(missing)}

    status, code, details = lms_error_status(
        InvalidStateTransitionError(entity="order", current="paid", requested="pending")
    )
    assert (status, code) == (409, "INVALID_STATE_TRANSITION")
    assert details == {"entity": "order", "from": "paid", "to": "pending"}

    assert lms_error_status(DuplicateEnrollmentError("dup"))[:2] == (409, "ENROLLMENT_EXISTS")
    assert lms_error_status(InvalidDiscountCodeError("X", "expired")) == (
        422,
        "INVALID_DISCOUNT_CODE",
        {"reason": "expired"},
    )
    assert lms_error_status(PartitionRoutingError("none"))[:2] == (503, "SERVICE_UNAVAILABLE")
    assert lms_error_status(QuizAttemptRejectedError(uuid4(), "max_attempts"))[1:] == (
        "QUIZ_ATTEMPT_REJECTED",
        {"reason": "max_attempts"},
    )
    assert lms_error_status(AccessTokenRejectedError("expired"))[:2] == (403, "ACCESS_TOKEN_REJECTED")


def test_role_ranking() -> None:
    assert normalize_role(" Admin ") == "admin"
    assert role_allows(role="admin", minimum_role="instructor")
    assert not role_allows(role="student", minimum_role="instructor")
    with pytest.raises(ValueError):
        normalize_role("owner")


@pytest.mark.asyncio
async def test_health_is_enveloped_with_request_id() -> None:
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/api/v1/health", headers={"X-Correlation-ID": "corr-123"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["data"]["status"] == "ok"
    assert body["meta"] == {"request_id": "corr-123", "api_version": "v1"}
    assert resp.headers["X-Request-Id"] == "corr-123"


@pytest.mark.asyncio
async def test_missing_identity_is_unauthorized() -> None:
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/api/v1/enrollments/me")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "AUTH_UNAUTHORIZED"


@pytest.mark.asyncio
async def test_unknown_role_is_rejected() -> None:
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/api/v1/orders/me", headers=_headers("owner"))
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "AUTH_INVALID_ROLE"


@pytest.mark.asyncio
async def test_publish_requires_instructor_role() -> None:
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.post(f"/api/v1/courses/{uuid4()}/publish", headers=_headers("student"))
    assert resp.status_code == 403
    error = resp.json()["error"]
    assert error["code"] == "AUTH_FORBIDDEN"
    assert error["details"] == {"required_role": "instructor"}


@pytest.mark.asyncio
async def test_request_validation_uses_error_envelope() -> None:
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.post("/api/v1/enrollments", headers=_headers(), json={"course_id": "not-a-uuid"})
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["meta"]["api_version"] == "v1"


@pytest.mark.asyncio
async def test_legal_deadline_lookup() -> None:
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/api/v1/compliance/deadlines/EU")
        unknown = await client.get("/api/v1/compliance/deadlines/mars")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["jurisdiction"] == "gdpr"
    assert data["response_days"] == 30
    assert data["extension_days"] == 60
    assert unknown.status_code == 422
    assert unknown.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_unknown_versioned_path_uses_error_envelope() -> None:
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/api/v1/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"
