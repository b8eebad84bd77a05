from __future__ import annotations

from typing import Any

from acclms.apps.api.response import API_VERSION, ErrorEnvelope


def _error_example(*, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    # Build a consistent error envelope example for OpenAPI docs.
    payload: dict[str, Any] = {
        "error": {"code": code, "message": message},
        "meta": {"request_id": "req_example", "api_version": API_VERSION},
    }
    if details:
        payload["error"]["details"] = details
    return payload


def _error_response(description: str, example: dict[str, Any]) -> dict[str, Any]:
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {"application/json": {"example": example}},
    }


DEFAULT_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: _error_response("Bad request", _error_example(code="BAD_REQUEST", message="Bad request")),
    401: _error_response(
        "Unauthorized",
        _error_example(code="AUTH_UNAUTHORIZED", message="X-User-Id header is required"),
    ),
    403: _error_response(
        "Forbidden",
        _error_example(code="AUTH_FORBIDDEN", message="Insufficient role", details={"required_role": "instructor"}),
    ),
    404: _error_response(
        "Not found",
        _error_example(
            code="REFERENCE_NOT_FOUND",
            message="enrollments.enrollments.course_id references missing courses.courses row",
            details={"source": "enrollments.enrollments.course_id", "target": "courses.courses"},
        ),
    ),
    409: _error_response(
        "Conflict",
        _error_example(
            code="INVALID_STATE_TRANSITION",
            message="order cannot move from paid to cancelled",
            details={"entity": "order", "from": "paid", "to": "cancelled"},
        ),
    ),
    422: _error_response(
        "Validation error",
        _error_example(
            code="VALIDATION_ERROR",
            message="Validation error",
            details={"errors": [{"loc": ["body", "course_id"], "msg": "Field required"}]},
        ),
    ),
    500: _error_response(
        "Internal server error",
        _error_example(code="INTERNAL_ERROR", message="Internal server error"),
    ),
    503: _error_response(
        "Service unavailable",
        _error_example(code="SERVICE_UNAVAILABLE", message="Service unavailable"),
    ),
}
