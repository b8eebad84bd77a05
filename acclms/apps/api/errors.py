from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from acclms.apps.api.response import error_response, is_versioned_request
from acclms.core.errors import (
    AccessTokenRejectedError,
    ActiveSubscriptionExistsError,
    CourseNotPublishedError,
    DuplicateEnrollmentError,
    InvalidDiscountCodeError,
    InvalidStateTransitionError,
    LmsError,
    PartitionRoutingError,
    QuizAttemptRejectedError,
    ReferenceIntegrityError,
    UnknownJurisdictionError,
    UnsupportedDataRightError,
)


logger = logging.getLogger(__name__)

_DEFAULT_ERROR_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "AUTH_UNAUTHORIZED",
    403: "AUTH_FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


def _default_code(status_code: int) -> str:
    return _DEFAULT_ERROR_CODES.get(status_code, "UNKNOWN_ERROR")


def _split_detail(detail: Any, status_code: int) -> tuple[str, str, dict[str, Any] | None]:
    # Extract code/message/details from FastAPI HTTPException detail payloads.
    if isinstance(detail, dict):
        code = str(detail.get("code") or _default_code(status_code))
        message = str(detail.get("message") or "Request failed")
        details = {k: v for k, v in detail.items() if k not in {"code", "message"}}
        return code, message, details or None
    if isinstance(detail, str):
        return _default_code(status_code), detail, None
    return _default_code(status_code), "Request failed", None


def lms_error_status(exc: LmsError) -> tuple[int, str, dict[str, Any] | None]:
    """Map a domain error onto (HTTP status, error code, details)."""
    if isinstance(exc, ReferenceIntegrityError):
        return 404, "REFERENCE_NOT_FOUND", {"source": exc.source, "target": exc.target, "value": str(exc.value)}
    if isinstance(exc, InvalidStateTransitionError):
        return 409, "INVALID_STATE_TRANSITION", {"entity": exc.entity, "from": exc.current, "to": exc.requested}
    if isinstance(exc, DuplicateEnrollmentError):
        return 409, "ENROLLMENT_EXISTS", None
    if isinstance(exc, CourseNotPublishedError):
        return 409, "COURSE_NOT_PUBLISHED", None
    if isinstance(exc, ActiveSubscriptionExistsError):
        return 409, "CONFLICT", None
    if isinstance(exc, QuizAttemptRejectedError):
        return 409, "QUIZ_ATTEMPT_REJECTED", {"reason": exc.reason}
    if isinstance(exc, AccessTokenRejectedError):
        return 403, "ACCESS_TOKEN_REJECTED", {"reason": exc.reason}
    if isinstance(exc, InvalidDiscountCodeError):
        return 422, "INVALID_DISCOUNT_CODE", {"reason": exc.reason}
    if isinstance(exc, (UnknownJurisdictionError, UnsupportedDataRightError)):
        return 422, "VALIDATION_ERROR", None
    if isinstance(exc, PartitionRoutingError):
        return 503, "SERVICE_UNAVAILABLE", None
    return 500, "INTERNAL_ERROR", None


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Covers FastAPI HTTPException and Starlette 404/405 for unknown paths and methods.
    if not is_versioned_request(request):
        return JSONResponse(content={"detail": exc.detail}, status_code=exc.status_code, headers=exc.headers)
    code, message, details = _split_detail(exc.detail, exc.status_code)
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=payload, status_code=exc.status_code, headers=exc.headers)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    if not is_versioned_request(request):
        return JSONResponse(content={"detail": jsonable_encoder(exc.errors())}, status_code=422)
    payload = error_response(
        request=request,
        code="VALIDATION_ERROR",
        message="Validation error",
        details={"errors": jsonable_encoder(exc.errors())},
    )
    return JSONResponse(content=payload, status_code=422)


async def lms_exception_handler(request: Request, exc: LmsError) -> JSONResponse:
    status_code, code, details = lms_error_status(exc)
    if status_code >= 500:
        logger.error("lms_error_unhandled code=%s", code, exc_info=exc)
    payload = error_response(request=request, code=code, message=str(exc), details=details)
    return JSONResponse(content=payload, status_code=status_code)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Avoid leaking stack traces; return a stable internal error envelope.
    logger.error("request_failed path=%s", request.url.path, exc_info=exc)
    if not is_versioned_request(request):
        return JSONResponse(content={"detail": "Internal Server Error"}, status_code=500)
    payload = error_response(
        request=request,
        code="INTERNAL_ERROR",
        message="Internal server error",
    )
    return JSONResponse(content=payload, status_code=500)
