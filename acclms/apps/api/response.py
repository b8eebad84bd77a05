from __future__ import annotations

from typing import Any, Generic, Mapping, TypeVar
from uuid import uuid4

from fastapi import Request
from pydantic import BaseModel, Field


API_VERSION = "v1"
API_PREFIX = f"/api/{API_VERSION}"

# The SDK sends X-Correlation-ID; proxies and other callers send X-Request-Id.
REQUEST_ID_HEADERS = ("X-Request-Id", "X-Correlation-ID")

T = TypeVar("T")


class ResponseMeta(BaseModel):
    request_id: str
    api_version: str = Field(default=API_VERSION)


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class SuccessEnvelope(BaseModel, Generic[T]):
    data: T
    meta: ResponseMeta


class ErrorEnvelope(BaseModel):
    error: ErrorDetail
    meta: ResponseMeta


class Page(BaseModel, Generic[T]):
    """One page of a catalog listing; ``page`` is 1-based."""

    items: list[T]
    total: int
    page: int
    page_size: int


def incoming_request_id(headers: Mapping[str, str]) -> str | None:
    for name in REQUEST_ID_HEADERS:
        value = headers.get(name)
        if value:
            return value
    return None


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return request_id
    request_id = incoming_request_id(request.headers) or str(uuid4())
    request.state.request_id = request_id
    return request_id


def is_versioned_request(request: Request) -> bool:
    return request.url.path.startswith(API_PREFIX)


def is_enveloped(payload: object) -> bool:
    # Handlers that already returned success_response() must not be wrapped twice.
    if not isinstance(payload, dict) or "data" not in payload:
        return False
    meta = payload.get("meta")
    return isinstance(meta, dict) and meta.get("api_version") == API_VERSION


def envelope(data: Any, request_id: str) -> dict[str, Any]:
    return {"data": data, "meta": ResponseMeta(request_id=request_id).model_dump()}


def success_response(*, request: Request, data: Any) -> Any:
    if not is_versioned_request(request):
        return data
    return envelope(data, get_request_id(request))


def error_response(
    *,
    request: Request,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    meta = ResponseMeta(request_id=get_request_id(request))
    error = ErrorDetail(code=code, message=message, details=details)
    return {"error": error.model_dump(exclude_none=True), "meta": meta.model_dump()}
