from __future__ import annotations

import json
import logging
import time
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.openapi.utils import get_openapi
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from acclms.apps.api.errors import (
    http_exception_handler,
    lms_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from acclms.apps.api.response import (
    API_PREFIX,
    API_VERSION,
    envelope,
    incoming_request_id,
    is_enveloped,
    is_versioned_request,
)
from acclms.apps.api.routes.compliance import router as compliance_router
from acclms.apps.api.routes.courses import router as courses_router
from acclms.apps.api.routes.enrollments import router as enrollments_router
from acclms.apps.api.routes.health import router as health_router
from acclms.apps.api.routes.orders import payments_router
from acclms.apps.api.routes.orders import router as orders_router
from acclms.apps.api.routes.subscriptions import router as subscriptions_router
from acclms.apps.api.routes.users import router as users_router
from acclms.core.config import get_settings
from acclms.core.errors import LmsError
from acclms.core.logging import configure_logging


logger = logging.getLogger(__name__)

_ENVELOPE_EXEMPT_PREFIXES = (
    f"{API_PREFIX}/openapi.json",
    f"{API_PREFIX}/docs",
)


async def _read_body(response: Response) -> bytes:
    # Responses from call_next are streamed; drain them before re-wrapping.
    raw_body = getattr(response, "body", None)
    if raw_body is not None:
        return raw_body
    chunks = [chunk async for chunk in response.body_iterator]  # type: ignore[attr-defined]
    return b"".join(chunk if isinstance(chunk, bytes) else chunk.encode("utf-8") for chunk in chunks)


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()
    app = FastAPI(title="ACC LMS API", docs_url=None, redoc_url=None, openapi_url=None)

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):  # type: ignore[override]
        # Preserve incoming request IDs or assign a new one for traceability.
        request_id = incoming_request_id(request.headers) or str(uuid4())
        request.state.request_id = request_id
        start = time.monotonic()
        response = await call_next(request)
        latency_ms = (time.monotonic() - start) * 1000.0
        logger.info(
            "request_completed method=%s path=%s status=%s latency_ms=%.1f",
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
        )
        # Wrap versioned JSON responses in the standardized success envelope.
        if (
            is_versioned_request(request)
            and not request.url.path.startswith(_ENVELOPE_EXEMPT_PREFIXES)
            and response.status_code < 400
            and response.headers.get("content-type", "").startswith("application/json")
        ):
            raw_body = await _read_body(response)
            try:
                payload = json.loads(raw_body) if raw_body else None
            except ValueError:
                payload = None
            headers = {
                key: value
                for key, value in response.headers.items()
                if key.lower() not in {"content-length", "content-type"}
            }
            if payload is not None and not is_enveloped(payload):
                payload = envelope(payload, request_id)
            if payload is not None:
                response = JSONResponse(content=payload, status_code=response.status_code, headers=headers)
            else:
                response = Response(
                    content=raw_body,
                    status_code=response.status_code,
                    headers=headers,
                    media_type="application/json",
                )

        response.headers.setdefault("X-Request-Id", request_id)
        return response

    # HTTPException subclasses the Starlette one; register both so neither default handler wins.
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(LmsError, lms_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Mount versioned API routes.
    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(courses_router, prefix=API_PREFIX)
    app.include_router(enrollments_router, prefix=API_PREFIX)
    app.include_router(orders_router, prefix=API_PREFIX)
    app.include_router(payments_router, prefix=API_PREFIX)
    app.include_router(users_router, prefix=API_PREFIX)
    app.include_router(compliance_router, prefix=API_PREFIX)
    app.include_router(subscriptions_router, prefix=API_PREFIX)

    # Serve versioned OpenAPI JSON and docs endpoints.
    @app.get(f"{API_PREFIX}/openapi.json", include_in_schema=False)
    async def openapi_json() -> JSONResponse:
        return JSONResponse(app.openapi())

    @app.get(f"{API_PREFIX}/docs", include_in_schema=False)
    async def v1_docs() -> HTMLResponse:
        return get_swagger_ui_html(openapi_url=f"{API_PREFIX}/openapi.json", title="ACC LMS API v1")

    @app.get("/docs", include_in_schema=False)
    async def docs_redirect() -> RedirectResponse:
        return RedirectResponse(url=f"{API_PREFIX}/docs")

    def custom_openapi() -> dict:
        # Document the dev identity headers and version metadata in the OpenAPI schema.
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(title="ACC LMS API", version=API_VERSION, routes=app.routes)
        schema["servers"] = [{"url": settings.api_base_url.removesuffix(API_PREFIX)}]
        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes["DevUserId"] = {"type": "apiKey", "in": "header", "name": "X-User-Id"}
        public_paths = {f"{API_PREFIX}/health", f"{API_PREFIX}/compliance/deadlines/{{jurisdiction}}"}
        for path, operations in schema.get("paths", {}).items():
            is_catalog = path.startswith(f"{API_PREFIX}/courses") and not path.endswith("/publish")
            if path in public_paths or is_catalog:
                continue
            for operation in operations.values():
                operation.setdefault("security", [{"DevUserId": []}])
        app.openapi_schema = schema
        return app.openapi_schema

    app.openapi = custom_openapi

    return app


app = create_app()
