from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from acclms.sdk import ApiClient, ApiError, AuthService, AuthTokens, CourseService, TokenStore, UserService


BASE_URL = "http://test/api/v1"


def _envelope(data: object, status_code: int = 200, headers: dict[str, str] | None = None) -> httpx.Response:
    return httpx.Response(
        status_code,
        json={"data": data, "meta": {"request_id": "req-1", "api_version": "v1"}},
        headers=headers,
    )


def _error(status_code: int, code: str, message: str, headers: dict[str, str] | None = None) -> httpx.Response:
    return httpx.Response(
        status_code,
        json={"error": {"code": code, "message": message}, "meta": {"request_id": "req-1", "api_version": "v1"}},
        headers=headers,
    )


class _Sleeps:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _client(handler, *, tokens: AuthTokens | None = None, max_retries: int = 2, sleep=None) -> ApiClient:
    return ApiClient(
        BASE_URL,
        token_store=TokenStore(tokens),
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
        sleep=sleep or _Sleeps(),
    )


@pytest.mark.asyncio
async def test_unwraps_envelope_and_sends_tracing_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _envelope({"course_id": "c1"})

    async with _client(handler, tokens=AuthTokens("tok")) as client:
        data = await client.get("/courses/c1")
    assert data == {"course_id": "c1"}
    assert seen[0].url.path == "/api/v1/courses/c1"
    assert seen[0].headers["Authorization"] == "Bearer tok"
    assert seen[0].headers["X-Correlation-ID"]


@pytest.mark.asyncio
async def test_each_request_gets_a_new_correlation_id() -> None:
    ids: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        ids.append(request.headers["X-Correlation-ID"])
        return _envelope([])

    async with _client(handler) as client:
        await client.get("/orders/me")
        await client.get("/orders/me")
    assert len(set(ids)) == 2


@pytest.mark.asyncio
async def test_error_envelope_becomes_api_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _error(409, "ENROLLMENT_EXISTS", "already enrolled")

    async with _client(handler) as client:
        with pytest.raises(ApiError) as excinfo:
            await client.post("/enrollments", {"course_id": "c1"})
    assert excinfo.value.code == "ENROLLMENT_EXISTS"
    assert excinfo.value.status_code == 409
    assert excinfo.value.message == "already enrolled"


@pytest.mark.asyncio
async def test_non_envelope_errors_are_unknown() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    async with _client(handler) as client:
        with pytest.raises(ApiError) as excinfo:
            await client.get("/courses")
    assert excinfo.value.code == "UNKNOWN"
    assert excinfo.value.status_code == 502


@pytest.mark.asyncio
async def test_retries_honour_retry_after_headers() -> None:
    responses = iter(
        [
            _error(503, "SERVICE_UNAVAILABLE", "busy", headers={"Retry-After": "1.5"}),
            _error(429, "RATE_LIMITED", "slow down", headers={"X-RateLimit-Retry-After-Ms": "250"}),
            _envelope({"ok": True}),
        ]
    )
    sleeps = _Sleeps()

    def handler(request: httpx.Request) -> httpx.Response:
        return next(responses)

    async with _client(handler, sleep=sleeps) as client:
        assert await client.get("/health") == {"ok": True}
    assert sleeps.delays == [1.5, 0.25]


@pytest.mark.asyncio
async def test_http_date_retry_after_falls_back_to_millisecond_header() -> None:
    responses = iter(
        [
            _error(
                429,
                "RATE_LIMITED",
                "slow down",
                headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT", "X-RateLimit-Retry-After-Ms": "750"},
            ),
            _error(503, "SERVICE_UNAVAILABLE", "busy", headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"}),
            _envelope({"ok": True}),
        ]
    )
    sleeps = _Sleeps()

    def handler(request: httpx.Request) -> httpx.Response:
        return next(responses)

    async with _client(handler, sleep=sleeps) as client:
        assert await client.get("/health") == {"ok": True}
    # Second response has no usable header, so exponential backoff applies (attempt 1).
    assert sleeps.delays == [0.75, 0.5]


@pytest.mark.asyncio
async def test_retries_stop_after_max_retries() -> None:
    calls = 0
    sleeps = _Sleeps()

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return _error(503, "SERVICE_UNAVAILABLE", "busy")

    async with _client(handler, max_retries=2, sleep=sleeps) as client:
        with pytest.raises(ApiError) as excinfo:
            await client.get("/health")
    assert excinfo.value.code == "SERVICE_UNAVAILABLE"
    assert calls == 3
    assert sleeps.delays == [0.25, 0.5]


@pytest.mark.asyncio
async def test_concurrent_unauthorized_requests_share_one_refresh() -> None:
    refreshes = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal refreshes
        if request.url.path.endswith("/auth/refresh"):
            refreshes += 1
            assert json.loads(request.content) == {"refresh_token": "r1"}
            await asyncio.sleep(0)
            return _envelope({"tokens": {"access_token": "new", "refresh_token": "r2"}})
        if request.headers.get("Authorization") != "Bearer new":
            return _error(401, "AUTH_UNAUTHORIZED", "expired")
        return _envelope({"path": request.url.path})

    client = _client(handler, tokens=AuthTokens("old", "r1"))
    try:
        first, second = await asyncio.gather(client.get("/users/me"), client.get("/orders/me"))
    finally:
        await client.aclose()
    assert first == {"path": "/api/v1/users/me"}
    assert second == {"path": "/api/v1/orders/me"}
    assert refreshes == 1
    assert client.token_store.access_token == "new"
    assert client.token_store.refresh_token == "r2"


@pytest.mark.asyncio
async def test_failed_refresh_clears_tokens() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/auth/refresh"):
            return _error(401, "AUTH_UNAUTHORIZED", "refresh token revoked")
        return _error(401, "AUTH_UNAUTHORIZED", "expired")

    client = _client(handler, tokens=AuthTokens("old", "r1"))
    try:
        with pytest.raises(ApiError) as excinfo:
            await client.get("/users/me")
    finally:
        await client.aclose()
    assert excinfo.value.code == "AUTH_UNAUTHORIZED"
    assert client.token_store.access_token is None


@pytest.mark.asyncio
async def test_logout_clears_tokens_even_when_the_call_fails() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    client = _client(handler, tokens=AuthTokens("tok"), max_retries=0)
    try:
        with pytest.raises(ApiError):
            await AuthService(client).logout()
    finally:
        await client.aclose()
    assert client.token_store.access_token is None


@pytest.mark.asyncio
async def test_login_stores_tokens() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _envelope({"user": {"email": "a@b.c"}, "tokens": {"access_token": "a1", "refresh_token": "r1"}})

    async with _client(handler) as client:
        await AuthService(client).login("a@b.c", "secret")
        assert client.token_store.access_token == "a1"
        assert client.token_store.refresh_token == "r1"


@pytest.mark.asyncio
async def test_search_sends_query_and_drops_unset_filters() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _envelope({"items": [], "total": 0, "page": 1, "page_size": 20})

    async with _client(handler) as client:
        await CourseService(client).search_courses("python", {"page": 2, "category_id": None})
    assert seen[0].url.path == "/api/v1/courses/search"
    assert dict(seen[0].url.params) == {"q": "python", "page": "2"}


@pytest.mark.asyncio
async def test_avatar_upload_is_multipart() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _envelope({"url": "https://cdn.example.com/a.png"})

    async with _client(handler, tokens=AuthTokens("tok")) as client:
        url = await UserService(client).upload_avatar(b"\x89PNG", "a.png")
    assert url == "https://cdn.example.com/a.png"
    assert seen[0].headers["Content-Type"].startswith("multipart/form-data")
    assert b'name="avatar"' in seen[0].content
