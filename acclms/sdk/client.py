"""Async HTTP client for the LMS REST API.

``ApiClient`` owns the transport concerns every endpoint wrapper shares:
bearer tokens from a :class:`TokenStore`, a fresh ``X-Correlation-ID`` per
request, one shared token refresh when the API answers 401, backoff on
429/503, and unwrapping of the ``{data, meta}`` success envelope. Failures
surface as :class:`ApiError` regardless of where they originated.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Any, Awaitable, Callable, Mapping
from uuid import uuid4

import httpx

from acclms.core.config import get_settings


logger = logging.getLogger(__name__)

REFRESH_PATH = "/auth/refresh"
RETRYABLE_STATUSES = frozenset({429, 503})


class ApiError(Exception):
    """Normalised API failure; ``code`` is ``UNKNOWN`` when no error envelope was returned."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details


@dataclass
class AuthTokens:
    access_token: str
    refresh_token: str | None = None


class TokenStore:
    """In-memory token holder; subclass to persist tokens elsewhere."""

    def __init__(self, tokens: AuthTokens | None = None) -> None:
        self._tokens = tokens

    @property
    def access_token(self) -> str | None:
        return self._tokens.access_token if self._tokens else None

    @property
    def refresh_token(self) -> str | None:
        return self._tokens.refresh_token if self._tokens else None

    def set(self, tokens: AuthTokens) -> None:
        self._tokens = tokens

    def clear(self) -> None:
        self._tokens = None


def tokens_from_payload(payload: Any) -> AuthTokens | None:
    # Auth responses carry tokens either nested under "tokens" or at the top level.
    if not isinstance(payload, Mapping):
        return None
    source = payload.get("tokens") if isinstance(payload.get("tokens"), Mapping) else payload
    access = source.get("access_token")
    if not access:
        return None
    return AuthTokens(access_token=str(access), refresh_token=source.get("refresh_token"))


def _retry_after_seconds(headers: Mapping[str, str] | None) -> float | None:
    if not headers:
        return None
    # An unparsable value (e.g. an HTTP-date Retry-After) falls through to the next header.
    retry_after = headers.get("Retry-After")
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            pass
    retry_ms = headers.get("X-RateLimit-Retry-After-Ms")
    if retry_ms:
        try:
            return float(retry_ms) / 1000.0
        except ValueError:
            pass
    return None


def _backoff_seconds(attempt: int) -> float:
    return min(2.0, 0.25 * (2 ** attempt))


def unwrap_envelope(payload: Any) -> Any:
    if isinstance(payload, dict) and "data" in payload and isinstance(payload.get("meta"), dict):
        return payload["data"]
    return payload


def error_from_response(response: httpx.Response) -> ApiError:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("code"):
        return ApiError(
            str(error["code"]),
            str(error.get("message") or "Request failed"),
            status_code=response.status_code,
            details=error.get("details"),
        )
    return ApiError(
        "UNKNOWN",
        response.reason_phrase or "An unexpected error occurred",
        status_code=response.status_code,
    )


class ApiClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        token_store: TokenStore | None = None,
        timeout_ms: int | None = None,
        max_retries: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        settings = get_settings()
        self.token_store = token_store or TokenStore()
        self._max_retries = settings.api_max_retries if max_retries is None else max_retries
        self._sleep = sleep
        self._refresh_lock = asyncio.Lock()
        timeout = (timeout_ms if timeout_ms is not None else settings.api_timeout_ms) / 1000.0
        self._http = httpx.AsyncClient(
            base_url=(base_url or settings.api_base_url).rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"X-Correlation-ID": str(uuid4()), "Accept": "application/json"}
        token = self.token_store.access_token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        attempt = 0
        while True:
            try:
                response = await self._http.request(method, path, headers=self._headers(), **kwargs)
            except httpx.HTTPError as exc:
                raise ApiError("UNKNOWN", str(exc) or "An unexpected error occurred") from exc
            if response.status_code not in RETRYABLE_STATUSES or attempt >= self._max_retries:
                return response
            delay = _retry_after_seconds(response.headers)
            if delay is None:
                delay = _backoff_seconds(attempt)
            logger.info(
                "api_retry method=%s path=%s status=%s attempt=%s delay_s=%.2f",
                method,
                path,
                response.status_code,
                attempt + 1,
                delay,
            )
            await self._sleep(delay)
            attempt += 1

    async def refresh_tokens(self, stale_access_token: str | None) -> bool:
        """Refresh once for every caller that saw ``stale_access_token`` rejected.

        Concurrent callers queue on the lock; whoever arrives after a
        successful refresh sees a different access token and reuses it.
        """
        async with self._refresh_lock:
            current = self.token_store.access_token
            if current and current != stale_access_token:
                return True
            refresh_token = self.token_store.refresh_token
            if not refresh_token:
                self.token_store.clear()
                return False
            response = await self._send("POST", REFRESH_PATH, json={"refresh_token": refresh_token})
            tokens = None
            if response.status_code < 400:
                try:
                    tokens = tokens_from_payload(unwrap_envelope(response.json()))
                except ValueError:
                    tokens = None
            if tokens is None:
                logger.warning("api_token_refresh_failed status=%s", response.status_code)
                self.token_store.clear()
                return False
            if tokens.refresh_token is None:
                tokens.refresh_token = refresh_token
            self.token_store.set(tokens)
            return True

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        sent_token = self.token_store.access_token
        response = await self._send(method, path, **kwargs)
        if response.status_code == 401 and path != REFRESH_PATH and sent_token:
            if await self.refresh_tokens(sent_token):
                response = await self._send(method, path, **kwargs)
        if response.status_code >= 400:
            raise error_from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        try:
            payload = response.json()
        except ValueError as exc:
            raise ApiError("UNKNOWN", "Response body is not JSON", status_code=response.status_code) from exc
        return unwrap_envelope(payload)

    async def get(self, path: str, *, params: Mapping[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=_clean_params(params))

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, json=json, **kwargs)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str, json: Any = None) -> Any:
        return await self.request("DELETE", path, json=json)


def _clean_params(params: Mapping[str, Any] | None) -> dict[str, Any] | None:
    # Drop unset filters so they never reach the query string as "None".
    if params is None:
        return None
    return {key: value for key, value in params.items() if value is not None}
