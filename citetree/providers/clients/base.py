"""Shared async HTTP client utilities with retry, throttling and error handling."""

from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from citetree.providers.ratelimit import FixedWindowRateLimiter

logger = logging.getLogger(__name__)

DEFAULT_HEADERS: Dict[str, str] = {
    "User-Agent": "citation-tree-explorer/1.0",
    "Accept": "application/json",
}

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

RETRY_STOP_AFTER_ATTEMPT = 3

BASE_WAIT_MULTIPLIER = 1.0
BASE_WAIT_MIN_SECONDS = 1.0
BASE_WAIT_MAX_SECONDS = 4.0

_BODY_EXCERPT_LIMIT = 200


class ClientError(Exception):
    """Base exception for HTTP client errors."""


class NotFoundError(ClientError):
    """Raised when a requested resource cannot be found (HTTP 404)."""


class RateLimitedError(ClientError):
    """Raised when the upstream service responds with a rate limit (HTTP 429)."""

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class RequestRejectedError(ClientError):
    """Raised when the upstream rejects the request (HTTP 4xx, excluding 404/429)."""

    def __init__(self, status: int, message: str, body_excerpt: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.body_excerpt = body_excerpt


class UnauthorizedError(RequestRejectedError):
    """Raised for HTTP 401 responses when authentication is required or has failed."""


class ForbiddenError(RequestRejectedError):
    """Raised for HTTP 403 responses when access is forbidden."""


class UpstreamError(ClientError):
    """Raised when the upstream service fails after retries."""


class RetryableResponseError(Exception):
    """Internal exception used to trigger retries for retryable responses."""

    def __init__(self, response: httpx.Response):
        super().__init__(f"Retryable response received ({response.status_code})")
        self.response = response


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None

    value = value.strip()
    if value.isdigit():
        return float(value)

    try:
        retry_time = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None

    if retry_time is None:
        return None

    if retry_time.tzinfo is None:
        retry_time = retry_time.replace(tzinfo=timezone.utc)

    delay = (retry_time - datetime.now(timezone.utc)).total_seconds()
    return max(delay, 0.0)


def _sanitize_excerpt(text: str, max_length: int) -> str:
    cleaned = " ".join(text.split())
    return cleaned[:max_length]


def _get_body_excerpt(response: httpx.Response) -> Optional[str]:
    try:
        body_text = response.text
    except (httpx.ResponseNotRead, UnicodeDecodeError):
        return None

    if not body_text:
        return None

    return _sanitize_excerpt(body_text, _BODY_EXCERPT_LIMIT)


class BaseHttpClient:
    """Base class providing shared async HTTP behavior for provider clients.

    Retries are applied to transport failures raised by ``httpx`` (connection
    resets, timeouts) and HTTP responses with status codes in
    :data:`RETRYABLE_STATUS_CODES`. The wait between attempts grows
    exponentially up to ``retry_max_wait`` unless the response carries a
    ``Retry-After`` header, which takes precedence. After the retry budget is
    exhausted, HTTP 429 responses raise :class:`RateLimitedError` while 5xx
    responses and transport failures raise :class:`UpstreamError`. Other 4xx
    responses are never retried.

    Every attempt first passes through the client's
    :class:`FixedWindowRateLimiter`, which blocks rather than fails once the
    window is exhausted.
    """

    BASE_URL = ""

    def __init__(
        self,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        retry_attempts: int = RETRY_STOP_AFTER_ATTEMPT,
        retry_max_wait: float = BASE_WAIT_MAX_SECONDS,
        rate_limiter: Optional[FixedWindowRateLimiter] = None,
        debug_logging: bool = False,
    ) -> None:
        self.http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout), headers=DEFAULT_HEADERS
        )
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.retry_max_wait = retry_max_wait
        self.rate_limiter = rate_limiter or FixedWindowRateLimiter()
        self.debug_logging = debug_logging
        self._base_wait = wait_exponential(
            multiplier=BASE_WAIT_MULTIPLIER, min=BASE_WAIT_MIN_SECONDS, max=retry_max_wait
        )

    async def aclose(self) -> None:
        await self.http_client.aclose()

    def _retry_wait(self, retry_state: RetryCallState) -> float:
        """Wait strategy honoring Retry-After headers when available."""

        if retry_state.outcome is not None and retry_state.outcome.failed:
            exception = retry_state.outcome.exception()
            if isinstance(exception, RetryableResponseError):
                wait_seconds = _parse_retry_after(exception.response.headers.get("Retry-After"))
                if wait_seconds is not None:
                    return wait_seconds

        fallback = self._base_wait(retry_state)
        jittered_min = fallback * 0.5
        jittered_max = min(fallback * 1.5, self.retry_max_wait)
        return random.uniform(jittered_min, jittered_max)

    def _log_retry_attempt(self, retry_state: RetryCallState) -> None:
        if not self.debug_logging:
            return
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.debug(
            "Retry attempt %s against %s after %s, waiting %.2fs",
            retry_state.attempt_number + 1,
            self.base_url,
            exception,
            wait,
        )

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.retry_attempts),
            wait=self._retry_wait,
            retry=retry_if_exception_type((httpx.TransportError, RetryableResponseError)),
            before_sleep=self._log_retry_attempt,
        )
        async for attempt in retrying:
            with attempt:
                await self.rate_limiter.acquire()
                response = await self.http_client.request(method, url, timeout=self.timeout, **kwargs)
                if response.status_code in RETRYABLE_STATUS_CODES:
                    raise RetryableResponseError(response)
                return response
        raise UpstreamError(f"Request to {url} was not attempted")  # pragma: no cover

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            response = await self._send(method, url, params=params, headers=headers, **kwargs)
        except RetryableResponseError as exc:
            response = exc.response
        except httpx.TransportError as exc:
            raise UpstreamError(f"Request failed: {exc!r}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Unreadable response: {exc!r}") from exc

        return self._handle_response(response)

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"Invalid JSON payload: {exc}") from exc

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        status = response.status_code
        if status == 404:
            raise NotFoundError("Resource not found")
        if status == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            raise RateLimitedError("Rate limit exceeded", retry_after=retry_after)
        if 500 <= status < 600:
            excerpt = _get_body_excerpt(response)
            message = "Upstream service error"
            if excerpt:
                message = f"{message}: {excerpt}"
            raise UpstreamError(f"{message} ({status})")
        if 400 <= status < 500:
            excerpt = _get_body_excerpt(response)
            message = "Client request rejected"
            if excerpt:
                message = f"{message}: {excerpt}"
            if status == 401:
                raise UnauthorizedError(status, f"Unauthorized ({status})", body_excerpt=excerpt)
            if status == 403:
                raise ForbiddenError(status, f"Forbidden ({status})", body_excerpt=excerpt)
            raise RequestRejectedError(status, f"{message} ({status})", body_excerpt=excerpt)
        return response
