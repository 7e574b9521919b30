from __future__ import annotations

from typing import Any, Iterable, List, Optional
from unittest.mock import patch

import httpx
import pytest

from citetree.providers.clients.base import (
    BaseHttpClient,
    ForbiddenError,
    NotFoundError,
    RateLimitedError,
    RequestRejectedError,
    RetryableResponseError,
    UnauthorizedError,
    UpstreamError,
    _parse_retry_after,
)
from citetree.providers.ratelimit import FixedWindowRateLimiter


class _ScriptedTransport:
    """Replays responses (or raises exceptions) in order."""

    def __init__(self, outcomes: Iterable[Any]):
        self._outcomes = list(outcomes)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self._outcomes[min(len(self.requests), len(self._outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    @property
    def calls(self) -> int:
        return len(self.requests)


class _DummyClient(BaseHttpClient):
    BASE_URL = "https://example.test"

    def __init__(self, outcomes: Iterable[Any], **kwargs: Any):
        self.transport = _ScriptedTransport(outcomes)
        super().__init__(
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(self.transport)),
            **kwargs,
        )


class _Outcome:
    def __init__(self, exception: Exception):
        self.failed = True
        self._exception = exception

    def exception(self) -> Exception:
        return self._exception


class _RetryState:
    def __init__(self, attempt_number: int, outcome: Optional[_Outcome]):
        self.attempt_number = attempt_number
        self.outcome = outcome


def _make_response(status: int, body: str = "", headers: Optional[dict[str, str]] = None):
    return httpx.Response(
        status,
        content=body.encode(),
        headers=headers,
        request=httpx.Request("GET", "https://example.test/resource"),
    )


def test_retry_wait_respects_retry_after_header():
    client = _DummyClient([])
    response = _make_response(429, headers={"Retry-After": "5"})
    retry_state = _RetryState(1, _Outcome(RetryableResponseError(response)))

    with patch("citetree.providers.clients.base.random.uniform") as uniform_mock:
        wait_seconds = client._retry_wait(retry_state)

    assert wait_seconds == 5
    uniform_mock.assert_not_called()


def test_retry_wait_applies_jitter_to_base_backoff():
    client = _DummyClient([], retry_max_wait=4.0)
    response = _make_response(500)
    retry_state = _RetryState(2, _Outcome(RetryableResponseError(response)))

    fallback = client._base_wait(retry_state)
    expected_min = fallback * 0.5
    expected_max = min(fallback * 1.5, 4.0)

    with patch(
        "citetree.providers.clients.base.random.uniform", return_value=expected_max
    ) as uniform_mock:
        wait_seconds = client._retry_wait(retry_state)

    uniform_mock.assert_called_once_with(expected_min, expected_max)
    assert wait_seconds == expected_max


def test_base_backoff_is_capped_by_max_wait():
    client = _DummyClient([], retry_max_wait=4.0)
    retry_state = _RetryState(10, _Outcome(RetryableResponseError(_make_response(503))))

    assert client._base_wait(retry_state) == 4.0


def test_parse_retry_after_accepts_seconds_and_rejects_garbage():
    assert _parse_retry_after("2") == 2.0
    assert _parse_retry_after(" 7 ") == 7.0
    assert _parse_retry_after("soon") is None
    assert _parse_retry_after(None) is None


def test_http_400_raises_request_rejected_error():
    response = _make_response(400, body="Bad request details" + "!" * 500)
    client = _DummyClient([response])

    with pytest.raises(RequestRejectedError) as excinfo:
        client._handle_response(response)

    assert excinfo.value.status == 400
    assert excinfo.value.body_excerpt is not None
    assert len(excinfo.value.body_excerpt) <= 200
    assert "Bad request details" in excinfo.value.body_excerpt


def test_http_401_and_403_raise_specific_rejection_errors():
    unauthorized = _make_response(401, body="token expired")
    forbidden = _make_response(403, body="denied")
    client = _DummyClient([unauthorized, forbidden])

    with pytest.raises(UnauthorizedError):
        client._handle_response(unauthorized)

    with pytest.raises(ForbiddenError):
        client._handle_response(forbidden)


def test_http_404_raises_not_found():
    response = _make_response(404)
    client = _DummyClient([response])

    with pytest.raises(NotFoundError):
        client._handle_response(response)


@pytest.mark.asyncio
async def test_http_429_retries_then_rate_limited_error_contains_retry_after_if_present():
    rate_limited = _make_response(429, headers={"Retry-After": "0"})
    client = _DummyClient([rate_limited, rate_limited, rate_limited])

    with pytest.raises(RateLimitedError) as excinfo:
        await client._request("GET", "/resource")

    assert excinfo.value.retry_after == 0
    assert client.transport.calls == 3


@pytest.mark.asyncio
async def test_http_500_retries():
    server_error = _make_response(500)
    client = _DummyClient([server_error, server_error, server_error])

    with patch("citetree.providers.clients.base.random.uniform", return_value=0.0):
        with pytest.raises(UpstreamError):
            await client._request("GET", "/resource")

    assert client.transport.calls == 3


@pytest.mark.asyncio
async def test_retry_attempts_are_configurable():
    server_error = _make_response(502)
    client = _DummyClient([server_error] * 5, retry_attempts=5)

    with patch("citetree.providers.clients.base.random.uniform", return_value=0.0):
        with pytest.raises(UpstreamError):
            await client._request("GET", "/resource")

    assert client.transport.calls == 5


@pytest.mark.asyncio
async def test_http_400_is_not_retried():
    client = _DummyClient([_make_response(400, body="bad"), _make_response(200)])

    with pytest.raises(RequestRejectedError):
        await client._request("GET", "/resource")

    assert client.transport.calls == 1


@pytest.mark.asyncio
async def test_transport_errors_are_retried_then_succeed():
    request = httpx.Request("GET", "https://example.test/resource")
    client = _DummyClient(
        [httpx.ConnectError("reset", request=request), _make_response(200, body="{}")]
    )

    with patch("citetree.providers.clients.base.random.uniform", return_value=0.0):
        response = await client._request("GET", "/resource")

    assert response.status_code == 200
    assert client.transport.calls == 2


@pytest.mark.asyncio
async def test_exhausted_transport_errors_raise_upstream_error():
    request = httpx.Request("GET", "https://example.test/resource")
    client = _DummyClient([httpx.ReadTimeout("timed out", request=request)] * 3)

    with patch("citetree.providers.clients.base.random.uniform", return_value=0.0):
        with pytest.raises(UpstreamError):
            await client._request("GET", "/resource")

    assert client.transport.calls == 3


@pytest.mark.asyncio
async def test_every_attempt_passes_through_the_rate_limiter():
    limiter = FixedWindowRateLimiter(max_requests=10, window=60.0)
    client = _DummyClient(
        [_make_response(429, headers={"Retry-After": "0"}), _make_response(200)],
        rate_limiter=limiter,
    )

    await client._request("GET", "/resource")

    assert limiter.status().remaining == 8


def test_invalid_json_raises_upstream_error():
    with pytest.raises(UpstreamError):
        BaseHttpClient._json(_make_response(200, body="<html>"))


@pytest.mark.asyncio
async def test_undecodable_body_raises_upstream_error_without_retry():
    request = httpx.Request("GET", "https://example.test/resource")
    client = _DummyClient([httpx.DecodingError("incorrect header check", request=request)])

    with pytest.raises(UpstreamError):
        await client._request("GET", "/resource")

    assert client.transport.calls == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("debug_logging, expected", [(False, 0), (True, 1)])
async def test_retry_attempts_are_logged_only_in_debug_mode(caplog, debug_logging, expected):
    client = _DummyClient(
        [_make_response(503, headers={"Retry-After": "0"}), _make_response(200)],
        debug_logging=debug_logging,
    )

    with caplog.at_level("DEBUG", logger="citetree.providers.clients.base"):
        await client._request("GET", "/resource")

    retry_records = [record for record in caplog.records if "Retry attempt" in record.getMessage()]
    assert len(retry_records) == expected
