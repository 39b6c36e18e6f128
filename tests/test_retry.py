"""Tests for the bounded exponential-backoff retry executor."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from reflection_weekly.config import RetryConfig
from reflection_weekly.fetch.retry import RetryPolicy, default_is_retryable, execute_with_retry


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://api.example.com/resource")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


class _RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def test_retries_transient_failures_with_exponential_backoff():
    sleep = _RecordingSleep()
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        if calls["count"] < 3:
            raise httpx.ConnectError("connection reset")
        return "ok"

    result = asyncio.run(execute_with_retry(operation, policy=RetryPolicy(3, 1.0), sleep=sleep))

    assert result == "ok"
    assert calls["count"] == 3
    assert sleep.delays == [1.0, 2.0]


def test_gives_up_after_max_retries_and_raises_last_error():
    sleep = _RecordingSleep()
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        raise _status_error(503)

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(execute_with_retry(operation, policy=RetryPolicy(3, 1.0), sleep=sleep))

    assert calls["count"] == 4
    assert sleep.delays == [1.0, 2.0, 4.0]


def test_non_retryable_error_propagates_immediately():
    sleep = _RecordingSleep()
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        raise _status_error(404)

    with pytest.raises(httpx.HTTPStatusError) as excinfo:
        asyncio.run(execute_with_retry(operation, sleep=sleep))

    assert excinfo.value.response.status_code == 404
    assert calls["count"] == 1
    assert sleep.delays == []


def test_injected_predicate_decides_what_is_retried():
    sleep = _RecordingSleep()
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        if calls["count"] == 1:
            raise ValueError("flaky")
        return 42

    result = asyncio.run(
        execute_with_retry(
            operation,
            is_retryable=lambda exc: isinstance(exc, ValueError),
            policy=RetryPolicy(1, 0.5),
            sleep=sleep,
        )
    )

    assert result == 42
    assert sleep.delays == [0.5]


@pytest.mark.parametrize(
    ("status", "expected"),
    [(500, True), (502, True), (503, True), (429, True), (400, False), (401, False), (403, False), (404, False)],
)
def test_default_is_retryable_by_status(status, expected):
    assert default_is_retryable(_status_error(status)) is expected


def test_default_is_retryable_for_network_failures():
    request = httpx.Request("GET", "https://api.example.com")
    assert default_is_retryable(httpx.ConnectError("reset", request=request))
    assert default_is_retryable(httpx.ReadTimeout("timed out", request=request))
    assert not default_is_retryable(ValueError("not a network failure"))


def test_policy_from_config_clamps_negative_values():
    policy = RetryPolicy.from_config(RetryConfig(max_retries=-1, base_delay_seconds=-2.0))

    assert policy.max_retries == 0
    assert policy.base_delay == 0.0
    assert RetryPolicy(3, 1.0).delay_for(2) == 4.0
