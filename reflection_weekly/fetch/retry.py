"""
Bounded exponential-backoff retry for outbound HTTP calls.

Every client (GitHub, Toggl, LLM providers, Notion) wraps its requests
with execute_with_retry. The executor knows nothing about HTTP status
codes beyond the injected is_retryable predicate, so the policy can be
exercised without any network client.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Awaitable, Callable, TypeVar

import httpx

from ..config import RetryConfig
from ..utils.logging import log_event

T = TypeVar("T")

RETRYABLE_STATUS = 429


@dataclass(frozen=True)
class RetryPolicy:
    """Retry bounds.

    Attributes:
        max_retries: Attempts allowed after the first one
        base_delay: Backoff base in seconds; retry n waits base * 2**n
    """

    max_retries: int = 3
    base_delay: float = 1.0

    @classmethod
    def from_config(cls, cfg: RetryConfig) -> "RetryPolicy":
        return cls(max_retries=max(0, cfg.max_retries), base_delay=max(0.0, cfg.base_delay_seconds))

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (2**attempt)


def default_is_retryable(exc: BaseException) -> bool:
    """Return True for failures worth retrying.

    Network-level failures (no response: connect errors, resets,
    timeouts), 5xx responses and 429 are retryable. Other 4xx are not.
    """
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status >= 500 or status == RETRYABLE_STATUS
    return isinstance(exc, httpx.TransportError)


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    is_retryable: Callable[[BaseException], bool] = default_is_retryable,
    policy: RetryPolicy | None = None,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    logger: logging.Logger | None = None,
    description: str = "request",
) -> T:
    """Run operation, retrying retryable failures with exponential backoff.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt
        is_retryable: Predicate deciding whether a failure may be retried
        policy: Retry bounds (defaults to 3 retries with a 1s base)
        sleep: Awaitable sleep, injectable for tests
        logger: Optional logger for retry events
        description: Label used in retry log events

    Returns:
        The operation's result from the first successful attempt

    Raises:
        The last exception when it is not retryable or retries are exhausted
    """
    policy = policy or RetryPolicy()
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:  # noqa: BLE001
            if attempt >= policy.max_retries or not is_retryable(exc):
                raise
            delay = policy.delay_for(attempt)
            log_event(
                logger,
                "Retrying request",
                event="http_retry",
                request=description,
                attempt=attempt + 1,
                delay_seconds=delay,
                error=f"{type(exc).__name__}: {exc}",
            )
            await sleep(delay)
            attempt += 1
