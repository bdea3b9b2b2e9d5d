"""Generic async retry executor with exponential backoff.

Thin wrapper around :class:`tenacity.AsyncRetrying` so that callers describe
*what* to retry (a predicate) and *how often* (a :class:`RetryPolicy`) without
touching tenacity directly.

Typical usage::

    result = await run_with_retry(
        lambda: fetch_once(url),
        policy=RetryPolicy(),
        should_retry=lambda exc: isinstance(exc, UrlFetchError) and exc.retryable,
    )

Backoff sleeps suspend only the awaiting coroutine; other in-flight
operations on the event loop keep running.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from url_context.scraper.config import (
    RETRY_BACKOFF_FACTOR,
    RETRY_INITIAL_DELAY_SECONDS,
    RETRY_MAX_ATTEMPTS,
    RETRY_MAX_DELAY_SECONDS,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry limits for a single logical operation.

    Attributes:
        max_attempts: Total attempts including the first one.
        initial_delay: Delay before the first retry (seconds).
        max_delay: Upper bound on any single delay (seconds).
        backoff_factor: Multiplier applied to the delay after each attempt.
    """

    max_attempts: int = RETRY_MAX_ATTEMPTS
    initial_delay: float = RETRY_INITIAL_DELAY_SECONDS
    max_delay: float = RETRY_MAX_DELAY_SECONDS
    backoff_factor: float = RETRY_BACKOFF_FACTOR


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        "retry: attempt %d failed (%s); retrying in %.2fs",
        retry_state.attempt_number,
        exc,
        delay,
    )


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    should_retry: Callable[[BaseException], bool],
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``operation`` until it succeeds or the policy is exhausted.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        policy: Attempt count and backoff parameters.
        should_retry: Predicate deciding whether a raised exception is
            transient.  Exceptions it rejects propagate immediately.
        sleep: Awaitable sleep used between attempts (injectable for tests).

    Returns:
        The value returned by the first successful attempt.

    Raises:
        The last exception raised by ``operation`` once retries stop.
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(
            multiplier=policy.initial_delay,
            exp_base=policy.backoff_factor,
            max=policy.max_delay,
        ),
        retry=retry_if_exception(should_retry),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    ):
        with attempt:
            return await operation()
    raise AssertionError("unreachable: tenacity re-raises once attempts stop")
