"""Per-hostname fixed-window rate limiter.

Each hostname gets a budget of
:data:`~url_context.scraper.config.RATE_LIMIT_MAX_REQUESTS` accepted fetches
per :data:`~url_context.scraper.config.RATE_LIMIT_WINDOW_SECONDS`.  The
window starts at the first request to a hostname and is reset (never
deleted) once it has elapsed.

Only successful network fetches consume budget: the fetcher calls
:meth:`RateLimiter.check` before doing any work and :meth:`RateLimiter.record`
after a fetch succeeds, so validation failures, cache hits and rejected
requests never count against the host.

Typical usage::

    limiter = RateLimiter()
    limiter.check(hostname, url)      # raises RateLimitExceededError
    result = await do_fetch(url)
    limiter.record(hostname)

State is process-local; distributing it across processes is out of scope.
"""

from __future__ import annotations

import logging
import threading

from url_context.core.clock import Clock, MonotonicClock
from url_context.core.exceptions import RateLimitExceededError
from url_context.scraper.config import RATE_LIMIT_MAX_REQUESTS, RATE_LIMIT_WINDOW_SECONDS
from url_context.scraper.models import RateLimitState

logger = logging.getLogger(__name__)


class RateLimiter:
    """In-memory fixed-window limiter keyed by hostname.

    Args:
        clock: Time source; defaults to :class:`MonotonicClock`.
        max_requests: Accepted requests per window.
        window_seconds: Window length in seconds.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        max_requests: int = RATE_LIMIT_MAX_REQUESTS,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
    ) -> None:
        self._clock = clock or MonotonicClock()
        self._max_requests = max_requests
        self._window = window_seconds
        self._states: dict[str, RateLimitState] = {}
        self._lock = threading.Lock()

    def check(self, hostname: str, url: str | None = None) -> None:
        """Admit or refuse a request to ``hostname``.

        Creates the hostname's window on first use and resets it once it has
        elapsed.  Does not consume budget.

        Args:
            hostname: Lower-cased hostname of the target URL.
            url: The URL being fetched; carried on the raised error.

        Raises:
            RateLimitExceededError: If the current window is exhausted.
        """
        with self._lock:
            now = self._clock.now()
            state = self._states.get(hostname)
            if state is None or now >= state.window_reset_at:
                self._states[hostname] = RateLimitState(
                    count=0, window_reset_at=now + self._window
                )
                return
            if state.count >= self._max_requests:
                retry_after = state.window_reset_at - now
                logger.warning(
                    "rate_limiter: %s exhausted %d requests; resets in %.1fs",
                    hostname,
                    self._max_requests,
                    retry_after,
                )
                raise RateLimitExceededError(hostname, url or hostname, retry_after)

    def record(self, hostname: str) -> None:
        """Consume one unit of ``hostname``'s budget after a successful fetch."""
        with self._lock:
            state = self._states.get(hostname)
            if state is not None:
                state.count += 1

    def state_for(self, hostname: str) -> RateLimitState | None:
        """Return a copy of the current state for ``hostname``, if any."""
        with self._lock:
            state = self._states.get(hostname)
            if state is None:
                return None
            return RateLimitState(count=state.count, window_reset_at=state.window_reset_at)

    def reset(self) -> None:
        with self._lock:
            self._states.clear()
