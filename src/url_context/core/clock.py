"""Time source abstraction.

The cache and the rate limiter read time only through a :class:`Clock` so
that tests can advance time deterministically instead of sleeping.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic time source measured in seconds."""

    def now(self) -> float:
        ...


class MonotonicClock:
    """Default clock backed by :func:`time.monotonic`."""

    def now(self) -> float:
        return time.monotonic()
