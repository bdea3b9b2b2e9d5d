"""In-process TTL cache of fetch results keyed by URL.

Expired entries are evicted lazily on read.  Once the store grows beyond
:data:`~url_context.scraper.config.CACHE_SWEEP_THRESHOLD` entries, every
write also sweeps out all expired entries.  State is process-local and is
not persisted across restarts.
"""

from __future__ import annotations

import logging
import threading

from url_context.core.clock import Clock, MonotonicClock
from url_context.scraper.config import CACHE_SWEEP_THRESHOLD, CACHE_TTL_SECONDS
from url_context.scraper.models import CacheEntry, ContentResult

logger = logging.getLogger(__name__)


class ResultCache:
    """TTL store of :class:`ContentResult` objects.

    Args:
        clock: Time source; defaults to :class:`MonotonicClock`.
        ttl_seconds: Lifetime of each entry.
        sweep_threshold: Store size above which writes sweep expired entries.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        sweep_threshold: int = CACHE_SWEEP_THRESHOLD,
    ) -> None:
        self._clock = clock or MonotonicClock()
        self._ttl = ttl_seconds
        self._sweep_threshold = sweep_threshold
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, url: str) -> ContentResult | None:
        """Return the cached result for ``url``, or ``None`` if absent or expired."""
        with self._lock:
            entry = self._entries.get(url)
            if entry is not None and self._clock.now() < entry.expires_at:
                return entry.result
            self._entries.pop(url, None)
            return None

    def put(self, url: str, result: ContentResult) -> None:
        """Store ``result`` under ``url`` with a fresh TTL."""
        with self._lock:
            self._entries[url] = CacheEntry(
                result=result,
                expires_at=self._clock.now() + self._ttl,
            )
            if len(self._entries) > self._sweep_threshold:
                try:
                    self._sweep()
                except Exception as exc:  # noqa: BLE001
                    logger.warning("cache: sweep failed: %s", exc)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _sweep(self) -> None:
        now = self._clock.now()
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("cache: swept %d expired entries", len(expired))
