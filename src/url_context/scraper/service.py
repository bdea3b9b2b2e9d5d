"""Public entry point of the URL content retrieval pipeline.

:class:`UrlContextService` wires one validator, cache, rate limiter, fetcher
and batch coordinator together from :class:`~url_context.config.settings.Settings`.
All shared state (cache, rate-limit windows, security counters) is owned by
the service instance.

Usage::

    service = UrlContextService()
    try:
        result = await service.fetch_url_content("https://example.com")
        contents, batch = await service.process_urls_for_context(urls)
    finally:
        await service.aclose()
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import httpx
import structlog

from url_context.config.settings import Settings, get_settings
from url_context.core.clock import Clock, MonotonicClock
from url_context.core.retry import RetryPolicy
from url_context.scraper.batch import BatchCoordinator
from url_context.scraper.cache import ResultCache
from url_context.scraper.http_fetcher import ContentFetcher
from url_context.scraper.models import BatchResult, ContentBlock, ContentResult, FetchOptions
from url_context.scraper.rate_limiter import RateLimiter
from url_context.security.url_validator import SecurityMetrics, UrlValidator

logger = structlog.get_logger(__name__)


class UrlContextService:
    """Facade over the validator, fetcher and batch coordinator.

    Args:
        settings: Service configuration; defaults to :func:`get_settings`.
        client: Shared HTTP client.  When omitted the service creates one
            and closes it in :meth:`aclose`.
        clock: Time source shared by the cache, rate limiter and fetcher.
        retry_policy: Retry limits for transient fetch failures.
        sleep: Awaitable sleep for retry backoff and inter-batch pauses.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        clock: Clock | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        clock = clock or MonotonicClock()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()

        self.validator = UrlValidator(self.settings)
        self.cache = ResultCache(clock)
        self.rate_limiter = RateLimiter(clock)
        self.fetcher = ContentFetcher(
            validator=self.validator,
            rate_limiter=self.rate_limiter,
            cache=self.cache,
            client=self._client,
            settings=self.settings,
            clock=clock,
            retry_policy=retry_policy,
            sleep=sleep,
        )
        self.coordinator = BatchCoordinator(self.fetcher, self.settings, sleep=sleep)

    async def fetch_url_content(
        self, url: str, options: FetchOptions | None = None
    ) -> ContentResult:
        """Fetch a single URL.  See :meth:`ContentFetcher.fetch`."""
        return await self.fetcher.fetch(url, options)

    async def process_urls_for_context(
        self, urls: list[str], options: FetchOptions | None = None
    ) -> tuple[list[ContentBlock], BatchResult]:
        """Fetch a list of URLs.  See :meth:`BatchCoordinator.process_urls`."""
        return await self.coordinator.process_urls(urls, options)

    def get_security_metrics(self) -> SecurityMetrics:
        return self.validator.get_security_metrics()

    def reset_security_metrics(self) -> None:
        self.validator.reset_security_metrics()
        logger.info("security_metrics_reset")

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("url_cache_cleared")

    async def aclose(self) -> None:
        """Release the HTTP client if this service created it."""
        if self._owns_client:
            await self._client.aclose()
