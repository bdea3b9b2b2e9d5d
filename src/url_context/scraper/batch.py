"""Bounded-concurrency batch processing of URL lists.

URLs are partitioned into fixed batches of
:data:`~url_context.scraper.config.BATCH_SIZE`.  All fetches in a batch run
concurrently and every outcome is captured independently, so one failing
URL never cancels its siblings or aborts the batch.  Batches run strictly
one after another with a short pause in between.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

import structlog

from url_context.api.metrics import batch_urls_total
from url_context.config.settings import Settings, get_settings
from url_context.core.exceptions import BatchInputError, error_code_for
from url_context.scraper.config import BATCH_SIZE, INTER_BATCH_DELAY_SECONDS
from url_context.scraper.http_fetcher import ContentFetcher
from url_context.scraper.models import (
    BatchFailure,
    BatchResult,
    BatchSummary,
    ContentBlock,
    ContentResult,
    FetchOptions,
)

logger = structlog.get_logger(__name__)


def format_content_block(result: ContentResult, include_metadata: bool = True) -> ContentBlock:
    """Render one fetched page as a consumer-facing text block.

    The block starts with a header naming the source URL, followed by the
    title and description lines (when ``include_metadata`` and present) and
    then the body.
    """
    text = f"## Content from {result.metadata.url}\n\n"
    if include_metadata:
        if result.metadata.title:
            text += f"**Title:** {result.metadata.title}\n\n"
        if result.metadata.description:
            text += f"**Description:** {result.metadata.description}\n\n"
    text += result.content
    return ContentBlock(text=text)


def summarize(
    total_urls: int,
    successful: list[ContentResult],
    failed: list[BatchFailure],
) -> BatchSummary:
    """Compute the aggregate counters of a completed batch run."""
    average = (
        sum(result.metadata.response_time_ms for result in successful) / len(successful)
        if successful
        else 0.0
    )
    return BatchSummary(
        total_urls=total_urls,
        success_count=len(successful),
        failure_count=len(failed),
        total_content_size=sum(len(result.content) for result in successful),
        average_response_time_ms=average,
    )


class BatchCoordinator:
    """Fetches a list of URLs in fixed-size concurrent batches.

    Args:
        fetcher: Performs each individual fetch.
        settings: Supplies ``max_urls_per_request`` and ``include_metadata``.
        batch_size: URLs fetched concurrently per batch.
        inter_batch_delay: Pause between consecutive batches (seconds).
        sleep: Awaitable sleep used for the pause (injectable for tests).
    """

    def __init__(
        self,
        fetcher: ContentFetcher,
        settings: Settings | None = None,
        batch_size: int = BATCH_SIZE,
        inter_batch_delay: float = INTER_BATCH_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._fetcher = fetcher
        self._settings = settings or get_settings()
        self._batch_size = batch_size
        self._inter_batch_delay = inter_batch_delay
        self._sleep = sleep

    async def process_urls(
        self,
        urls: list[str],
        options: FetchOptions | None = None,
    ) -> tuple[list[ContentBlock], BatchResult]:
        """Fetch every URL in ``urls`` and render the successes as content blocks.

        Args:
            urls: URLs to fetch, processed in order batch by batch.
            options: Per-call overrides applied to every fetch.

        Returns:
            Tuple of ``(contents, batch_result)``.  ``contents`` holds one
            block per successful fetch in the order of
            ``batch_result.successful``.

        Raises:
            BatchInputError: If ``urls`` is empty or longer than
                ``max_urls_per_request``.
        """
        if not urls:
            raise BatchInputError("No URLs provided for processing")
        max_urls = self._settings.max_urls_per_request
        if len(urls) > max_urls:
            raise BatchInputError(f"Too many URLs: {len(urls)}. Maximum allowed: {max_urls}")

        options = options or FetchOptions()
        started = time.perf_counter()
        successful: list[ContentResult] = []
        failed: list[BatchFailure] = []

        batches = [urls[i : i + self._batch_size] for i in range(0, len(urls), self._batch_size)]
        for index, batch in enumerate(batches):
            outcomes = await asyncio.gather(
                *(self._fetcher.fetch(url, options) for url in batch),
                return_exceptions=True,
            )
            for url, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    failed.append(
                        BatchFailure(url=url, error=outcome, error_code=error_code_for(outcome))
                    )
                else:
                    successful.append(outcome)
            if index < len(batches) - 1:
                await self._sleep(self._inter_batch_delay)

        summary = summarize(len(urls), successful, failed)
        include_metadata = (
            options.include_metadata
            if options.include_metadata is not None
            else self._settings.include_metadata
        )
        contents = [format_content_block(result, include_metadata) for result in successful]

        try:
            batch_urls_total.labels(status="success").inc(summary.success_count)
            batch_urls_total.labels(status="failure").inc(summary.failure_count)
        except Exception as exc:  # noqa: BLE001
            logger.debug("batch_metrics_failed", error=str(exc))

        logger.info(
            "batch_complete",
            total_urls=summary.total_urls,
            success_count=summary.success_count,
            failure_count=summary.failure_count,
            total_content_size=summary.total_content_size,
            elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return contents, BatchResult(successful=successful, failed=failed, summary=summary)
