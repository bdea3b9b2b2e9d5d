"""Secure async HTTP fetcher.

Every fetch runs through the same ordered gates before touching the network:

1. **Validation**: :class:`~url_context.security.url_validator.UrlValidator`
   screens the URL; its error propagates unchanged and is never retried.
2. **Rate limit**: the per-hostname window must not be exhausted.
3. **Cache**: a cached result is returned without any network access.
4. **Network**: a streamed ``GET`` through the retry executor.  Redirects
   are followed manually so that every hop is re-validated, and the body
   is read only up to the byte ceiling.

On success the result is cached and the hostname's rate-limit budget is
consumed.  Uses ``httpx`` for all HTTP requests.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Awaitable, Callable
from urllib.parse import urljoin, urlsplit

import httpx

from url_context.api.metrics import (
    url_fetch_duration_seconds,
    url_fetch_total,
    url_validation_rejections_total,
)
from url_context.config.settings import Settings, get_settings
from url_context.core.clock import Clock, MonotonicClock
from url_context.core.exceptions import (
    RateLimitExceededError,
    UrlContextError,
    UrlFetchError,
    UrlValidationError,
)
from url_context.core.retry import RetryPolicy, run_with_retry
from url_context.scraper.cache import ResultCache
from url_context.scraper.config import (
    DEFAULT_ACCEPT,
    DEFAULT_ACCEPT_ENCODING,
    DEFAULT_ACCEPT_LANGUAGE,
    DEFAULT_MAX_REDIRECTS,
    FALLBACK_CONTENT_TYPE,
    TEXT_CONTENT_TYPES,
)
from url_context.scraper.content_extractor import (
    clean_content,
    extract_html_metadata,
    html_to_markdown,
)
from url_context.scraper.models import ContentMetadata, ContentResult, FetchOptions
from url_context.scraper.rate_limiter import RateLimiter
from url_context.security.url_validator import UrlValidator

logger = logging.getLogger(__name__)

_CHARSET_RE = re.compile(r"charset=([^;]+)", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_supported_content_type(content_type: str) -> bool:
    """Return ``True`` if ``content_type`` names one of the accepted text formats."""
    lowered = content_type.lower()
    return any(accepted in lowered for accepted in TEXT_CONTENT_TYPES)


def _parse_charset(content_type: str) -> str | None:
    match = _CHARSET_RE.search(content_type)
    if match is None:
        return None
    return match.group(1).strip().strip('"').lower() or None


def _decode_body(body: bytes, charset: str | None) -> str:
    try:
        return body.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


def _truncate_utf8(text: str, ceiling: int) -> tuple[str, bool]:
    """Cut ``text`` so that its UTF-8 encoding fits in ``ceiling`` bytes.

    Returns:
        Tuple of ``(text, truncated)``.  A multi-byte character straddling
        the ceiling is dropped rather than split.
    """
    encoded = text.encode("utf-8")
    if len(encoded) <= ceiling:
        return text, False
    return encoded[:ceiling].decode("utf-8", errors="ignore"), True


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, UrlFetchError) and exc.retryable


def _record_outcome(outcome: str, rejection: UrlValidationError | None = None) -> None:
    try:
        url_fetch_total.labels(outcome=outcome).inc()
        if rejection is not None:
            url_validation_rejections_total.labels(reason=rejection.reason.value).inc()
    except Exception as exc:  # noqa: BLE001
        logger.debug("fetcher: metrics recording failed: %s", exc)


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class ContentFetcher:
    """Fetches and normalizes one URL at a time.

    Args:
        validator: Screens the initial URL and every redirect target.
        rate_limiter: Per-hostname request budget.
        cache: Result store consulted before the network.
        client: Shared :class:`httpx.AsyncClient`; the caller owns its lifecycle.
        settings: Defaults for every :class:`FetchOptions` field left ``None``.
        clock: Time source used to measure response time.
        retry_policy: Attempt count and backoff for transient failures.
        sleep: Awaitable sleep used between retries (injectable for tests).
    """

    def __init__(
        self,
        *,
        validator: UrlValidator,
        rate_limiter: RateLimiter,
        cache: ResultCache,
        client: httpx.AsyncClient,
        settings: Settings | None = None,
        clock: Clock | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._validator = validator
        self._rate_limiter = rate_limiter
        self._cache = cache
        self._client = client
        self._settings = settings or get_settings()
        self._clock = clock or MonotonicClock()
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    async def fetch(self, url: str, options: FetchOptions | None = None) -> ContentResult:
        """Fetch ``url`` and return its normalized content.

        Args:
            url: The URL exactly as supplied by the caller; also the cache key.
            options: Per-call overrides.

        Returns:
            The (possibly cached) :class:`ContentResult`.

        Raises:
            UrlValidationError: If ``url`` or a redirect target fails screening.
            UrlFetchError: On rate limiting, HTTP errors, unsupported content
                or network failures that outlived the retry budget.
        """
        options = options or FetchOptions()
        start = self._clock.now()

        try:
            self._validator.validate(url, options.allowed_domains)
        except UrlValidationError as exc:
            _record_outcome("validation_error", exc)
            raise

        hostname = urlsplit(url).hostname or ""
        try:
            self._rate_limiter.check(hostname, url)
        except RateLimitExceededError:
            self._validator.record_rate_limit_violation()
            _record_outcome("fetch_error")
            raise

        if self._settings.enable_caching:
            cached = self._cache.get(url)
            if cached is not None:
                logger.debug("fetcher: cache hit for %s", url)
                _record_outcome("cache_hit")
                return cached

        try:
            result = await run_with_retry(
                lambda: self._fetch_once(url, options, start),
                policy=self._retry_policy,
                should_retry=_is_retryable,
                sleep=self._sleep,
            )
        except UrlContextError as exc:
            logger.warning(
                "fetcher: failed %s after %.0fms: %s",
                url,
                self._elapsed_ms(start),
                exc,
            )
            if isinstance(exc, UrlValidationError):
                _record_outcome("validation_error", exc)
            else:
                _record_outcome("fetch_error")
            raise
        except Exception as exc:
            logger.error(
                "fetcher: unexpected error for %s after %.0fms: %s",
                url,
                self._elapsed_ms(start),
                exc,
            )
            _record_outcome("fetch_error")
            raise UrlFetchError(f"Failed to fetch URL: {exc}", url) from exc

        if self._settings.enable_caching:
            self._cache.put(url, result)
        self._rate_limiter.record(hostname)
        _record_outcome("success")
        try:
            url_fetch_duration_seconds.observe(self._elapsed_ms(start) / 1000)
        except Exception as exc:  # noqa: BLE001
            logger.debug("fetcher: metrics recording failed: %s", exc)

        logger.info(
            "fetcher: fetched %s (%d chars, %.0fms%s)",
            url,
            len(result.content),
            result.metadata.response_time_ms,
            ", truncated" if result.metadata.truncated else "",
        )
        return result

    # ------------------------------------------------------------------
    # Single attempt
    # ------------------------------------------------------------------

    async def _fetch_once(self, url: str, options: FetchOptions, start: float) -> ContentResult:
        timeout_ms = options.timeout_ms or self._settings.default_timeout_ms
        max_redirects = (
            options.follow_redirects
            if options.follow_redirects is not None
            else DEFAULT_MAX_REDIRECTS
        )
        headers = self._build_headers(options)

        current_url = url
        redirects = 0
        while True:
            request = self._client.build_request(
                "GET", current_url, headers=headers, timeout=timeout_ms / 1000
            )
            try:
                response = await self._client.send(request, stream=True, follow_redirects=False)
                try:
                    if response.is_redirect:
                        redirects += 1
                        if redirects > max_redirects:
                            raise UrlFetchError(
                                f"Too many redirects (max {max_redirects})",
                                url,
                                retryable=False,
                            )
                        current_url = urljoin(current_url, response.headers["location"])
                        logger.debug("fetcher: %s redirected to %s", url, current_url)
                        self._validator.validate(current_url, options.allowed_domains)
                        continue
                    return await self._read_response(url, current_url, response, options, start)
                finally:
                    await response.aclose()
            except httpx.TimeoutException as exc:
                logger.warning("fetcher: timeout fetching %s", current_url)
                raise UrlFetchError(f"Request timed out after {timeout_ms}ms", url) from exc
            except httpx.HTTPError as exc:
                logger.warning("fetcher: request error for %s: %s", current_url, exc)
                raise UrlFetchError(f"Network error: {exc}", url) from exc

    async def _read_response(
        self,
        url: str,
        final_url: str,
        response: httpx.Response,
        options: FetchOptions,
        start: float,
    ) -> ContentResult:
        status = response.status_code
        if not response.is_success:
            logger.info("fetcher: HTTP %d for %s", status, url)
            raise UrlFetchError(f"HTTP {status}: {response.reason_phrase}", url, status_code=status)

        content_type = response.headers.get("content-type", FALLBACK_CONTENT_TYPE)
        if not _is_supported_content_type(content_type):
            raise UrlFetchError(
                f"Unsupported content type: {content_type}",
                url,
                status_code=status,
                retryable=False,
            )

        ceiling = options.max_content_length or self._settings.default_max_content_kb * 1024
        body = bytearray()
        stream_cut = False
        async for chunk in response.aiter_bytes():
            body.extend(chunk)
            if len(body) > ceiling:
                stream_cut = True
                break

        charset = _parse_charset(content_type)
        text, over_ceiling = _truncate_utf8(_decode_body(bytes(body), charset), ceiling)
        truncated = stream_cut or over_ceiling

        content_length_header = response.headers.get("content-length")
        content_length = (
            int(content_length_header)
            if content_length_header and content_length_header.isdigit()
            else len(text)
        )

        is_html = "text/html" in content_type.lower()
        html_metadata = extract_html_metadata(text) if is_html else None
        convert = (
            options.convert_to_markdown
            if options.convert_to_markdown is not None
            else self._settings.convert_to_markdown
        )
        content = html_to_markdown(text) if is_html and convert else clean_content(text)

        metadata = ContentMetadata(
            url=url,
            final_url=final_url if final_url != url else None,
            content_type=content_type,
            content_length=content_length,
            fetched_at=datetime.now(timezone.utc),
            truncated=truncated,
            response_time_ms=self._elapsed_ms(start),
            status_code=status,
            encoding=charset,
            title=html_metadata.title if html_metadata else None,
            description=html_metadata.description if html_metadata else None,
            language=html_metadata.language if html_metadata else None,
            canonical_url=html_metadata.canonical_url if html_metadata else None,
            og_image=html_metadata.og_image if html_metadata else None,
            favicon=html_metadata.favicon if html_metadata else None,
        )
        return ContentResult(content=content, metadata=metadata)

    def _build_headers(self, options: FetchOptions) -> dict[str, str]:
        headers = {
            "User-Agent": options.user_agent or self._settings.user_agent,
            "Accept": DEFAULT_ACCEPT,
            "Accept-Language": DEFAULT_ACCEPT_LANGUAGE,
            "Accept-Encoding": DEFAULT_ACCEPT_ENCODING,
            "Cache-Control": "no-cache",
        }
        if options.headers:
            headers.update(options.headers)
        return headers

    def _elapsed_ms(self, start: float) -> float:
        return (self._clock.now() - start) * 1000
