"""Data classes exchanged between the pipeline stages.

``ContentMetadata`` and ``ContentResult`` are frozen: once a fetch produces
them they are shared read-only between the caller and the result cache.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class FetchOptions:
    """Per-call overrides for a fetch.

    Every field defaults to ``None``, meaning "use the configured value".

    Attributes:
        max_content_length: Body ceiling in bytes.
        timeout_ms: Request timeout in milliseconds.
        headers: Extra request headers merged over the defaults.
        allowed_domains: Allowlist patterns replacing the configured list.
        include_metadata: Whether consumer blocks carry title/description.
        convert_to_markdown: Whether HTML bodies are converted to Markdown.
        follow_redirects: Maximum number of redirects to follow.
        user_agent: User-Agent header override.
    """

    max_content_length: int | None = None
    timeout_ms: int | None = None
    headers: dict[str, str] | None = None
    allowed_domains: list[str] | None = None
    include_metadata: bool | None = None
    convert_to_markdown: bool | None = None
    follow_redirects: int | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class ContentMetadata:
    """Response and document metadata for one fetched URL."""

    url: str
    content_type: str
    fetched_at: datetime
    truncated: bool
    response_time_ms: float
    status_code: int
    final_url: str | None = None
    title: str | None = None
    description: str | None = None
    content_length: int | None = None
    encoding: str | None = None
    language: str | None = None
    canonical_url: str | None = None
    og_image: str | None = None
    favicon: str | None = None


@dataclass(frozen=True)
class ContentResult:
    """Normalized body text plus its metadata."""

    content: str
    metadata: ContentMetadata


@dataclass(frozen=True)
class HtmlMetadata:
    """Document-level fields extracted from an HTML page.

    Every attribute is ``None`` when the corresponding tag is absent.
    """

    title: str | None = None
    description: str | None = None
    language: str | None = None
    canonical_url: str | None = None
    og_image: str | None = None
    favicon: str | None = None


@dataclass
class CacheEntry:
    result: ContentResult
    expires_at: float


@dataclass
class RateLimitState:
    count: int
    window_reset_at: float


@dataclass
class ValidationVerdict:
    """Outcome of screening a URL.  Produced per call, never stored."""

    valid: bool
    reason: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class BatchFailure:
    """One URL of a batch that could not be fetched.

    Attributes:
        url: The URL as supplied by the caller.
        error: The exception raised while fetching it.
        error_code: Stable classification (``VALIDATION_ERROR``,
            ``HTTP_<status>``, ``FETCH_ERROR`` or ``UNKNOWN_ERROR``).
    """

    url: str
    error: BaseException
    error_code: str


@dataclass
class BatchSummary:
    total_urls: int
    success_count: int
    failure_count: int
    total_content_size: int
    average_response_time_ms: float


@dataclass
class BatchResult:
    successful: list[ContentResult]
    failed: list[BatchFailure]
    summary: BatchSummary


@dataclass(frozen=True)
class ContentBlock:
    """Plain-text block handed to the content-generation consumer."""

    text: str
    role: str = "user"
