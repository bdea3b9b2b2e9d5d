"""Pydantic request/response schemas for the URL context API.

Used by the ``/url-context`` routes for validation, serialisation, and
OpenAPI documentation generation.  The schemas mirror the pipeline's
dataclasses in :mod:`url_context.scraper.models`; the ``from_*`` helpers
convert between the two.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from url_context.scraper.models import (
    BatchFailure,
    BatchResult,
    ContentBlock,
    ContentResult,
    FetchOptions,
)
from url_context.security.url_validator import SecurityMetrics


class FetchOptionsSchema(BaseModel):
    """Per-call overrides.  Omitted fields fall back to the service settings.

    Attributes:
        max_content_length: Body ceiling in bytes.
        timeout_ms: Request timeout in milliseconds (1000–30000).
        headers: Extra request headers merged over the defaults.
        allowed_domains: Allowlist patterns replacing the configured list.
        include_metadata: Whether content blocks carry title/description.
        convert_to_markdown: Whether HTML bodies are converted to Markdown.
        follow_redirects: Maximum number of redirects to follow.
        user_agent: User-Agent header override.
    """

    max_content_length: Optional[int] = Field(default=None, ge=1)
    timeout_ms: Optional[int] = Field(default=None, ge=1000, le=30000)
    headers: Optional[Dict[str, str]] = None
    allowed_domains: Optional[List[str]] = None
    include_metadata: Optional[bool] = None
    convert_to_markdown: Optional[bool] = None
    follow_redirects: Optional[int] = Field(default=None, ge=0, le=10)
    user_agent: Optional[str] = None

    def to_options(self) -> FetchOptions:
        return FetchOptions(**self.model_dump())


class FetchRequest(BaseModel):
    """Payload for ``POST /url-context/fetch``."""

    url: str = Field(min_length=1)
    options: Optional[FetchOptionsSchema] = None


class BatchRequest(BaseModel):
    """Payload for ``POST /url-context/batch``.

    The URL count is bounded by the service's ``max_urls_per_request``
    setting, not by the schema, so that the limit error carries the
    configured maximum.
    """

    urls: List[str]
    options: Optional[FetchOptionsSchema] = None


class ContentMetadataRead(BaseModel):
    url: str
    final_url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    content_type: str
    content_length: Optional[int] = None
    fetched_at: datetime
    truncated: bool
    response_time_ms: float
    status_code: int
    encoding: Optional[str] = None
    language: Optional[str] = None
    canonical_url: Optional[str] = None
    og_image: Optional[str] = None
    favicon: Optional[str] = None


class ContentResultRead(BaseModel):
    """One fetched page: normalized content plus metadata."""

    content: str
    metadata: ContentMetadataRead

    @classmethod
    def from_result(cls, result: ContentResult) -> "ContentResultRead":
        return cls(
            content=result.content,
            metadata=ContentMetadataRead.model_validate(result.metadata, from_attributes=True),
        )


class BatchFailureRead(BaseModel):
    url: str
    error: str
    error_code: str

    @classmethod
    def from_failure(cls, failure: BatchFailure) -> "BatchFailureRead":
        return cls(url=failure.url, error=str(failure.error), error_code=failure.error_code)


class BatchSummaryRead(BaseModel):
    total_urls: int
    success_count: int
    failure_count: int
    total_content_size: int
    average_response_time_ms: float


class ContentBlockRead(BaseModel):
    role: str
    text: str


class BatchResponse(BaseModel):
    """Response of ``POST /url-context/batch``.

    Attributes:
        contents: Consumer-facing text blocks, one per successful URL.
        successful: Full results of the successful fetches.
        failed: One entry per URL that could not be fetched.
        summary: Aggregate counters.
    """

    contents: List[ContentBlockRead]
    successful: List[ContentResultRead]
    failed: List[BatchFailureRead]
    summary: BatchSummaryRead

    @classmethod
    def from_batch(cls, contents: list[ContentBlock], batch: BatchResult) -> "BatchResponse":
        return cls(
            contents=[ContentBlockRead(role=block.role, text=block.text) for block in contents],
            successful=[ContentResultRead.from_result(result) for result in batch.successful],
            failed=[BatchFailureRead.from_failure(failure) for failure in batch.failed],
            summary=BatchSummaryRead.model_validate(batch.summary, from_attributes=True),
        )


class SecurityMetricsRead(BaseModel):
    validation_attempts: int
    validation_failures: int
    blocked_domains: List[str]
    suspicious_patterns: List[str]
    rate_limit_violations: int

    @classmethod
    def from_metrics(cls, metrics: SecurityMetrics) -> "SecurityMetricsRead":
        return cls(
            validation_attempts=metrics.validation_attempts,
            validation_failures=metrics.validation_failures,
            blocked_domains=sorted(metrics.blocked_domains),
            suspicious_patterns=metrics.suspicious_patterns,
            rate_limit_violations=metrics.rate_limit_violations,
        )


class ErrorResponse(BaseModel):
    """Body of every error response raised by the URL context routes."""

    detail: str
    error_code: str
    url: Optional[str] = None
