"""Environment-backed configuration of the URL retrieval pipeline.

Every limit a caller can tune (batch size cap, timeout, body ceiling,
domain policy, normalization defaults) lives on :class:`Settings`; the
pipeline stages receive a ``Settings`` instance instead of reading the
environment themselves.

Usage::

    from url_context.config.settings import get_settings

    settings = get_settings()
    limit = settings.max_urls_per_request

List-valued fields (``allowed_domains``, ``blocklisted_domains``) are read
from JSON arrays, e.g.::

    URL_CONTEXT_ALLOWED_DOMAINS='["example.com", "*.python.org"]'
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from url_context.scraper.config import DEFAULT_USER_AGENT


class Settings(BaseSettings):
    """Service-wide configuration backed by environment variables and an optional .env file.

    Every field has a secure default so the service starts without any
    environment at all.  Values are prefixed with ``URL_CONTEXT_`` in the
    environment (``URL_CONTEXT_MAX_URLS_PER_REQUEST=10``).
    """

    model_config = SettingsConfigDict(
        env_prefix="URL_CONTEXT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Batch limits
    # ------------------------------------------------------------------

    max_urls_per_request: int = Field(default=20, ge=1, le=20)
    """Maximum number of URLs accepted by a single batch call."""

    # ------------------------------------------------------------------
    # Fetch limits
    # ------------------------------------------------------------------

    default_timeout_ms: int = Field(default=10000, ge=1000, le=30000)
    """Per-request timeout in milliseconds when the caller does not override it."""

    default_max_content_kb: int = Field(default=100, ge=1, le=1000)
    """Response body ceiling in kilobytes.  Larger bodies are truncated."""

    user_agent: str = DEFAULT_USER_AGENT
    """User-Agent header sent with every fetch unless overridden per call."""

    # ------------------------------------------------------------------
    # Domain policy
    # ------------------------------------------------------------------

    allowed_domains: list[str] = ["*"]
    """Domain allowlist patterns.  ``["*"]`` (or an empty list) allows all hosts.

    Patterns: ``*`` matches everything, ``*.example.com`` matches
    ``example.com`` and any subdomain, a bare ``example.com`` matches itself
    and any subdomain.
    """

    blocklisted_domains: list[str] = []
    """Domain blocklist patterns, checked before the allowlist."""

    # ------------------------------------------------------------------
    # Content processing
    # ------------------------------------------------------------------

    convert_to_markdown: bool = True
    """Convert HTML responses to Markdown by default."""

    include_metadata: bool = True
    """Prefix consumer content blocks with title/description lines by default."""

    enable_caching: bool = True
    """Serve repeated fetches of the same URL from the in-process TTL cache."""

    # ------------------------------------------------------------------
    # Application behaviour
    # ------------------------------------------------------------------

    app_name: str = "URL Context Service"
    """Human-readable service name shown in the OpenAPI docs."""

    debug: bool = False
    """FastAPI debug mode (tracebacks in error responses)."""

    log_level: str = "INFO"
    """Root log level passed to ``configure_logging``; ``DEBUG`` selects console output."""

    metrics_enabled: bool = True
    """Expose Prometheus metrics at ``GET /metrics``."""


@lru_cache
def get_settings() -> Settings:
    """Process-wide :class:`Settings`, read from the environment on first call.

    Call ``get_settings.cache_clear()`` after changing ``URL_CONTEXT_*``
    variables to pick the new values up.
    """
    return Settings()
