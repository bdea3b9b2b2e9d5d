"""Constants and tuning parameters for the URL content retrieval pipeline."""

from __future__ import annotations

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

#: User-agent string sent with every HTTP request unless overridden.
USER_AGENT_PRODUCT: str = "UrlContextService/1.0"
DEFAULT_USER_AGENT: str = f"{USER_AGENT_PRODUCT} (+https://github.com/url-context/url-context)"

#: User-agent string sent by the accessibility (HEAD) check.
HEALTHCHECK_USER_AGENT: str = "UrlContextService-HealthCheck/1.0"

#: Default request headers.  Caller-supplied headers are merged on top.
DEFAULT_ACCEPT: str = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
DEFAULT_ACCEPT_LANGUAGE: str = "en-US,en;q=0.5"
#: Only encodings httpx can always decode without optional extras.
DEFAULT_ACCEPT_ENCODING: str = "gzip, deflate"

#: Maximum number of redirects followed when the caller does not override it.
DEFAULT_MAX_REDIRECTS: int = 3

#: Content-Type substrings accepted for processing.  Anything else is rejected.
TEXT_CONTENT_TYPES: tuple[str, ...] = (
    "text/html",
    "text/plain",
    "text/xml",
    "text/markdown",
    "application/xml",
    "application/xhtml+xml",
    "application/json",
    "application/ld+json",
)

#: Content-Type assumed when the response carries none.
FALLBACK_CONTENT_TYPE: str = "text/html"

# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------

RETRY_MAX_ATTEMPTS: int = 3
RETRY_INITIAL_DELAY_SECONDS: float = 1.0
RETRY_MAX_DELAY_SECONDS: float = 5.0
RETRY_BACKOFF_FACTOR: float = 2.0

#: HTTP statuses below 500 that are still worth retrying.
RETRYABLE_CLIENT_STATUSES: frozenset[int] = frozenset({408, 429})

# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

#: Lifetime of a cached fetch result (seconds).
CACHE_TTL_SECONDS: float = 15 * 60

#: Store size above which a write triggers a sweep of expired entries.
CACHE_SWEEP_THRESHOLD: int = 1000

# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

#: Fixed window length per hostname (seconds).
RATE_LIMIT_WINDOW_SECONDS: float = 60.0

#: Accepted requests per hostname per window.
RATE_LIMIT_MAX_REQUESTS: int = 10

# ---------------------------------------------------------------------------
# Batching
# ---------------------------------------------------------------------------

#: Number of URLs fetched concurrently in one batch.
BATCH_SIZE: int = 5

#: Pause between consecutive batches (seconds).
INTER_BATCH_DELAY_SECONDS: float = 0.2
