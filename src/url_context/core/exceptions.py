"""Service-wide exception hierarchy for the URL context service.

All custom exceptions subclass ``UrlContextError``, enabling consistent
error handling and structured logging across the application.  Every class
carries a stable ``error_code`` string so that callers (the batch
coordinator, the HTTP router) can map failures to responses without
inspecting message text.

Hierarchy::

    UrlContextError                 UNKNOWN_ERROR
    ├── UrlValidationError          VALIDATION_ERROR   (reason: ValidationReason)
    ├── UrlFetchError               HTTP_<status> | FETCH_ERROR
    │   └── RateLimitExceededError  FETCH_ERROR        (never retried)
    └── BatchInputError             (invalid URL list)
"""

from __future__ import annotations

import enum

from url_context.scraper.config import RETRYABLE_CLIENT_STATUSES

UNKNOWN_ERROR = "UNKNOWN_ERROR"
VALIDATION_ERROR = "VALIDATION_ERROR"
FETCH_ERROR = "FETCH_ERROR"


class ValidationReason(str, enum.Enum):
    """Why a URL was rejected before any network access."""

    INVALID_FORMAT = "invalid_format"
    BLOCKED_DOMAIN = "blocked_domain"
    SUSPICIOUS_PATTERN = "suspicious_pattern"


class UrlContextError(Exception):
    """Base class for all URL context exceptions.

    Args:
        message: Human-readable description of the failure.
        url: The URL the failure relates to, if any.
    """

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url

    @property
    def error_code(self) -> str:
        """Machine-readable classification of this failure."""
        return UNKNOWN_ERROR


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class UrlValidationError(UrlContextError):
    """Raised when a URL fails security screening.

    Always raised before any network access and never retried.

    Args:
        message: Human-readable description of the rejection.
        url: The rejected URL.
        reason: One of :class:`ValidationReason`.
    """

    def __init__(
        self,
        message: str,
        url: str,
        reason: ValidationReason = ValidationReason.INVALID_FORMAT,
    ) -> None:
        super().__init__(message, url=url)
        self.reason = ValidationReason(reason)

    @property
    def error_code(self) -> str:
        return VALIDATION_ERROR


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------


class UrlFetchError(UrlContextError):
    """Raised when fetching a URL fails after validation succeeded.

    Args:
        message: Human-readable description of the failure.
        url: The URL being fetched.
        status_code: HTTP status of the failing response, or ``None`` for
            network-layer failures.
        retryable: Override for :attr:`retryable`.  When ``None`` the value
            is derived from ``status_code``: network failures, 5xx, 429 and
            408 are retryable, everything else is not.
    """

    def __init__(
        self,
        message: str,
        url: str,
        status_code: int | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message, url=url)
        self.status_code = status_code
        if retryable is None:
            retryable = (
                status_code is None
                or status_code >= 500
                or status_code in RETRYABLE_CLIENT_STATUSES
            )
        self.retryable = retryable

    @property
    def error_code(self) -> str:
        if self.status_code:
            return f"HTTP_{self.status_code}"
        return FETCH_ERROR


class RateLimitExceededError(UrlFetchError):
    """Raised when a hostname has exhausted its request budget for the window.

    Args:
        hostname: The rate-limited hostname.
        url: The URL whose fetch was refused.
        retry_after: Seconds until the hostname's window resets.
    """

    def __init__(self, hostname: str, url: str, retry_after: float) -> None:
        super().__init__(
            f"Rate limit exceeded for domain: {hostname}",
            url,
            status_code=None,
            retryable=False,
        )
        self.hostname = hostname
        self.retry_after = retry_after


# ---------------------------------------------------------------------------
# Batch input
# ---------------------------------------------------------------------------


class BatchInputError(UrlContextError, ValueError):
    """Raised when a batch call receives no URLs or too many URLs."""


def error_code_for(exc: BaseException) -> str:
    """Return the stable error code for any exception.

    Exceptions outside the hierarchy classify as ``UNKNOWN_ERROR``.
    """
    if isinstance(exc, UrlContextError):
        return exc.error_code
    return UNKNOWN_ERROR
