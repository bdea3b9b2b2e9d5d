"""Unit tests for the exception hierarchy and error-code classification."""

from __future__ import annotations

import pytest

from url_context.core.exceptions import (
    FETCH_ERROR,
    UNKNOWN_ERROR,
    VALIDATION_ERROR,
    BatchInputError,
    UrlContextError,
    UrlFetchError,
    UrlValidationError,
    ValidationReason,
    error_code_for,
)


class TestErrorCodes:
    def test_validation_error_code(self) -> None:
        exc = UrlValidationError("bad", "https://x/", ValidationReason.BLOCKED_DOMAIN)
        assert exc.error_code == VALIDATION_ERROR
        assert exc.reason is ValidationReason.BLOCKED_DOMAIN
        assert exc.url == "https://x/"

    def test_reason_accepts_plain_string(self) -> None:
        exc = UrlValidationError("bad", "https://x/", "suspicious_pattern")
        assert exc.reason is ValidationReason.SUSPICIOUS_PATTERN

    def test_fetch_error_with_status(self) -> None:
        assert UrlFetchError("HTTP 404", "https://x/", status_code=404).error_code == "HTTP_404"

    def test_fetch_error_without_status(self) -> None:
        assert UrlFetchError("timeout", "https://x/").error_code == FETCH_ERROR

    def test_foreign_exception_is_unknown(self) -> None:
        assert error_code_for(RuntimeError("boom")) == UNKNOWN_ERROR

    def test_base_error_is_unknown(self) -> None:
        assert error_code_for(UrlContextError("boom")) == UNKNOWN_ERROR

    def test_batch_input_error_is_a_value_error(self) -> None:
        assert isinstance(BatchInputError("No URLs provided for processing"), ValueError)


class TestRetryable:
    @pytest.mark.parametrize("status_code", [None, 500, 502, 503, 504, 408, 429])
    def test_transient_failures_are_retryable(self, status_code) -> None:
        assert UrlFetchError("x", "https://x/", status_code=status_code).retryable is True

    @pytest.mark.parametrize("status_code", [400, 401, 403, 404, 410])
    def test_client_errors_are_not_retryable(self, status_code) -> None:
        assert UrlFetchError("x", "https://x/", status_code=status_code).retryable is False

    def test_explicit_override_wins(self) -> None:
        assert UrlFetchError("x", "https://x/", retryable=False).retryable is False
