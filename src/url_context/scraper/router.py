"""FastAPI router for the URL context service.

Routes:
    POST   /url-context/fetch             : fetch one URL
    POST   /url-context/batch             : fetch up to ``max_urls_per_request`` URLs
    GET    /url-context/security-metrics  : current validation counters
    DELETE /url-context/security-metrics  : reset validation counters

Errors are mapped to HTTP statuses by error code only, never by message
text.  Every error body has the shape ``{"detail", "error_code", "url"}``.
"""

from __future__ import annotations

import math
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from url_context.api.dependencies import get_url_context_service
from url_context.core.exceptions import (
    BatchInputError,
    RateLimitExceededError,
    UrlContextError,
    UrlValidationError,
    ValidationReason,
)
from url_context.core.schemas.url_context import (
    BatchRequest,
    BatchResponse,
    ContentResultRead,
    ErrorResponse,
    FetchRequest,
    SecurityMetricsRead,
)
from url_context.scraper.service import UrlContextService

logger = structlog.get_logger(__name__)

router = APIRouter()

ServiceDep = Annotated[UrlContextService, Depends(get_url_context_service)]

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def status_for_error(exc: UrlContextError) -> int:
    """Return the HTTP status used to report ``exc``."""
    if isinstance(exc, UrlValidationError):
        if exc.reason is ValidationReason.BLOCKED_DOMAIN:
            return status.HTTP_403_FORBIDDEN
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, RateLimitExceededError):
        return status.HTTP_429_TOO_MANY_REQUESTS
    if isinstance(exc, BatchInputError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_502_BAD_GATEWAY


def _error_response(exc: UrlContextError) -> JSONResponse:
    status_code = status_for_error(exc)
    body = ErrorResponse(detail=str(exc), error_code=exc.error_code, url=exc.url)
    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(max(1, math.ceil(exc.retry_after)))}
    logger.warning(
        "url_context_request_failed",
        status_code=status_code,
        error_code=exc.error_code,
        url=exc.url,
        detail=str(exc),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------


@router.post("/fetch", response_model=ContentResultRead, responses=_ERROR_RESPONSES)
async def fetch_url(payload: FetchRequest, service: ServiceDep):
    """Fetch a single URL and return its normalized content and metadata.

    Raises:
        400: The URL is malformed or suspicious.
        403: The URL points at a blocked, private or disallowed domain.
        429: The hostname's rate-limit window is exhausted.
        502: The upstream request failed.
    """
    options = payload.options.to_options() if payload.options else None
    try:
        result = await service.fetch_url_content(payload.url, options)
    except UrlContextError as exc:
        return _error_response(exc)
    return ContentResultRead.from_result(result)


@router.post("/batch", response_model=BatchResponse, responses=_ERROR_RESPONSES)
async def fetch_batch(payload: BatchRequest, service: ServiceDep):
    """Fetch a list of URLs.

    Per-URL failures are reported in ``failed`` with a ``200`` response;
    only an empty or oversized URL list fails the whole request (422).
    """
    options = payload.options.to_options() if payload.options else None
    try:
        contents, batch = await service.process_urls_for_context(payload.urls, options)
    except UrlContextError as exc:
        return _error_response(exc)
    return BatchResponse.from_batch(contents, batch)


# ---------------------------------------------------------------------------
# Security metrics
# ---------------------------------------------------------------------------


@router.get("/security-metrics", response_model=SecurityMetricsRead)
async def get_security_metrics(service: ServiceDep) -> SecurityMetricsRead:
    return SecurityMetricsRead.from_metrics(service.get_security_metrics())


@router.delete("/security-metrics", status_code=status.HTTP_204_NO_CONTENT)
async def reset_security_metrics(service: ServiceDep) -> None:
    service.reset_security_metrics()
