"""ASGI application for the URL context service.

``create_app()`` assembles the FastAPI instance: request-id middleware,
the ``/url-context`` router, lifecycle hooks and the two system endpoints.
The module-level ``app`` is what the server imports::

    uvicorn url_context.api.main:app --reload
"""

from __future__ import annotations

import time
import uuid
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from url_context import __version__
from url_context.api.metrics import (
    get_metrics_response,
    http_request_duration_seconds,
    http_requests_total,
)
from url_context.config.settings import get_settings
from url_context.core.logging_config import configure_logging, request_id_var
from url_context.scraper.router import router as url_context_router
from url_context.scraper.service import UrlContextService

# Records emitted while the app is being built need a handler before
# settings are read; create_app() re-applies the configured level.
configure_logging("INFO")

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


def _record_request_metrics(request: Request, status_code: int, elapsed: float) -> None:
    path = _route_template(request)
    try:
        http_requests_total.labels(
            method=request.method, path=path, status=str(status_code)
        ).inc()
        http_request_duration_seconds.labels(method=request.method, path=path).observe(elapsed)
    except Exception as exc:  # noqa: BLE001
        logger.debug("http_metrics_failed", error=str(exc))


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(service: UrlContextService | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        service: Service instance to serve requests with.  When ``None`` one
            is built from :func:`get_settings` and closed on shutdown;
            a caller-supplied service stays owned by the caller.

    Returns:
        The configured application.
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    application = FastAPI(
        title=settings.app_name,
        description="Secure retrieval of user-supplied URLs for content generation.",
        version=__version__,
        debug=settings.debug,
    )
    owns_service = service is None
    application.state.url_context_service = service or UrlContextService(settings)

    @application.middleware("http")
    async def bind_request_context(request: Request, call_next: Callable) -> Response:
        """Tag every log line of a request with one id and log its outcome."""
        request_id = str(uuid.uuid4())
        request_id_var.set(request_id)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("unhandled_exception")
            raise
        elapsed = time.perf_counter() - started

        (logger.warning if response.status_code >= 400 else logger.info)(
            "request_complete",
            status_code=response.status_code,
            elapsed_ms=round(elapsed * 1000, 2),
        )
        if settings.metrics_enabled:
            _record_request_metrics(request, response.status_code, elapsed)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    application.include_router(url_context_router, prefix="/url-context", tags=["url-context"])

    @application.on_event("startup")
    async def log_startup() -> None:
        logger.info(
            "application_startup",
            app_name=settings.app_name,
            log_level=settings.log_level,
            max_urls_per_request=settings.max_urls_per_request,
            allowed_domains=settings.allowed_domains,
            caching=settings.enable_caching,
        )

    @application.on_event("shutdown")
    async def close_service() -> None:
        if owns_service:
            await application.state.url_context_service.aclose()
        logger.info("application_shutdown")

    # ---- System endpoints -------------------------------------------------

    @application.get("/health", tags=["system"])
    async def health() -> JSONResponse:
        """Liveness check; does not touch the network."""
        return JSONResponse({"status": "ok"})

    if settings.metrics_enabled:

        @application.get("/metrics", tags=["system"], include_in_schema=False)
        async def metrics() -> Response:
            body, content_type = get_metrics_response()
            return Response(content=body, media_type=content_type)

    return application


app = create_app()
