"""FastAPI dependency injection providers.

The :class:`~url_context.scraper.service.UrlContextService` is created once
per application in :func:`url_context.api.main.create_app` and stored on
``app.state``; routes resolve it through :func:`get_url_context_service`.
Tests hand a pre-built service to ``create_app``.
"""

from __future__ import annotations

from fastapi import Request

from url_context.scraper.service import UrlContextService


def get_url_context_service(request: Request) -> UrlContextService:
    """Return the application's shared :class:`UrlContextService`."""
    return request.app.state.url_context_service
