"""Shared pytest fixtures for URL context tests.

Fixture summary
---------------
clock       : ManualClock starting at t=1000s; advance it instead of sleeping.
sleeps      : List recording every delay passed to ``recording_sleep``.
recording_sleep: Awaitable no-op sleep that records its argument in ``sleeps``.
settings    : Settings built from defaults only (no .env file).
http_client : httpx.AsyncClient closed after the test; intercept it with respx.
service     : UrlContextService wired to the fixtures above.

No test touches the network: every outgoing request is mocked with respx.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

from url_context.config.settings import Settings
from url_context.scraper.service import UrlContextService


class ManualClock:
    """Deterministic :class:`~url_context.core.clock.Clock` for tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self._now = start

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def recording_sleep(sleeps: list[float]):
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest_asyncio.fixture
async def http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient() as client:
        yield client


@pytest_asyncio.fixture
async def service(
    settings: Settings,
    clock: ManualClock,
    http_client: httpx.AsyncClient,
    recording_sleep,
) -> AsyncGenerator[UrlContextService, None]:
    svc = UrlContextService(settings, client=http_client, clock=clock, sleep=recording_sleep)
    yield svc
    await svc.aclose()
