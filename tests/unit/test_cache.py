"""Unit tests for the in-process ResultCache."""

from __future__ import annotations

from datetime import datetime, timezone

from url_context.scraper.cache import ResultCache
from url_context.scraper.models import ContentMetadata, ContentResult


def _result(url: str, content: str = "body") -> ContentResult:
    return ContentResult(
        content=content,
        metadata=ContentMetadata(
            url=url,
            content_type="text/html",
            fetched_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            truncated=False,
            response_time_ms=12.0,
            status_code=200,
        ),
    )


class TestResultCache:
    def test_get_missing_returns_none(self, clock) -> None:
        assert ResultCache(clock).get("https://example.com/") is None

    def test_put_then_get_within_ttl(self, clock) -> None:
        cache = ResultCache(clock)
        result = _result("https://example.com/")
        cache.put("https://example.com/", result)

        clock.advance(15 * 60 - 1)
        assert cache.get("https://example.com/") is result

    def test_entry_expires_at_ttl_and_is_evicted(self, clock) -> None:
        cache = ResultCache(clock)
        cache.put("https://example.com/", _result("https://example.com/"))

        clock.advance(15 * 60)
        assert cache.get("https://example.com/") is None
        assert len(cache) == 0

    def test_put_refreshes_ttl(self, clock) -> None:
        cache = ResultCache(clock)
        cache.put("https://example.com/", _result("https://example.com/", "old"))
        clock.advance(600)
        cache.put("https://example.com/", _result("https://example.com/", "new"))
        clock.advance(600)

        cached = cache.get("https://example.com/")
        assert cached is not None
        assert cached.content == "new"

    def test_sweep_above_threshold_removes_expired_entries(self, clock) -> None:
        cache = ResultCache(clock, sweep_threshold=3)
        for i in range(3):
            cache.put(f"https://example.com/{i}", _result(f"https://example.com/{i}"))
        clock.advance(15 * 60)

        cache.put("https://example.com/fresh", _result("https://example.com/fresh"))

        assert len(cache) == 1
        assert cache.get("https://example.com/fresh") is not None

    def test_no_sweep_at_threshold(self, clock) -> None:
        cache = ResultCache(clock, sweep_threshold=3)
        for i in range(2):
            cache.put(f"https://example.com/{i}", _result(f"https://example.com/{i}"))
        clock.advance(15 * 60)
        cache.put("https://example.com/2", _result("https://example.com/2"))

        assert len(cache) == 3

    def test_sweep_failure_is_swallowed(self, clock, monkeypatch) -> None:
        cache = ResultCache(clock, sweep_threshold=0)

        def _boom() -> None:
            raise RuntimeError("sweep broke")

        monkeypatch.setattr(cache, "_sweep", _boom)
        cache.put("https://example.com/", _result("https://example.com/"))
        assert cache.get("https://example.com/") is not None

    def test_clear(self, clock) -> None:
        cache = ResultCache(clock)
        cache.put("https://example.com/", _result("https://example.com/"))
        cache.clear()
        assert len(cache) == 0
