"""Unit tests for the secure HTTP fetcher.

Exercises the full fetch path of :class:`UrlContextService` against mocked
httpx responses: validation before network access, caching, per-host rate
limiting, retries, redirects, content-type filtering, truncation and
metadata extraction.
"""

from __future__ import annotations

import httpx
import pytest
import respx

from url_context.core.exceptions import (
    FETCH_ERROR,
    RateLimitExceededError,
    UrlFetchError,
    UrlValidationError,
    ValidationReason,
)
from url_context.scraper.http_fetcher import (
    _is_supported_content_type,
    _parse_charset,
    _truncate_utf8,
)
from url_context.scraper.models import FetchOptions
from url_context.scraper.service import UrlContextService

_HTML = (
    "<html><head><title>Hi</title>"
    '<meta name="description" content="A greeting page"></head>'
    "<body><h2>Hello</h2><p>Some <strong>bold</strong> text.</p></body></html>"
)


def _html_response(body: str = _HTML, **headers: str) -> httpx.Response:
    return httpx.Response(
        200,
        text=body,
        headers={"content-type": "text/html; charset=utf-8", **headers},
    )


# ---------------------------------------------------------------------------
# Unit tests for helper functions
# ---------------------------------------------------------------------------


class TestHelpers:
    @pytest.mark.parametrize(
        "content_type",
        ["text/html; charset=utf-8", "TEXT/PLAIN", "application/json", "application/ld+json"],
    )
    def test_supported_content_types(self, content_type: str) -> None:
        assert _is_supported_content_type(content_type) is True

    @pytest.mark.parametrize("content_type", ["image/png", "application/pdf", "video/mp4"])
    def test_unsupported_content_types(self, content_type: str) -> None:
        assert _is_supported_content_type(content_type) is False

    def test_parse_charset(self) -> None:
        assert _parse_charset("text/html; charset=ISO-8859-1") == "iso-8859-1"
        assert _parse_charset('text/html; charset="UTF-8"; x=y') == "utf-8"
        assert _parse_charset("text/html") is None

    def test_truncate_utf8_never_splits_characters(self) -> None:
        text, truncated = _truncate_utf8("ééé", 3)
        assert truncated is True
        assert text == "é"

    def test_truncate_utf8_under_ceiling(self) -> None:
        assert _truncate_utf8("abc", 3) == ("abc", False)


# ---------------------------------------------------------------------------
# Successful fetches
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestFetchSuccess:
    async def test_html_is_converted_with_metadata(self, service: UrlContextService) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            mock.get("/page").mock(return_value=_html_response())
            result = await service.fetch_url_content("https://example.com/page")

        assert result.metadata.title == "Hi"
        assert result.metadata.description == "A greeting page"
        assert result.metadata.status_code == 200
        assert result.metadata.encoding == "utf-8"
        assert result.metadata.truncated is False
        assert result.metadata.final_url is None
        assert "## Hello" in result.content
        assert "**bold**" in result.content

    async def test_default_request_headers(self, service: UrlContextService) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            route = mock.get("/page").mock(return_value=_html_response())
            await service.fetch_url_content("https://example.com/page")
            headers = route.calls.last.request.headers

        assert headers["user-agent"].startswith("UrlContextService/1.0")
        assert headers["cache-control"] == "no-cache"
        assert headers["accept-language"] == "en-US,en;q=0.5"
        assert "text/html" in headers["accept"]

    async def test_caller_headers_and_user_agent_override(
        self, service: UrlContextService
    ) -> None:
        options = FetchOptions(user_agent="custom-agent/2", headers={"X-Trace": "abc"})
        with respx.mock(base_url="https://example.com") as mock:
            route = mock.get("/page").mock(return_value=_html_response())
            await service.fetch_url_content("https://example.com/page", options)
            headers = route.calls.last.request.headers

        assert headers["user-agent"] == "custom-agent/2"
        assert headers["x-trace"] == "abc"

    async def test_markdown_conversion_can_be_disabled(self, service: UrlContextService) -> None:
        options = FetchOptions(convert_to_markdown=False)
        with respx.mock(base_url="https://example.com") as mock:
            mock.get("/page").mock(return_value=_html_response())
            result = await service.fetch_url_content("https://example.com/page", options)

        assert "<h2>Hello</h2>" in result.content
        assert result.metadata.title == "Hi"

    async def test_plain_text_is_cleaned_not_converted(self, service: UrlContextService) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            mock.get("/notes.txt").mock(
                return_value=httpx.Response(
                    200,
                    text="line one  \r\n\r\n\r\n<b>kept</b>\tend",
                    headers={"content-type": "text/plain"},
                )
            )
            result = await service.fetch_url_content("https://example.com/notes.txt")

        assert result.content == "line one\n\n<b>kept</b> end"
        assert result.metadata.title is None

    async def test_latin1_charset_is_decoded(self, service: UrlContextService) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            mock.get("/da").mock(
                return_value=httpx.Response(
                    200,
                    content="<p>Smørrebrød</p>".encode("iso-8859-1"),
                    headers={"content-type": "text/html; charset=ISO-8859-1"},
                )
            )
            result = await service.fetch_url_content("https://example.com/da")

        assert result.content == "Smørrebrød"
        assert result.metadata.encoding == "iso-8859-1"

    async def test_response_over_ceiling_is_truncated(self, service: UrlContextService) -> None:
        options = FetchOptions(max_content_length=1000)
        with respx.mock(base_url="https://example.com") as mock:
            mock.get("/big").mock(
                return_value=httpx.Response(
                    200, text="a" * 5000, headers={"content-type": "text/plain"}
                )
            )
            result = await service.fetch_url_content("https://example.com/big", options)

        assert result.metadata.truncated is True
        assert len(result.content.encode("utf-8")) <= 1000

    async def test_default_ceiling_comes_from_settings(self, service: UrlContextService) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            mock.get("/big").mock(
                return_value=httpx.Response(
                    200, text="b" * (150 * 1024), headers={"content-type": "text/plain"}
                )
            )
            result = await service.fetch_url_content("https://example.com/big")

        assert result.metadata.truncated is True
        assert len(result.content) == 100 * 1024


# ---------------------------------------------------------------------------
# Validation, caching and rate limiting
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestFetchGates:
    async def test_invalid_url_never_reaches_network(self, service: UrlContextService) -> None:
        with respx.mock(assert_all_called=False) as mock:
            route = mock.get(url__regex=r".*").mock(return_value=_html_response())
            with pytest.raises(UrlValidationError) as exc_info:
                await service.fetch_url_content("http://192.168.0.10/admin")
            assert route.call_count == 0

        assert exc_info.value.reason is ValidationReason.BLOCKED_DOMAIN

    async def test_second_fetch_is_served_from_cache(self, service: UrlContextService) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            route = mock.get("/page").mock(return_value=_html_response())
            first = await service.fetch_url_content("https://example.com/page")
            second = await service.fetch_url_content("https://example.com/page")
            assert route.call_count == 1

        assert second is first

    async def test_cache_expires_after_ttl(self, service: UrlContextService, clock) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            route = mock.get("/page").mock(return_value=_html_response())
            await service.fetch_url_content("https://example.com/page")
            clock.advance(15 * 60)
            await service.fetch_url_content("https://example.com/page")
            assert route.call_count == 2

    async def test_clear_cache_forces_refetch(self, service: UrlContextService) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            route = mock.get("/page").mock(return_value=_html_response())
            await service.fetch_url_content("https://example.com/page")
            service.clear_cache()
            await service.fetch_url_content("https://example.com/page")
            assert route.call_count == 2

        assert len(service.cache) == 1

    async def test_caching_can_be_disabled(self, settings, clock, http_client) -> None:
        settings.enable_caching = False
        service = UrlContextService(settings, client=http_client, clock=clock)
        with respx.mock(base_url="https://example.com") as mock:
            route = mock.get("/page").mock(return_value=_html_response())
            await service.fetch_url_content("https://example.com/page")
            await service.fetch_url_content("https://example.com/page")
            assert route.call_count == 2

    async def test_eleventh_request_to_host_is_rate_limited(
        self, service: UrlContextService, clock
    ) -> None:
        with respx.mock() as mock:
            mock.get(url__regex=r"https://example\.com/page/\d+").mock(return_value=_html_response())
            for i in range(10):
                await service.fetch_url_content(f"https://example.com/page/{i}")

            with pytest.raises(RateLimitExceededError) as exc_info:
                await service.fetch_url_content("https://example.com/page/10")

            clock.advance(60)
            result = await service.fetch_url_content("https://example.com/page/11")

        assert exc_info.value.error_code == FETCH_ERROR
        assert result.metadata.title == "Hi"
        assert service.get_security_metrics().rate_limit_violations == 1

    async def test_cache_hits_do_not_consume_rate_budget(self, service: UrlContextService) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            mock.get("/page").mock(return_value=_html_response())
            for _ in range(15):
                await service.fetch_url_content("https://example.com/page")

        assert service.rate_limiter.state_for("example.com").count == 1


# ---------------------------------------------------------------------------
# Failures and retries
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestFetchFailures:
    async def test_503_then_200_succeeds_after_one_retry(
        self, service: UrlContextService, sleeps
    ) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            route = mock.get("/flaky").mock(
                side_effect=[httpx.Response(503), _html_response()]
            )
            result = await service.fetch_url_content("https://example.com/flaky")
            assert route.call_count == 2

        assert result.metadata.title == "Hi"
        assert sleeps == [1.0]

    async def test_404_is_attempted_once(self, service: UrlContextService) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            route = mock.get("/missing").mock(return_value=httpx.Response(404))
            with pytest.raises(UrlFetchError) as exc_info:
                await service.fetch_url_content("https://example.com/missing")
            assert route.call_count == 1

        assert exc_info.value.status_code == 404
        assert exc_info.value.error_code == "HTTP_404"
        assert str(exc_info.value) == "HTTP 404: Not Found"

    async def test_persistent_5xx_exhausts_three_attempts(
        self, service: UrlContextService, sleeps
    ) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            route = mock.get("/down").mock(return_value=httpx.Response(500))
            with pytest.raises(UrlFetchError) as exc_info:
                await service.fetch_url_content("https://example.com/down")
            assert route.call_count == 3

        assert exc_info.value.error_code == "HTTP_500"
        assert sleeps == [1.0, 2.0]

    async def test_429_is_retried(self, service: UrlContextService) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            route = mock.get("/busy").mock(
                side_effect=[httpx.Response(429), _html_response()]
            )
            await service.fetch_url_content("https://example.com/busy")
            assert route.call_count == 2

    async def test_network_error_is_retried_then_reported(
        self, service: UrlContextService
    ) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            route = mock.get("/unreachable").mock(side_effect=httpx.ConnectError("refused"))
            with pytest.raises(UrlFetchError) as exc_info:
                await service.fetch_url_content("https://example.com/unreachable")
            assert route.call_count == 3

        assert exc_info.value.status_code is None
        assert exc_info.value.error_code == FETCH_ERROR

    async def test_timeout_is_reported(self, service: UrlContextService) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            mock.get("/slow").mock(side_effect=httpx.ReadTimeout("timeout"))
            with pytest.raises(UrlFetchError) as exc_info:
                await service.fetch_url_content(
                    "https://example.com/slow", FetchOptions(timeout_ms=2000)
                )

        assert str(exc_info.value) == "Request timed out after 2000ms"

    async def test_unsupported_content_type_is_not_retried(
        self, service: UrlContextService
    ) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            route = mock.get("/image.png").mock(
                return_value=httpx.Response(
                    200, content=b"\x89PNG", headers={"content-type": "image/png"}
                )
            )
            with pytest.raises(UrlFetchError) as exc_info:
                await service.fetch_url_content("https://example.com/image.png")
            assert route.call_count == 1

        assert "Unsupported content type" in str(exc_info.value)
        assert exc_info.value.status_code == 200
        assert exc_info.value.error_code == "HTTP_200"
        assert exc_info.value.retryable is False

    async def test_failures_are_not_cached(self, service: UrlContextService) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            route = mock.get("/missing").mock(return_value=httpx.Response(404))
            for _ in range(2):
                with pytest.raises(UrlFetchError):
                    await service.fetch_url_content("https://example.com/missing")
            assert route.call_count == 2


# ---------------------------------------------------------------------------
# Redirects
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestRedirects:
    async def test_redirect_is_followed_and_recorded(self, service: UrlContextService) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            mock.get("/old").mock(
                return_value=httpx.Response(301, headers={"location": "/new"})
            )
            mock.get("/new").mock(return_value=_html_response())
            result = await service.fetch_url_content("https://example.com/old")

        assert result.metadata.url == "https://example.com/old"
        assert result.metadata.final_url == "https://example.com/new"
        assert result.metadata.title == "Hi"

    async def test_redirect_to_private_address_is_blocked(
        self, service: UrlContextService
    ) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            route = mock.get("/hop").mock(
                return_value=httpx.Response(
                    302, headers={"location": "http://169.254.169.254/latest/meta-data"}
                )
            )
            with pytest.raises(UrlValidationError) as exc_info:
                await service.fetch_url_content("https://example.com/hop")
            assert route.call_count == 1

        assert exc_info.value.reason is ValidationReason.BLOCKED_DOMAIN

    async def test_redirect_limit_is_enforced(self, service: UrlContextService) -> None:
        with respx.mock(base_url="https://example.com") as mock:
            mock.get("/a").mock(return_value=httpx.Response(302, headers={"location": "/b"}))
            route_b = mock.get("/b").mock(
                return_value=httpx.Response(302, headers={"location": "/c"})
            )
            with pytest.raises(UrlFetchError) as exc_info:
                await service.fetch_url_content(
                    "https://example.com/a", FetchOptions(follow_redirects=1)
                )
            assert route_b.call_count == 1

        assert exc_info.value.retryable is False
        assert "Too many redirects" in str(exc_info.value)
