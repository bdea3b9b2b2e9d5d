"""Unit tests for environment-backed Settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from url_context.config.settings import Settings, get_settings
from url_context.scraper.config import DEFAULT_USER_AGENT


class TestSettingsDefaults:
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.max_urls_per_request == 20
        assert settings.default_timeout_ms == 10000
        assert settings.default_max_content_kb == 100
        assert settings.allowed_domains == ["*"]
        assert settings.blocklisted_domains == []
        assert settings.convert_to_markdown is True
        assert settings.include_metadata is True
        assert settings.enable_caching is True
        assert settings.user_agent == DEFAULT_USER_AGENT


class TestSettingsEnvironment:
    def test_reads_prefixed_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("URL_CONTEXT_MAX_URLS_PER_REQUEST", "5")
        monkeypatch.setenv("URL_CONTEXT_ALLOWED_DOMAINS", '["example.com", "*.python.org"]')
        monkeypatch.setenv("URL_CONTEXT_ENABLE_CACHING", "false")

        settings = Settings(_env_file=None)

        assert settings.max_urls_per_request == 5
        assert settings.allowed_domains == ["example.com", "*.python.org"]
        assert settings.enable_caching is False

    @pytest.mark.parametrize(
        ("variable", "value"),
        [
            ("URL_CONTEXT_MAX_URLS_PER_REQUEST", "21"),
            ("URL_CONTEXT_MAX_URLS_PER_REQUEST", "0"),
            ("URL_CONTEXT_DEFAULT_TIMEOUT_MS", "999"),
            ("URL_CONTEXT_DEFAULT_TIMEOUT_MS", "30001"),
            ("URL_CONTEXT_DEFAULT_MAX_CONTENT_KB", "1001"),
        ],
    )
    def test_out_of_bounds_values_are_rejected(self, monkeypatch, variable, value) -> None:
        monkeypatch.setenv(variable, value)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_get_settings_is_cached(self) -> None:
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
