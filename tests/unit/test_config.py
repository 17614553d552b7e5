"""Unit tests for settings."""

import pytest

from sidebar_sync.config import Settings, get_settings


@pytest.fixture
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SIDEBAR_BACKEND_URL", raising=False)
        settings = Settings(_env_file=None)

        assert settings.backend_url == "http://127.0.0.1:8765"
        assert settings.name_max_length == 100
        assert settings.description_max_length == 500
        assert (settings.continuation_min_items, settings.continuation_max_items) == (1, 100)
        assert settings.active_tab_poll_interval_seconds == 0.5
        assert settings.log_json is True

    def test_env_prefix(self, monkeypatch, fresh_settings):
        monkeypatch.setenv("SIDEBAR_REQUEST_TIMEOUT_SECONDS", "5")
        monkeypatch.setenv("sidebar_event_stream_max_backoff_seconds", "60")

        settings = get_settings()

        assert settings.request_timeout_seconds == 5.0
        assert settings.event_stream_max_backoff_seconds == 60.0
        assert settings.backend_url == "http://backend.test"

    def test_cached(self):
        assert get_settings() is get_settings()
