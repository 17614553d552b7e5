"""Unit tests for logging service."""

import json

import structlog

from sidebar_sync.services.logging_service import (
    MAX_INLINE_ITEMS,
    MAX_INLINE_PAYLOAD,
    collapse_payloads,
    configure_logging,
    get_logger,
    redact_sensitive,
)


class TestRedactSensitive:
    """Tests for redact_sensitive processor."""

    def test_redacts_token(self):
        """Test token field is redacted."""
        event_dict = {"token": "abc123", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["token"] == "REDACTED"
        assert result["event"] == "test"

    def test_redacts_authorization_and_cookie(self):
        event_dict = {"authorization": "Bearer token123", "session_cookie": "c", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["authorization"] == "REDACTED"
        assert result["session_cookie"] == "REDACTED"

    def test_case_insensitive_redaction(self):
        """Test redaction works regardless of case."""
        event_dict = {"API_KEY": "secret1", "Password": "secret2", "client_Secret": "s3"}
        result = redact_sensitive(None, None, event_dict)
        assert result["API_KEY"] == "REDACTED"
        assert result["Password"] == "REDACTED"
        assert result["client_Secret"] == "REDACTED"

    def test_preserves_non_sensitive_fields(self):
        event_dict = {"automation_id": "auto-1", "current_step": 2, "event": "progress"}
        result = redact_sensitive(None, None, event_dict)
        assert result == {"automation_id": "auto-1", "current_step": 2, "event": "progress"}


class TestCollapsePayloads:
    def test_collapses_large_screenshot(self):
        screenshot = "iVBORw0KGgo" * 100
        result = collapse_payloads(None, None, {"screenshot": screenshot, "event": "progress"})
        assert result["screenshot"] == f"<{len(screenshot)} chars>"

    def test_keeps_short_screenshot_value(self):
        value = "x" * MAX_INLINE_PAYLOAD
        result = collapse_payloads(None, None, {"screenshot": value})
        assert result["screenshot"] == value

    def test_collapses_long_action_list(self):
        actions = [{"type": "click"}] * (MAX_INLINE_ITEMS + 5)
        result = collapse_payloads(None, None, {"actions": actions})
        assert result["actions"] == f"<{MAX_INLINE_ITEMS + 5} items>"

    def test_keeps_short_list_and_other_keys(self):
        event_dict = {"messages": ["a", "b"], "tab_ids": list(range(50))}
        result = collapse_payloads(None, None, dict(event_dict))
        assert result == event_dict


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_json_output_is_redacted(self, capsys):
        configure_logging("INFO")
        logger = structlog.get_logger("test")

        logger.info("gateway_initialized", base_url="http://backend.test", token="abc")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        entry = json.loads(line)
        assert entry["event"] == "gateway_initialized"
        assert entry["level"] == "info"
        assert entry["token"] == "REDACTED"
        assert entry["component"] == "sidebar"
        assert "timestamp" in entry

    def test_binds_process_context(self, capsys):
        configure_logging("INFO", backend_url="http://backend.test")
        logger = structlog.get_logger("context")

        logger.info("sidebar_mounted", failed_loads=0)

        entry = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert entry["backend_url"] == "http://backend.test"
        assert entry["failed_loads"] == 0

    def test_console_output(self, capsys):
        configure_logging("INFO", json_output=False)
        logger = structlog.get_logger("console")

        logger.info("recording_started", tab_id="t1")

        out = capsys.readouterr().out
        assert "recording_started" in out
        assert "tab_id=t1" in out

    def test_get_logger_binds_name(self, capsys):
        configure_logging("DEBUG")
        logger = get_logger("sidebar")

        logger.debug("active_tab_changed", tab_id="t1")

        entry = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert entry["logger_name"] == "sidebar"
        assert entry["tab_id"] == "t1"

    def test_get_logger_without_name(self):
        configure_logging("INFO")
        assert get_logger() is not None
