"""Tests for the logging configuration module."""

import logging
from pathlib import Path

from discord_trello_sync.utils.logging import (
    MAX_LOGGED_VALUE_LENGTH,
    LogFormat,
    LogLevel,
    add_service_info,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    sanitize_log_value,
    secret_sanitizer,
    shorten_long_values,
    unbind_context,
)

BOT_TOKEN = "MTIzNDU2Nzg5MDEyMzQ1Njc4OQ.GfakeX.fakefakefakefakefakefakefakefake00"


class TestSanitizeLogValue:
    """Tests for sanitize_log_value function."""

    def test_sanitize_trello_request_url(self) -> None:
        """Test that Trello key and token query parameters are redacted."""
        text = "GET https://api.trello.com/1/boards/b1?key=0123abcd&token=ATTAsecret"
        result = sanitize_log_value(text)
        assert "0123abcd" not in result
        assert "ATTAsecret" not in result
        assert "/boards/b1" in result

    def test_sanitize_discord_bot_token(self) -> None:
        """Test that Discord bot tokens are redacted."""
        result = sanitize_log_value(f"login failed for {BOT_TOKEN}")
        assert BOT_TOKEN not in result
        assert "[REDACTED]" in result

    def test_sanitize_string_without_secrets(self) -> None:
        """Test that strings without secrets are unchanged."""
        text = "card_synced thread_id=333 attachments_added=2"
        assert sanitize_log_value(text) == text

    def test_sanitize_nested_dict(self) -> None:
        """Test that nested dicts are recursively sanitized."""
        data = {"event": "test", "nested": {"url": "/cards?key=abc&token=def"}}
        result = sanitize_log_value(data)
        assert "def" not in result["nested"]["url"]

    def test_sanitize_list_and_tuple(self) -> None:
        """Test that lists and tuples keep their type."""
        assert sanitize_log_value(["normal", BOT_TOKEN])[1] == "[REDACTED]"
        result = sanitize_log_value(("normal", BOT_TOKEN))
        assert isinstance(result, tuple)
        assert result[0] == "normal"

    def test_sanitize_non_string(self) -> None:
        """Test that non-strings are passed through."""
        assert sanitize_log_value(123) == 123
        assert sanitize_log_value(None) is None


class TestProcessors:
    """Tests for the structlog processors."""

    def test_sanitizer_redacts_secrets(self) -> None:
        """Test that the processor redacts secrets."""
        event_dict = {"event": "discord_connect_failed", "error": f"bad token {BOT_TOKEN}"}
        result = secret_sanitizer(None, "error", event_dict)  # type: ignore
        assert BOT_TOKEN not in result["error"]

    def test_sanitizer_preserves_non_secrets(self) -> None:
        """Test that non-secret values are preserved."""
        event_dict = {"event": "poll_tick_completed", "delivered": 3}
        result = secret_sanitizer(None, "info", event_dict)  # type: ignore
        assert result == event_dict

    def test_context_processor_adds_service(self) -> None:
        """Test that service name and version are added."""
        result = add_service_info(None, "info", {"event": "x"})  # type: ignore
        assert result["service"] == "discord-trello-sync"
        assert "version" in result

    def test_long_values_shortened(self) -> None:
        """Test that rendered descriptions do not flood the log."""
        event_dict = {"event": "card_update_failed", "desc": "x" * 20000, "attempt": 2}
        result = shorten_long_values(None, "error", event_dict)  # type: ignore
        assert result["desc"].startswith("x" * MAX_LOGGED_VALUE_LENGTH + "...")
        assert result["desc"].endswith("[18000 more chars]")
        assert result["attempt"] == 2


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_with_console_format(self) -> None:
        """Test configuration with console format."""
        configure_logging(level=LogLevel.DEBUG, log_format=LogFormat.CONSOLE)
        assert logging.getLogger().level == logging.DEBUG

    def test_configure_with_string_values(self) -> None:
        """Test configuration with string values."""
        configure_logging(level="warning", log_format="JSON")
        assert logging.getLogger().level == logging.WARNING

    def test_discord_logger_quieted(self) -> None:
        """Test that discord.py gateway chatter stays at WARNING or above."""
        configure_logging(level=LogLevel.DEBUG, log_format=LogFormat.JSON)
        assert logging.getLogger("discord").level == logging.WARNING

    def test_configure_with_file_logging(self, tmp_path: Path) -> None:
        """Test that file logging creates missing directories."""
        log_file = tmp_path / "nested" / "sync.log"
        configure_logging(
            level=LogLevel.INFO,
            log_format=LogFormat.JSON,
            file_path=log_file,
            file_enabled=True,
        )
        assert log_file.parent.exists()
        assert any(isinstance(h, logging.FileHandler) for h in logging.getLogger().handlers)


class TestContextFunctions:
    """Tests for logger and context helpers."""

    def test_get_logger(self) -> None:
        """Test that get_logger returns a logger."""
        configure_logging()
        assert get_logger("test") is not None

    def test_bind_unbind_and_clear_context(self) -> None:
        """Test binding, unbinding and clearing context."""
        import structlog

        bind_context(thread_id="333", card_id="card-1")
        unbind_context("card_id")
        assert structlog.contextvars.get_contextvars() == {"thread_id": "333"}
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}
