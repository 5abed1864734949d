"""Tests for logger.py -- setup_logging(), profile tagging and JsonFormatter.

Strategy: Mock logging.basicConfig to verify setup_logging passes correct args,
since pytest's log capture plugin interferes with actual basicConfig calls.
"""

import asyncio
import json
import logging
import logging.handlers
import sys
from unittest.mock import patch

from vault_sync.logger import (
    DEFAULT_MCP_LOG_FILE,
    JsonFormatter,
    ProfileFilter,
    profile_context,
    setup_logging,
)


def _record(msg="Hello %s", args=("world",), exc_info=None, level=logging.INFO):
    return logging.LogRecord(
        name="vault_sync.sync.engine",
        level=level,
        pathname="engine.py",
        lineno=1,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


def _handlers(mock_basic):
    return mock_basic.call_args[1]["handlers"]


def _close(handlers):
    for h in handlers:
        h.close()


# ---------------------------------------------------------------------------
# setup_logging tests
# ---------------------------------------------------------------------------


class TestSetupLogging:
    """Tests for setup_logging()."""

    @patch("vault_sync.logger.logging.basicConfig")
    def test_cli_mode_logs_to_stderr(self, mock_basic):
        setup_logging(mode="cli")

        mock_basic.assert_called_once()
        handlers = _handlers(mock_basic)
        assert len(handlers) == 1
        assert handlers[0].stream is sys.stderr

    @patch("vault_sync.logger.logging.basicConfig")
    def test_mcp_mode_logs_to_rotating_file(self, mock_basic, tmp_path):
        log_file = str(tmp_path / "mcp.log")
        setup_logging(mode="mcp", log_file=log_file)

        handlers = _handlers(mock_basic)
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.handlers.RotatingFileHandler)
        assert handlers[0].baseFilename == log_file
        _close(handlers)

    @patch("vault_sync.logger.logging.basicConfig")
    def test_mcp_mode_never_uses_stderr(self, mock_basic, tmp_path):
        setup_logging(mode="mcp", log_file=str(tmp_path / "mcp.log"))
        handlers = _handlers(mock_basic)
        assert not any(
            getattr(h, "stream", None) in (sys.stdout, sys.stderr)
            for h in handlers
        )
        _close(handlers)

    @patch("vault_sync.logger.logging.basicConfig")
    def test_mcp_mode_log_file_from_env(self, mock_basic, tmp_path, monkeypatch):
        log_file = str(tmp_path / "env.log")
        monkeypatch.setenv("LOG_FILE", log_file)
        setup_logging(mode="mcp")

        handlers = _handlers(mock_basic)
        assert handlers[0].baseFilename == log_file
        _close(handlers)

    def test_default_mcp_log_file(self):
        assert DEFAULT_MCP_LOG_FILE == "/tmp/vault-sync.log"

    @patch("vault_sync.logger.logging.basicConfig")
    def test_cli_mode_with_log_file(self, mock_basic, tmp_path):
        setup_logging(mode="cli", log_file=str(tmp_path / "cli.log"))

        handlers = _handlers(mock_basic)
        file_handlers = [h for h in handlers if isinstance(h, logging.FileHandler)]
        assert len(handlers) == 2
        assert len(file_handlers) == 1
        _close(file_handlers)

    @patch("vault_sync.logger.logging.basicConfig")
    def test_every_handler_tags_profile(self, mock_basic, tmp_path):
        setup_logging(mode="cli", log_file=str(tmp_path / "cli.log"))

        handlers = _handlers(mock_basic)
        for h in handlers:
            assert any(isinstance(f, ProfileFilter) for f in h.filters)
        _close(handlers[1:])

    @patch("vault_sync.logger.logging.basicConfig")
    def test_debug_overrides_level(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(mode="cli", debug=True)
        assert mock_basic.call_args[1]["level"] == logging.DEBUG

    @patch("vault_sync.logger.logging.basicConfig")
    def test_env_beats_config_level(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")
        setup_logging(mode="cli", level="DEBUG")
        assert mock_basic.call_args[1]["level"] == logging.ERROR

    @patch("vault_sync.logger.logging.basicConfig")
    def test_config_level_used(self, mock_basic, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging(mode="cli", level="warning")
        assert mock_basic.call_args[1]["level"] == logging.WARNING

    @patch("vault_sync.logger.logging.basicConfig")
    def test_mode_default_levels(self, mock_basic, monkeypatch, tmp_path):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging(mode="cli")
        assert mock_basic.call_args[1]["level"] == logging.INFO

        setup_logging(mode="mcp", log_file=str(tmp_path / "mcp.log"))
        assert mock_basic.call_args[1]["level"] == logging.WARNING
        _close(_handlers(mock_basic))

    @patch("vault_sync.logger.logging.basicConfig")
    def test_json_format(self, mock_basic):
        setup_logging(mode="cli", debug_format="json")
        assert isinstance(_handlers(mock_basic)[0].formatter, JsonFormatter)

    @patch("vault_sync.logger.logging.basicConfig")
    def test_third_party_silenced(self, _mock_basic):
        setup_logging(mode="cli")
        for name in ("urllib3", "requests", "httpx"):
            assert logging.getLogger(name).level == logging.WARNING


# ---------------------------------------------------------------------------
# Profile tagging
# ---------------------------------------------------------------------------


class TestProfileContext:
    def test_default_dash(self):
        record = _record()
        ProfileFilter().filter(record)
        assert record.profile == "-"

    def test_inside_context(self):
        record = _record()
        with profile_context("vault"):
            ProfileFilter().filter(record)
        assert record.profile == "vault"

    def test_reset_after_context(self):
        with profile_context("vault"):
            pass
        record = _record()
        ProfileFilter().filter(record)
        assert record.profile == "-"

    def test_survives_worker_thread(self):
        def tag():
            record = _record()
            ProfileFilter().filter(record)
            return record.profile

        async def call():
            with profile_context("journal"):
                return await asyncio.to_thread(tag)

        assert asyncio.run(call()) == "journal"

    def test_text_format_includes_profile(self):
        from vault_sync.logger import _make_formatter

        record = _record()
        with profile_context("vault"):
            ProfileFilter().filter(record)
        text = _make_formatter("text", with_name=True).format(record)
        assert "[vault] vault_sync.sync.engine Hello world" in text


# ---------------------------------------------------------------------------
# JsonFormatter tests
# ---------------------------------------------------------------------------


class TestJsonFormatter:
    def test_basic_output(self):
        record = _record()
        record.profile = "vault"
        data = json.loads(JsonFormatter().format(record))

        assert "ts" in data
        assert data["level"] == "INFO"
        assert data["logger"] == "vault_sync.sync.engine"
        assert data["profile"] == "vault"
        assert data["msg"] == "Hello world"

    def test_profile_missing_defaults(self):
        data = json.loads(JsonFormatter().format(_record()))
        assert data["profile"] == "-"

    def test_includes_exception_on_one_line(self):
        try:
            raise ValueError("test error")
        except ValueError:
            exc_info = sys.exc_info()

        output = JsonFormatter().format(
            _record("failed", (), exc_info, logging.ERROR)
        )

        assert "\n" not in output
        data = json.loads(output)
        assert "ValueError" in data["exc"]
        assert "test error" in data["exc"]
