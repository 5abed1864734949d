"""Logging setup for the CLI and the MCP server.

The MCP server speaks JSON-RPC on stdout, so in ``mcp`` mode records only
go to a size-capped log file.  The CLI logs to stderr and, optionally, to a
file as well.

Every record carries the name of the sync profile being worked on as
``%(profile)s`` (``-`` outside a run), set with ``profile_context()``.
The context survives ``asyncio.to_thread``, so records from an MCP tool
call are tagged with the profile that call used.
"""

import contextlib
import contextvars
import json
import logging
import logging.handlers
import os
import sys
from collections.abc import Iterator

DEFAULT_MCP_LOG_FILE = "/tmp/vault-sync.log"

_DATEFMT = "%Y-%m-%d %H:%M:%S"
_MCP_MAX_BYTES = 5 * 1024 * 1024
_MCP_BACKUPS = 3
_QUIET_LOGGERS = ("urllib3", "requests", "httpx")

_active_profile: contextvars.ContextVar[str] = contextvars.ContextVar(
    "vault_sync_profile", default="-"
)


@contextlib.contextmanager
def profile_context(name: str) -> Iterator[None]:
    """Tag records logged inside the block with sync profile *name*."""
    token = _active_profile.set(name)
    try:
        yield
    finally:
        _active_profile.reset(token)


class ProfileFilter(logging.Filter):
    """Copy the active sync profile onto each record as ``profile``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.profile = _active_profile.get()
        return True


class JsonFormatter(logging.Formatter):
    """Single-line JSON formatter for structured debug output.

    Produces one JSON object per log record with fields: ts, level, logger,
    profile, msg.  Exception info is included as an "exc" field when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "profile": getattr(record, "profile", "-"),
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _make_formatter(debug_format: str, with_name: bool) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    parts = ["[%(asctime)s]", "[%(levelname)s]", "[%(profile)s]"]
    if with_name:
        parts.append("%(name)s")
    parts.append("%(message)s")
    return logging.Formatter(" ".join(parts), datefmt=_DATEFMT)


def _resolve_level(mode: str, debug: bool, level: str | None) -> int:
    if debug:
        return logging.DEBUG
    name = (
        os.getenv("LOG_LEVEL")
        or level
        or ("WARNING" if mode == "mcp" else "INFO")
    )
    return getattr(logging, name.upper(), logging.INFO)


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Configure logging based on execution mode.

    Args:
        mode: "mcp" for file logging (never stdout), "cli" for stderr logging.
        debug: If True, overrides the level to DEBUG.
        log_file: Log file path.  In MCP mode it overrides LOG_FILE; in CLI
            mode it adds a file handler next to stderr.
        debug_format: "text" (default) or "json" for structured output.
        level: Level name from the ``logging`` config section.  The
            LOG_LEVEL environment variable wins over it.

    Environment variables:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR).
                   Default: WARNING for MCP mode, INFO for CLI mode.
        LOG_FILE: Custom log file path for MCP mode.
                  Default: /tmp/vault-sync.log
    """
    log_level = _resolve_level(mode, debug, level)

    handlers: list[logging.Handler] = []
    if mode == "mcp":
        path = log_file or os.getenv("LOG_FILE", DEFAULT_MCP_LOG_FILE)
        file_handler = logging.handlers.RotatingFileHandler(
            path,
            maxBytes=_MCP_MAX_BYTES,
            backupCount=_MCP_BACKUPS,
            encoding="utf-8",
        )
        file_handler.setFormatter(_make_formatter(debug_format, with_name=True))
        handlers.append(file_handler)
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(
            _make_formatter(debug_format, with_name=False)
        )
        handlers.append(stderr_handler)
        if log_file:
            file_handler = logging.FileHandler(
                log_file, mode="a", encoding="utf-8"
            )
            file_handler.setFormatter(
                _make_formatter(debug_format, with_name=True)
            )
            handlers.append(file_handler)

    profile_filter = ProfileFilter()
    for handler in handlers:
        handler.addFilter(profile_filter)

    logging.basicConfig(level=log_level, handlers=handlers)

    if log_level != logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
