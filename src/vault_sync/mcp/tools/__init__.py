"""MCP tool handlers for vault sync.

Wraps the blocking sync engine with async handlers and structured error
responses.
"""

from .errors import build_error_response, translate_sync_error
from .sync import SYNC_TOOLS, handle_sync_tool

__all__ = [
    "build_error_response",
    "translate_sync_error",
    "SYNC_TOOLS",
    "handle_sync_tool",
]
