"""Tests for mcp/tools/errors.py -- error response builders.

Covers:
- build_error_response() structure and format
- translate_sync_error() mapping of the sync error taxonomy
"""

import mcp.types as types
import pytest

from vault_sync.errors import (
    ConflictError,
    HistoryUnavailableError,
    MalformedMetadataError,
    NotFoundError,
    TransportError,
)
from vault_sync.mcp.tools.errors import build_error_response, translate_sync_error


def _get_error_text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


class TestBuildErrorResponse:
    def test_is_error(self):
        result = build_error_response("not_found", "missing", "look elsewhere")
        assert result.isError is True
        assert len(result.content) == 1

    def test_format(self):
        result = build_error_response(
            "validation_error", "bad direction", "Use pull, push or bidirectional."
        )
        assert _get_error_text(result) == (
            "Error (validation_error): bad direction\n\n"
            "Action: Use pull, push or bidirectional."
        )


class TestTranslateSyncError:
    @pytest.mark.parametrize(
        "error,error_type,action_hint",
        [
            (NotFoundError("notes/a.md"), "not_found", "owner, name and branch"),
            (ConflictError("notes/a.md", "abc"), "version_conflict", "Retry doc_sync"),
            (TransportError("HTTP 401", 401), "permission_denied", "GITHUB_TOKEN"),
            (TransportError("HTTP 403", 403), "permission_denied", "contents:write"),
            (TransportError("HTTP 502", 502), "transport_error", "connectivity"),
            (TransportError("timed out"), "transport_error", "connectivity"),
            (HistoryUnavailableError("no history"), "server_error", "full=true"),
            (MalformedMetadataError("bad line"), "server_error", "doc_sync_diagnose"),
        ],
    )
    def test_mapping(self, error, error_type, action_hint):
        text = _get_error_text(translate_sync_error(error))
        assert text.startswith(f"Error ({error_type}): ")
        assert str(error) in text
        assert action_hint in text

    def test_always_error_result(self):
        assert translate_sync_error(NotFoundError("x")).isError is True
