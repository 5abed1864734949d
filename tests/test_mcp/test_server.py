"""Tests for tool registration and routing in the MCP server.

Handler behaviour is covered in tests/test_mcp/tools/; this file only
checks the server layer: listing, ping, routing and argument parsing.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import mcp.types as types
import pytest

from vault_sync.mcp.server import (
    PING_TOOL,
    build_parser,
    get_client,
    handle_call_tool,
    handle_list_tools,
    overrides_from_args,
    run,
    set_client,
)
from vault_sync.mcp.tools import SYNC_TOOLS


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


@pytest.fixture
def installed_client():
    client = MagicMock()
    client.validate_connection.return_value = "alice/vault"
    client.branch = "main"
    set_client(client)
    yield client
    set_client(None)


class TestListTools:
    def test_ping_and_sync_tools(self):
        tools = asyncio.run(handle_list_tools())
        assert [t.name for t in tools] == [
            "ping",
            *(t.name for t in SYNC_TOOLS),
        ]

    def test_ping_is_read_only(self):
        assert PING_TOOL.annotations.readOnlyHint is True


class TestClientAccessor:
    def test_not_initialized(self):
        set_client(None)
        with pytest.raises(RuntimeError, match="not initialized"):
            get_client()

    def test_installed(self, installed_client):
        assert get_client() is installed_client


class TestCallTool:
    async def test_ping(self, installed_client):
        result = await handle_call_tool("ping", {})
        assert not result.isError
        assert "alice/vault" in _text(result)
        assert result.structuredContent == {
            "repository": "alice/vault",
            "branch": "main",
        }

    async def test_ping_failure(self, installed_client):
        installed_client.validate_connection.side_effect = ConnectionError("down")
        result = await handle_call_tool("ping", {})
        assert result.isError
        assert "connection_error" in _text(result)
        assert "down" in _text(result)

    async def test_sync_tools_routed(self, installed_client):
        expected = types.CallToolResult(content=[])
        with patch(
            "vault_sync.mcp.server.handle_sync_tool",
            new=AsyncMock(return_value=expected),
        ) as handler:
            result = await handle_call_tool("doc_sync", {"dry_run": True})
        assert result is expected
        handler.assert_awaited_once_with(
            "doc_sync", {"dry_run": True}, installed_client
        )

    async def test_unknown_tool(self, installed_client):
        result = await handle_call_tool("doc_publish", {})
        assert result.isError
        assert "unknown_tool" in _text(result)

    async def test_requires_lifespan(self):
        set_client(None)
        with pytest.raises(RuntimeError):
            await handle_call_tool("ping", {})


class TestArguments:
    def test_only_given_options_kept(self):
        args = build_parser().parse_args(["--owner", "bob", "--debug"])
        assert overrides_from_args(args) == {"owner": "bob", "debug": True}

    def test_empty(self):
        assert overrides_from_args(build_parser().parse_args([])) == {}

    def test_log_file(self):
        args = build_parser().parse_args(["--log-file", "/tmp/x.log"])
        assert overrides_from_args(args) == {"log_file": "/tmp/x.log"}

    def test_token_not_echoed(self, capsys):
        with patch("vault_sync.mcp.server.asyncio.run") as mock_run:
            run(["--token", "ghp_secret", "--repo", "notes"])
        err = capsys.readouterr().err
        assert "ghp_secret" not in err
        assert "repo" in err
        mock_run.assert_called_once()
        mock_run.call_args.args[0].close()

    def test_startup_failure_exits_1(self):
        def _fail(coro):
            coro.close()
            raise RuntimeError("no repo")

        with patch("vault_sync.mcp.server.asyncio.run", side_effect=_fail):
            with pytest.raises(SystemExit) as exc:
                run([])
        assert exc.value.code == 1
