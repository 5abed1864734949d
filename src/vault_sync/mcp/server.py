"""MCP server exposing vault sync over stdio.

Tools: ``ping`` plus the ``doc_sync*`` family from ``mcp.tools``.  The
GitHub client is created once by the lifespan and shared by every call.

Transport: stdio (JSON-RPC 2.0); stdout belongs to the protocol, so logs
go to a file and user feedback to stderr.
"""

import argparse
import asyncio
import logging
import sys
from typing import Any

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..core.async_utils import run_sync
from ..core.client import GitHubClient
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from .lifespan import server_lifespan
from .tools import SYNC_TOOLS, build_error_response, handle_sync_tool

logger = logging.getLogger(__name__)

SERVER_NAME = "vault-sync"

server = Server(SERVER_NAME)

# Set while the server is running
_github_client: GitHubClient | None = None

PING_TOOL = types.Tool(
    name="ping",
    description="Check that the configured GitHub repository is reachable",
    annotations=types.ToolAnnotations(readOnlyHint=True, openWorldHint=True),
    inputSchema={"type": "object", "properties": {}, "required": []},
)

_SYNC_TOOL_NAMES = frozenset(tool.name for tool in SYNC_TOOLS)


def get_client() -> GitHubClient:
    """Return the shared GitHubClient.

    Raises:
        RuntimeError: If the server lifespan has not started.
    """
    if _github_client is None:
        raise RuntimeError(
            "GitHubClient not initialized. Server lifespan not started."
        )
    return _github_client


def set_client(client: GitHubClient | None) -> None:
    """Install (or with None, clear) the shared GitHubClient."""
    global _github_client
    _github_client = client


async def _handle_ping(client: GitHubClient) -> types.CallToolResult:
    try:
        full_name = await run_sync(client.validate_connection)
    except Exception as e:
        logger.warning("Ping failed: %s", e)
        return build_error_response(
            "connection_error",
            f"GitHub connection failed: {e}",
            "Check GITHUB_TOKEN, VAULT_SYNC_OWNER, VAULT_SYNC_REPO.",
        )
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=f"Vault sync server connected to {full_name} "
                f"(branch {client.branch}).",
            )
        ],
        structuredContent={"repository": full_name, "branch": client.branch},
    )


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    return [PING_TOOL, *SYNC_TOOLS]


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Route a tool call to its handler; unknown names get an error result."""
    client = get_client()
    if name == PING_TOOL.name:
        return await _handle_ping(client)
    if name in _SYNC_TOOL_NAMES:
        return await handle_sync_tool(name, arguments, client)
    return build_error_response(
        "unknown_tool",
        f"Unknown tool: {name}",
        "Use list_tools to see available tools.",
    )


async def main(config_overrides: dict[str, Any] | None = None) -> None:
    """Serve MCP over stdio until the client disconnects.

    Args:
        config_overrides: Command-line values: ``token``, ``owner``,
            ``repo``, ``branch``, ``debug`` and ``log_file``.
    """
    overrides = dict(config_overrides or {})
    log_file = overrides.pop("log_file", None)

    # Before stdio_server, so nothing reaches stdout during negotiation
    setup_logging(
        mode="mcp", debug=overrides.get("debug", False), log_file=log_file
    )
    logger.info("Registered %d tools", len(SYNC_TOOLS) + 1)

    async with server_lifespan(config_overrides=overrides) as ctx:
        set_client(ctx["client"])
        init_options = InitializationOptions(
            server_name=SERVER_NAME,
            server_version=__version__,
            capabilities=server.get_capabilities(
                notification_options=NotificationOptions(),
                experimental_capabilities={},
            ),
        )
        try:
            async with mcp.server.stdio.stdio_server() as (reader, writer):
                await server.run(reader, writer, init_options)
        finally:
            set_client(None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vault-sync-mcp",
        description="MCP server that syncs a local document store with a GitHub vault",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Settings come from the command line, then GITHUB_TOKEN / "
            "VAULT_SYNC_* (a .env file is read), then .vault_sync/config.yml.\n"
            "stdout carries JSON-RPC; messages go to stderr and the log file."
        ),
    )
    parser.add_argument(
        "--token",
        help="GitHub token (visible in the process list; prefer GITHUB_TOKEN)",
    )
    parser.add_argument("--owner", help="Repository owner")
    parser.add_argument("--repo", help="Repository name")
    parser.add_argument("--branch", help="Branch to sync (default: main)")
    parser.add_argument(
        "--log-file",
        help=f"Log file path (default: $LOG_FILE or {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Log at DEBUG level"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"vault-sync-mcp {__version__}",
    )
    return parser


def overrides_from_args(args: argparse.Namespace) -> dict[str, Any]:
    """Keep only the options given on the command line."""
    overrides: dict[str, Any] = {
        key: value
        for key in ("token", "owner", "repo", "branch", "log_file")
        if (value := getattr(args, key))
    }
    if args.debug:
        overrides["debug"] = True
    return overrides


def run(argv: list[str] | None = None) -> None:
    """Console entry point for ``vault-sync-mcp``."""
    overrides = overrides_from_args(build_parser().parse_args(argv))

    shown = [k for k in overrides if k != "token"]
    if shown:
        print(f"Config overrides from CLI: {', '.join(shown)}", file=sys.stderr)

    try:
        asyncio.run(main(config_overrides=overrides))
    except RuntimeError:
        # Already reported on stderr by the lifespan
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
