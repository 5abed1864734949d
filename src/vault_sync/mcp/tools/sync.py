"""MCP tool handlers for vault sync.

Defines four tools:

- ``doc_sync`` -- run a sync profile (pull, push or both; optional dry-run).
- ``doc_sync_status`` -- checkpoint and document counts for a profile.
- ``doc_sync_audit`` -- find (and optionally repair) duplicated paths.
- ``doc_sync_diagnose`` -- metadata health report, optional error reset.

MCP runs are unattended: an ``interactive`` conflict strategy falls back to
markers, and deletions are only applied when ``confirm_deletions`` is set
in the call or the profile.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...config_loader import load_hierarchical_config
from ...config_schema import SyncProfileConfig, UnifiedConfig, build_config
from ...core.async_utils import profile_lock, run_sync
from ...core.client import GitHubClient
from ...errors import VaultSyncError
from ...logger import profile_context
from ...sync.auditor import DuplicateAuditor, sync_status
from ...sync.engine import SyncEngine, build_adapters
from ...sync.models import SyncDirection, SyncMode
from ...sync.reporter import (
    format_duplicates,
    format_sync_report,
    report_to_json,
)
from ...sync.resolver import AutoConfirm, create_decider
from .errors import build_error_response, translate_sync_error

logger = logging.getLogger(__name__)

_PROFILE_PROPERTY = {
    "type": "string",
    "description": "Name of sync profile from config (defaults to the first profile)",
}


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="doc_sync",
        description=(
            "Synchronize the local document store with the GitHub vault "
            "using a named sync profile. Detects conflicts and resolves "
            "them with the chosen decision."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "profile": _PROFILE_PROPERTY,
                "direction": {
                    "type": "string",
                    "enum": ["bidirectional", "pull", "push"],
                    "description": "Which way changes flow. Defaults to the profile direction.",
                },
                "full": {
                    "type": "boolean",
                    "default": False,
                    "description": "Scan every file instead of recent history",
                },
                "dry_run": {
                    "type": "boolean",
                    "default": False,
                    "description": "Preview changes without applying them",
                },
                "conflict_decision": {
                    "type": "string",
                    "enum": ["markers", "local-wins", "remote-wins", "abort"],
                    "description": (
                        "How to resolve conflicts. Defaults to the profile "
                        "strategy (markers when that is interactive)."
                    ),
                },
                "confirm_deletions": {
                    "type": "boolean",
                    "description": "Apply trash/delete actions without asking",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="doc_sync_status",
        description=(
            "Show sync state for a profile -- last checkpoint, managed "
            "documents, pending pushes and sync errors."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {"profile": _PROFILE_PROPERTY},
            "required": [],
        },
    ),
    types.Tool(
        name="doc_sync_audit",
        description=(
            "Find documents that claim the same remote path. With "
            "repair=true, keep one document per path and trash the rest."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "profile": _PROFILE_PROPERTY,
                "repair": {
                    "type": "boolean",
                    "default": False,
                    "description": "Collapse duplicates onto one keeper",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="doc_sync_diagnose",
        description=(
            "Classify managed documents by metadata health (missing path "
            "or hash, legacy format, unresolved conflicts, sync errors)."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "profile": _PROFILE_PROPERTY,
                "clear_errors": {
                    "type": "boolean",
                    "default": False,
                    "description": "Remove the sync-error tag so failed pushes are retried",
                },
            },
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Tool handler
# ---------------------------------------------------------------------------


async def handle_sync_tool(
    name: str,
    arguments: dict[str, Any] | None,
    client: GitHubClient,
) -> types.CallToolResult:
    """Dispatch and execute a sync tool.

    Args:
        name: Tool name (``doc_sync``, ``doc_sync_status``,
            ``doc_sync_audit`` or ``doc_sync_diagnose``).
        arguments: Tool arguments dict.
        client: Pre-configured GitHubClient instance.

    Returns:
        ``CallToolResult`` with tool output or error details.
    """
    args = arguments or {}

    try:
        unified = _load_unified_config()
        try:
            profile_name, profile = unified.profile(args.get("profile"))
        except KeyError:
            return build_error_response(
                "not_found",
                f"Sync profile '{args.get('profile')}' not found.",
                f"Available profiles: {list(unified.sync.keys())}. "
                "Check the sync section of .vault_sync/config.yml.",
            )

        with profile_context(profile_name):
            async with profile_lock(profile_name):
                return await _dispatch(name, args, client, profile_name, profile)

    except ValueError as exc:
        return build_error_response(
            "validation_error",
            str(exc),
            "Check parameter values and retry.",
        )
    except VaultSyncError as exc:
        logger.error("Sync tool %s failed: %s", name, exc)
        return translate_sync_error(exc)
    except Exception as exc:
        logger.exception("Sync tool error: %s", exc)
        return build_error_response(
            "server_error",
            str(exc),
            "Check sync profile configuration and GitHub connectivity.",
        )


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _dispatch(
    name: str,
    args: dict[str, Any],
    client: GitHubClient,
    profile_name: str,
    profile: SyncProfileConfig,
) -> types.CallToolResult:
    match name:
        case "doc_sync":
            return await _handle_doc_sync(args, client, profile_name, profile)
        case "doc_sync_status":
            return await _handle_doc_sync_status(client, profile_name, profile)
        case "doc_sync_audit":
            return await _handle_doc_sync_audit(args, client, profile)
        case "doc_sync_diagnose":
            return await _handle_doc_sync_diagnose(args, client, profile)
        case _:
            raise ValueError(f"Unknown sync tool: {name}")


def _load_unified_config() -> UnifiedConfig:
    """Load the unified config from the hierarchical config system."""
    raw = load_hierarchical_config()
    return build_config(raw)


async def _handle_doc_sync(
    args: dict[str, Any],
    client: GitHubClient,
    profile_name: str,
    profile: SyncProfileConfig,
) -> types.CallToolResult:
    """Handle the ``doc_sync`` tool."""
    direction = SyncDirection(args.get("direction") or profile.direction)
    mode = SyncMode.FULL if args.get("full") else SyncMode(profile.mode)
    dry_run = bool(args.get("dry_run", False))

    strategy = args.get("conflict_decision") or profile.conflict_strategy
    if strategy == "interactive":
        strategy = "markers"
    confirm_deletions = args.get("confirm_deletions")
    if confirm_deletions is None:
        confirm_deletions = profile.confirm_deletions

    engine = SyncEngine.from_profile(
        client,
        profile,
        profile_name,
        decide=create_decider(strategy),
        confirm=AutoConfirm(bool(confirm_deletions)),
    )
    report = await run_sync(engine.run, direction, mode, dry_run)

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_sync_report(report))],
        structuredContent=report_to_json(report),
    )


async def _handle_doc_sync_status(
    client: GitHubClient,
    profile_name: str,
    profile: SyncProfileConfig,
) -> types.CallToolResult:
    """Handle the ``doc_sync_status`` tool."""
    local, _, checkpoints = build_adapters(client, profile)
    status = await run_sync(sync_status, local, checkpoints, profile_name)

    lines = [
        f"Sync status for '{profile_name}'",
        f"  Direction:        {profile.direction}",
        f"  Remote root:      {profile.root or '/'}",
        f"  Last checkpoint:  {status['checkpoint'] or 'never'}",
        f"  Managed docs:     {status['managed_documents']}",
        f"  Unmapped docs:    {status['unmapped_documents']}",
        f"  Needs push:       {status['needs_push']}",
        f"  Sync errors:      {status['sync_errors']}",
    ]

    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent={
            **status,
            "direction": profile.direction,
            "root": profile.root,
        },
    )


async def _handle_doc_sync_audit(
    args: dict[str, Any],
    client: GitHubClient,
    profile: SyncProfileConfig,
) -> types.CallToolResult:
    """Handle the ``doc_sync_audit`` tool."""
    local, remote, _ = build_adapters(client, profile)
    auditor = DuplicateAuditor(local, remote)
    repair = bool(args.get("repair", False))
    groups = await run_sync(
        auditor.repair if repair else auditor.find_duplicates
    )

    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text", text=format_duplicates(groups, repaired=repair)
            )
        ],
        structuredContent={
            "repaired": repair,
            "duplicates": [g.model_dump() for g in groups],
        },
    )


async def _handle_doc_sync_diagnose(
    args: dict[str, Any],
    client: GitHubClient,
    profile: SyncProfileConfig,
) -> types.CallToolResult:
    """Handle the ``doc_sync_diagnose`` tool."""
    local, _, _ = build_adapters(client, profile)
    auditor = DuplicateAuditor(local)

    cleared = None
    if args.get("clear_errors"):
        cleared = await run_sync(auditor.clear_errors)
    diagnosis = await run_sync(auditor.diagnose)

    text = diagnosis.summary()
    if cleared is not None:
        text += f"\n\nCleared sync errors on {cleared} documents."

    structured: dict[str, Any] = diagnosis.model_dump()
    if cleared is not None:
        structured["cleared_errors"] = cleared

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )
