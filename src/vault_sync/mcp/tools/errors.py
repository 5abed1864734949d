"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so AI agents can
recover without human intervention.
"""

import mcp.types as types

from ...errors import (
    ConflictError,
    HistoryUnavailableError,
    NotFoundError,
    TransportError,
    VaultSyncError,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, version_conflict,
            validation_error, permission_denied, transport_error,
            connection_error, unknown_tool, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Profile 'x' not found", "Use doc_sync_status to list profiles.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_sync_error(error: VaultSyncError) -> types.CallToolResult:
    """Translate a sync error that escaped the engine into a tool error.

    Args:
        error: The exception raised by the sync layer.

    Returns:
        CallToolResult with isError=True and corrective action
    """
    match error:
        case NotFoundError():
            return build_error_response(
                "not_found",
                str(error),
                "Check the repository owner, name and branch in the github config section.",
            )
        case ConflictError():
            return build_error_response(
                "version_conflict",
                str(error),
                "The remote file changed during the run. Retry doc_sync.",
            )
        case TransportError(status_code=401 | 403):
            return build_error_response(
                "permission_denied",
                str(error),
                "Check that GITHUB_TOKEN is valid and has contents:write access.",
            )
        case TransportError():
            return build_error_response(
                "transport_error",
                str(error),
                "Check network connectivity and GitHub status, then retry.",
            )
        case HistoryUnavailableError():
            return build_error_response(
                "server_error",
                str(error),
                "Retry doc_sync with full=true.",
            )
        case _:
            return build_error_response(
                "server_error",
                str(error),
                "Retry later or run doc_sync_diagnose.",
            )
