"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so AI agents can
recover from errors without human intervention.
"""

import mcp.types as types

from ...sync.errors import SyncError, TransportError


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, transport, conflict, mapping, configuration, store, validation_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Task task-9 not found", "Use sync_status to list mapped tasks.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


# ---------------------------------------------------------------------------
# Corrective action messages per error kind
# ---------------------------------------------------------------------------

_KIND_ACTIONS: dict[str, str] = {
    "not_found": "Use sync_status to list mapped tasks, or check the task id and issue key.",
    "conflict": "Run task_sync to resolve the conflict, or retry with force=true.",
    "mapping": "Use task_unlink to retire the existing mapping first.",
    "configuration": "Fix the configuration file (.backlog-jira/config.yml) and restart the server.",
    "store": "Check that the sync state directory exists and is writable.",
    "sync_error": "Check the task file and retry.",
}


def translate_sync_error(error: SyncError) -> types.CallToolResult:
    """Translate a ``SyncError`` into a structured error response.

    Retryable transport errors suggest a retry; the rest point at the
    Jira credentials and permissions.
    """
    if isinstance(error, TransportError):
        action = (
            "Retry later; Jira is unreachable or overloaded."
            if error.retryable
            else "Check JIRA_URL, JIRA_EMAIL, JIRA_API_TOKEN and Jira permissions."
        )
    else:
        action = _KIND_ACTIONS.get(error.kind, _KIND_ACTIONS["sync_error"])
    return build_error_response(error.kind, str(error), action)
