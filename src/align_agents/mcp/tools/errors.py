"""Error response builders and shared utilities for MCP tool handlers.

Every engine failure reaches the agent as a ``CallToolResult`` with
``isError=True`` plus a corrective action it can follow without human
help.
"""

from datetime import datetime

import mcp.types as types

from ...errors import (
    AlignAgentsError,
    ConflictError,
    FormatError,
    NotFoundError,
    ValidationError,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, validation_error, format_error, conflict, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "MCP set not found: 42", "Use mcp_set_list to find set ids.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def format_timestamp(value: str | None) -> str:
    """Render an ISO 8601 timestamp as ``YYYY-MM-DD HH:MM`` (UTC as stored)."""
    if not value:
        return "-"
    try:
        return datetime.fromisoformat(value).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return value


# ---------------------------------------------------------------------------
# Domain-specific corrective action messages
# ---------------------------------------------------------------------------

_DOMAIN_MESSAGES: dict[str, dict[str, str]] = {
    "mcp": {
        "not_found": "Use mcp_set_list to find set ids and tool_list to find tool ids.",
        "validation": "Pass set_id, and either tool_id with scope or project_root. Check tool_list for supported scopes.",
        "format": "Fix the syntax of the target config file (or remove it) and retry.",
        "conflict": "Activate another MCP set with mcp_set_activate first.",
    },
    "rules": {
        "not_found": "Use rule_list to find rule ids and tool_list to find tool ids.",
        "validation": "Pass rule_id and a strategy of overwrite, append or smart-update.",
        "format": "Fix the target rules file encoding and retry.",
        "conflict": "Retry the operation.",
    },
    "library": {
        "not_found": "List the collection first (mcp_set_list, mcp_definition_list, rule_list).",
        "validation": "Check parameter values and retry.",
        "format": "Check parameter values and retry.",
        "conflict": "Activate another MCP set with mcp_set_activate first.",
    },
}


def translate_engine_error(
    error: AlignAgentsError, domain: str
) -> types.CallToolResult:
    """Translate an engine exception into a structured error response.

    Args:
        error: Exception raised by the engine or the store.
        domain: Tool domain ("mcp", "rules", "library").

    Returns:
        CallToolResult with isError=True and corrective action
    """
    msgs = _DOMAIN_MESSAGES.get(domain, _DOMAIN_MESSAGES["library"])

    match error:
        case NotFoundError():
            return build_error_response("not_found", error.message, msgs["not_found"])
        case ValidationError():
            return build_error_response(
                "validation_error", error.message, msgs["validation"]
            )
        case FormatError():
            return build_error_response("format_error", error.message, msgs["format"])
        case ConflictError():
            return build_error_response("conflict", error.message, msgs["conflict"])
        case _:
            return build_error_response(
                "server_error", error.message, "Check the server log and retry."
            )
