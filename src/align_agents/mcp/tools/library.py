"""MCP tool handlers for browsing the source library.

Defines six tools:

- ``tool_list`` -- known tools, install state and capabilities.
- ``mcp_definition_list`` -- the MCP server pool.
- ``mcp_set_list`` -- MCP sets and their members.
- ``mcp_set_activate`` -- make one set the active set.
- ``rule_list`` -- rule documents.
- ``sync_history`` -- recent audit records.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...sync.engine import SyncEngine
from ...sync.reporter import format_history
from .registry import ToolSpec

logger = logging.getLogger(__name__)

_READ_ONLY = types.ToolAnnotations(
    readOnlyHint=True,
    destructiveHint=False,
    idempotentHint=True,
    openWorldHint=False,
)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


LIBRARY_TOOLS: list[types.Tool] = [
    types.Tool(
        name="tool_list",
        description="List known AI tools with install state, config format and MCP/rules support.",
        annotations=_READ_ONLY,
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    types.Tool(
        name="mcp_definition_list",
        description="List MCP server definitions in the pool.",
        annotations=_READ_ONLY,
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    types.Tool(
        name="mcp_set_list",
        description="List MCP sets with their servers; the active set is marked.",
        annotations=_READ_ONLY,
        inputSchema={
            "type": "object",
            "properties": {
                "include_archived": {"type": "boolean", "default": False},
            },
            "required": [],
        },
    ),
    types.Tool(
        name="mcp_set_activate",
        description="Make an MCP set the active set (all other sets become inactive).",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "set_id": {"type": "string", "description": "MCP set id"},
            },
            "required": ["set_id"],
        },
    ),
    types.Tool(
        name="rule_list",
        description="List rule documents in order (archived rules hidden by default).",
        annotations=_READ_ONLY,
        inputSchema={
            "type": "object",
            "properties": {
                "include_archived": {"type": "boolean", "default": False},
                "include_content": {"type": "boolean", "default": False},
            },
            "required": [],
        },
    ),
    types.Tool(
        name="sync_history",
        description="Show recent sync runs: target, outcome counts and duration.",
        annotations=_READ_ONLY,
        inputSchema={
            "type": "object",
            "properties": {
                "limit": {"type": "integer", "default": 20, "minimum": 1, "maximum": 500},
                "target_type": {
                    "type": "string",
                    "enum": ["mcp_set", "rule", "all_mcp", "all_rules"],
                },
                "status": {"type": "string", "enum": ["success", "partial", "failed"]},
            },
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


def _text(text: str, structured: dict[str, Any]) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


async def _handle_tool_list(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    def collect() -> list[dict[str, Any]]:
        return [
            {
                "id": t.id,
                "name": t.name,
                "category": t.category,
                "format": t.format,
                "installed": engine.registry.is_installed(t.id),
                "supports_mcp": t.supports_mcp,
                "supports_rules": t.supports_rules,
                "supports_project_mcp": bool(t.project_mcp_filename),
            }
            for t in engine.registry.list()
        ]

    tools = await run_sync(collect)
    lines = [f"{len(tools)} tools:"]
    for t in tools:
        caps = [c for c, on in (("mcp", t["supports_mcp"]), ("rules", t["supports_rules"])) if on]
        state = "installed" if t["installed"] else "not installed"
        lines.append(
            f"  {t['id']} ({t['name']}, {t['format']}): {state}; "
            f"supports {', '.join(caps) or 'nothing'}"
        )
    return _text("\n".join(lines), {"tools": tools})


async def _handle_definition_list(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    definitions = await run_sync(engine.mcp_sets.list_definitions)
    lines = [f"{len(definitions)} MCP definitions:"]
    for d in definitions:
        lines.append(f"  {d.name} [{d.id}]: {d.command} {' '.join(d.args)}".rstrip())
    return _text(
        "\n".join(lines),
        {"definitions": [d.model_dump(mode="json") for d in definitions]},
    )


async def _handle_set_list(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    include_archived = bool(args.get("include_archived", False))

    def collect():
        names = {d.id: d.name for d in engine.mcp_sets.list_definitions()}
        return engine.mcp_sets.list_sets(include_archived=include_archived), names

    sets, names = await run_sync(collect)
    lines = [f"{len(sets)} MCP sets:"]
    for s in sets:
        marker = " (active)" if s.is_active else ""
        if s.is_archived:
            marker += " (archived)"
        members = [
            names.get(i.server_id, i.server_id) + (" [disabled]" if i.disabled else "")
            for i in s.items
        ]
        lines.append(f"  {s.name} [{s.id}]{marker}: {', '.join(members) or '(empty)'}")
    return _text("\n".join(lines), {"sets": [s.model_dump(mode="json") for s in sets]})


async def _handle_set_activate(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    set_id = args.get("set_id")
    if not set_id:
        raise ValueError("set_id is required")
    mcp_set = await run_sync(engine.mcp_sets.set_active, set_id)
    return _text(
        f"Active MCP set is now '{mcp_set.name}' [{mcp_set.id}]",
        {"active_set_id": mcp_set.id, "name": mcp_set.name},
    )


async def _handle_rule_list(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    include_archived = bool(args.get("include_archived", False))
    include_content = bool(args.get("include_content", False))
    rules = await run_sync(engine.rules.list, include_archived)

    lines = [f"{len(rules)} rules:"]
    for r in rules:
        archived = " (archived)" if r.is_archived else ""
        lines.append(f"  {r.order_index}. {r.name} [{r.id}]{archived}")
        if include_content:
            lines.extend(f"     {line}" for line in r.content.splitlines())
    exclude = None if include_content else {"content"}
    return _text(
        "\n".join(lines),
        {"rules": [r.model_dump(mode="json", exclude=exclude) for r in rules]},
    )


async def _handle_sync_history(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    entries = await run_sync(
        engine.history.list,
        int(args.get("limit", 20)),
        args.get("target_type"),
        args.get("status"),
    )
    return _text(
        format_history(entries),
        {"entries": [e.model_dump(mode="json") for e in entries]},
    )


# ---------------------------------------------------------------------------
# Specs
# ---------------------------------------------------------------------------

_HANDLERS = {
    "tool_list": (_handle_tool_list, False),
    "mcp_definition_list": (_handle_definition_list, False),
    "mcp_set_list": (_handle_set_list, False),
    "mcp_set_activate": (_handle_set_activate, True),
    "rule_list": (_handle_rule_list, False),
    "sync_history": (_handle_sync_history, False),
}

LIBRARY_SPECS: list[ToolSpec] = [
    ToolSpec(tool=tool, mutating=_HANDLERS[tool.name][1], handler=_HANDLERS[tool.name][0])
    for tool in LIBRARY_TOOLS
]
