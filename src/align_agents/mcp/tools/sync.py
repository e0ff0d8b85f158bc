"""MCP tool handlers for configuration sync.

Defines four tools:

- ``mcp_sync`` -- write an MCP set into one tool's config.
- ``rules_sync`` -- write a rule into one tool's rules document.
- ``fleet_sync`` -- propagate an MCP set or a rule to every installed tool.
- ``sync_status`` -- per-tool targets, drift and last sync time.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...file_handler import read_text_if_exists
from ...sync.engine import SyncEngine
from ...sync.mapper import TargetKind
from ...sync.reporter import format_sync_results, results_to_json
from .errors import build_error_response, format_timestamp
from .registry import ToolSpec

logger = logging.getLogger(__name__)

_SCOPE_PROPERTIES: dict[str, Any] = {
    "project_root": {
        "type": "string",
        "description": (
            "Project directory (absolute path). When given, the project-scoped "
            "file is written instead of the global one."
        ),
    },
    "target_path": {
        "type": "string",
        "description": "Explicit config file to write; overrides scope resolution.",
    },
}


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="mcp_sync",
        description=(
            "Write the servers of an MCP set into one tool's config file "
            "(JSON mcpServers or TOML mcp_servers). Other settings in the "
            "file are preserved."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "tool_id": {"type": "string", "description": "Tool id from tool_list"},
                "set_id": {"type": "string", "description": "MCP set id from mcp_set_list"},
                "servers": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Server names to write (default: all in the set)",
                },
                "strategy": {
                    "type": "string",
                    "enum": ["overwrite", "append", "deep-merge"],
                    "default": "overwrite",
                },
                **_SCOPE_PROPERTIES,
            },
            "required": ["tool_id", "set_id"],
        },
    ),
    types.Tool(
        name="rules_sync",
        description=(
            "Write a rule document into one tool's rules file (AGENTS.md, "
            "CLAUDE.md, .cursorrules ...). smart-update only replaces the "
            "managed block between align-agents markers."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "tool_id": {"type": "string", "description": "Tool id from tool_list"},
                "rule_id": {"type": "string", "description": "Rule id from rule_list"},
                "strategy": {
                    "type": "string",
                    "enum": ["overwrite", "append", "smart-update"],
                    "default": "overwrite",
                },
                **_SCOPE_PROPERTIES,
            },
            "required": ["tool_id", "rule_id"],
        },
    ),
    types.Tool(
        name="fleet_sync",
        description=(
            "Propagate an MCP set or a rule to every installed, enabled tool. "
            "Each tool succeeds or fails independently; the run is recorded "
            "in sync history."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "kind": {"type": "string", "enum": ["mcp", "rules"]},
                "source_id": {
                    "type": "string",
                    "description": "MCP set id (kind=mcp) or rule id (kind=rules)",
                },
                "strategy": {"type": "string", "default": "overwrite"},
                "tools": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Restrict to these tool ids (default: all)",
                },
                "project_root": _SCOPE_PROPERTIES["project_root"],
            },
            "required": ["kind", "source_id"],
        },
    ),
    types.Tool(
        name="sync_status",
        description=(
            "Show, per tool, whether it is installed, its resolved MCP and "
            "rules targets, when each was last synced, and whether it has "
            "drifted since."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "tool_id": {"type": "string", "description": "Limit to one tool"},
            },
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


def _require(args: dict[str, Any], key: str) -> str:
    value = args.get(key)
    if not value or not str(value).strip():
        raise ValueError(f"{key} is required")
    return str(value)


def _result_response(results, title: str) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_sync_results(results, title))],
        structuredContent=results_to_json(results),
    )


async def _handle_mcp_sync(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``mcp_sync`` tool."""
    tool_id = _require(args, "tool_id")
    set_id = _require(args, "set_id")
    result = await run_sync(
        engine.sync_tool_mcp,
        tool_id,
        set_id,
        args.get("strategy", "overwrite"),
        selected_names=args.get("servers"),
        path=args.get("target_path"),
        project_root=args.get("project_root"),
    )
    return _result_response([result], "MCP sync")


async def _handle_rules_sync(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``rules_sync`` tool."""
    tool_id = _require(args, "tool_id")
    rule_id = _require(args, "rule_id")
    result = await run_sync(
        engine.sync_tool_rules,
        tool_id,
        rule_id,
        args.get("strategy", "overwrite"),
        project_root=args.get("project_root"),
        path=args.get("target_path"),
    )
    return _result_response([result], "Rules sync")


async def _handle_fleet_sync(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``fleet_sync`` tool."""
    kind = args.get("kind")
    strategy = args.get("strategy", "overwrite")
    tools = args.get("tools")

    match kind:
        case "mcp":
            results = await run_sync(
                engine.sync_fleet_mcp, args.get("source_id"), tools, strategy
            )
            return _result_response(results, "Fleet MCP sync")
        case "rules":
            results = await run_sync(
                engine.sync_fleet_rules,
                args.get("project_root"),
                strategy,
                args.get("source_id"),
                tools,
            )
            return _result_response(results, "Fleet rules sync")
        case _:
            return build_error_response(
                "validation_error",
                f"kind must be 'mcp' or 'rules', got {kind!r}",
                "Retry with kind='mcp' and an MCP set id, or kind='rules' and a rule id.",
            )


def _target_status(engine: SyncEngine, tool_id: str, kind: TargetKind) -> dict[str, Any]:
    """Resolved global target of *kind* for *tool_id* with state/drift info."""
    try:
        path = engine.resolver.resolve(tool_id, kind)
    except Exception as exc:
        return {"target": None, "note": str(exc)}
    entry = engine.state.get(path)
    current = read_text_if_exists(path)
    drifted = (
        entry is not None
        and current is not None
        and entry.last_sync_hash != engine.state.content_hash(current)
    )
    return {
        "target": str(path),
        "exists": current is not None,
        "last_synced": entry.synced_at if entry else None,
        "drifted": drifted,
    }


def _collect_status(engine: SyncEngine, tool_id: str | None) -> list[dict[str, Any]]:
    tools = [engine.registry.require(tool_id)] if tool_id else engine.registry.list()
    rows = []
    for tool in tools:
        config = engine.sync_configs.get(tool.id)
        row: dict[str, Any] = {
            "tool_id": tool.id,
            "name": tool.name,
            "installed": engine.registry.is_installed(tool.id),
            "enabled": config.enabled,
        }
        if tool.supports_mcp:
            row["mcp"] = _target_status(engine, tool.id, TargetKind.MCP)
        if tool.supports_rules:
            row["rules"] = _target_status(engine, tool.id, TargetKind.RULES)
            row["rules_source_id"] = config.rules_source_id
        rows.append(row)
    return rows


async def _handle_sync_status(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``sync_status`` tool."""
    rows = await run_sync(_collect_status, engine, args.get("tool_id"))

    lines = ["Sync status"]
    for row in rows:
        flags = "installed" if row["installed"] else "not installed"
        if not row["enabled"]:
            flags += ", disabled"
        lines.append(f"  {row['name']} ({row['tool_id']}): {flags}")
        for kind in ("mcp", "rules"):
            info = row.get(kind)
            if info is None:
                continue
            if info["target"] is None:
                lines.append(f"    {kind}: {info['note']}")
                continue
            drift = " DRIFTED" if info["drifted"] else ""
            lines.append(
                f"    {kind}: {info['target']} "
                f"(last sync {format_timestamp(info['last_synced'])}){drift}"
            )

    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent={"tools": rows},
    )


# ---------------------------------------------------------------------------
# Specs
# ---------------------------------------------------------------------------

_HANDLERS = {
    "mcp_sync": (_handle_mcp_sync, True),
    "rules_sync": (_handle_rules_sync, True),
    "fleet_sync": (_handle_fleet_sync, True),
    "sync_status": (_handle_sync_status, False),
}

SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(tool=tool, mutating=_HANDLERS[tool.name][1], handler=_HANDLERS[tool.name][0])
    for tool in SYNC_TOOLS
]
