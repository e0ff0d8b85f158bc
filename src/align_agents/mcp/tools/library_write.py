"""MCP tool handlers that edit the source library.

Every tool here is mutating and is hidden in read-only mode:

- ``mcp_definition_create`` / ``_update`` / ``_delete`` -- the server pool.
- ``mcp_set_create`` / ``_update`` / ``_delete`` -- named server sets.
- ``rule_create`` / ``_update`` / ``_delete`` / ``_restore`` / ``_reorder``
  -- rule documents (delete archives).
- ``sync_config_update`` -- per-tool fleet sync preferences.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...errors import NotFoundError
from ...sync.engine import SyncEngine
from .registry import ToolSpec

logger = logging.getLogger(__name__)

_EDIT = types.ToolAnnotations(
    readOnlyHint=False,
    destructiveHint=False,
    idempotentHint=False,
    openWorldHint=False,
)

_DELETE = types.ToolAnnotations(
    readOnlyHint=False,
    destructiveHint=True,
    idempotentHint=False,
    openWorldHint=False,
)

_DEFINITION_PROPERTIES: dict[str, Any] = {
    "name": {"type": "string", "description": "Server name written into tool configs"},
    "command": {"type": "string", "description": "Executable to launch"},
    "args": {"type": "array", "items": {"type": "string"}},
    "env": {"type": "object", "additionalProperties": {"type": "string"}},
    "description": {"type": "string"},
    "cwd": {"type": "string"},
}

_SET_ITEMS: dict[str, Any] = {
    "type": "array",
    "description": (
        "Definition ids in order; an entry may also be "
        "{server_id, disabled} to keep a server in the set but not sync it."
    ),
    "items": {
        "anyOf": [
            {"type": "string"},
            {
                "type": "object",
                "properties": {
                    "server_id": {"type": "string"},
                    "disabled": {"type": "boolean"},
                },
                "required": ["server_id"],
            },
        ]
    },
}


def _id_schema(key: str, description: str) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {key: {"type": "string", "description": description}},
        "required": [key],
    }


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


LIBRARY_WRITE_TOOLS: list[types.Tool] = [
    types.Tool(
        name="mcp_definition_create",
        description="Add an MCP server definition to the pool.",
        annotations=_EDIT,
        inputSchema={
            "type": "object",
            "properties": _DEFINITION_PROPERTIES,
            "required": ["name", "command"],
        },
    ),
    types.Tool(
        name="mcp_definition_update",
        description=(
            "Change fields of an MCP server definition. Only the fields given "
            "are changed; args=null clears the arguments."
        ),
        annotations=_EDIT,
        inputSchema={
            "type": "object",
            "properties": {
                "definition_id": {"type": "string"},
                **_DEFINITION_PROPERTIES,
            },
            "required": ["definition_id"],
        },
    ),
    types.Tool(
        name="mcp_definition_delete",
        description="Delete an MCP server definition and remove it from every set.",
        annotations=_DELETE,
        inputSchema=_id_schema("definition_id", "Definition id from mcp_definition_list"),
    ),
    types.Tool(
        name="mcp_set_create",
        description="Create an MCP set. The first set ever created becomes active.",
        annotations=_EDIT,
        inputSchema={
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "description": {"type": "string"},
                "items": _SET_ITEMS,
            },
            "required": ["name"],
        },
    ),
    types.Tool(
        name="mcp_set_update",
        description=(
            "Rename an MCP set, change its description, replace its items, "
            "or archive/unarchive it. The active set cannot be archived."
        ),
        annotations=_EDIT,
        inputSchema={
            "type": "object",
            "properties": {
                "set_id": {"type": "string"},
                "name": {"type": "string"},
                "description": {"type": "string"},
                "items": _SET_ITEMS,
                "archived": {"type": "boolean"},
            },
            "required": ["set_id"],
        },
    ),
    types.Tool(
        name="mcp_set_delete",
        description="Delete an MCP set. The active set cannot be deleted.",
        annotations=_DELETE,
        inputSchema=_id_schema("set_id", "MCP set id from mcp_set_list"),
    ),
    types.Tool(
        name="rule_create",
        description="Create a rule document at the end of the rule order.",
        annotations=_EDIT,
        inputSchema={
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "content": {"type": "string", "description": "Markdown rules text"},
            },
            "required": ["name"],
        },
    ),
    types.Tool(
        name="rule_update",
        description="Rename a rule or replace its content.",
        annotations=_EDIT,
        inputSchema={
            "type": "object",
            "properties": {
                "rule_id": {"type": "string"},
                "name": {"type": "string"},
                "content": {"type": "string"},
            },
            "required": ["rule_id"],
        },
    ),
    types.Tool(
        name="rule_delete",
        description="Archive a rule. Its content is kept and rule_restore brings it back.",
        annotations=_DELETE,
        inputSchema=_id_schema("rule_id", "Rule id from rule_list"),
    ),
    types.Tool(
        name="rule_restore",
        description="Bring an archived rule back into the rule list.",
        annotations=_EDIT,
        inputSchema=_id_schema("rule_id", "Rule id from rule_list include_archived=true"),
    ),
    types.Tool(
        name="rule_reorder",
        description="Set the rule order. Rules are numbered by position in rule_ids.",
        annotations=_EDIT,
        inputSchema={
            "type": "object",
            "properties": {
                "rule_ids": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["rule_ids"],
        },
    ),
    types.Tool(
        name="sync_config_update",
        description=(
            "Change how fleet_sync treats one tool: enabled, the server names "
            "to write (null for all), project root and scope."
        ),
        annotations=_EDIT,
        inputSchema={
            "type": "object",
            "properties": {
                "tool_id": {"type": "string", "description": "Tool id from tool_list"},
                "enabled": {"type": "boolean"},
                "servers": {"type": ["array", "null"], "items": {"type": "string"}},
                "target_path": {
                    "type": ["string", "null"],
                    "description": "Project root directory for project-scoped syncs",
                },
                "is_global": {"type": ["boolean", "null"]},
            },
            "required": ["tool_id"],
        },
    ),
]


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


def _done(text: str, structured: dict[str, Any]) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


def _required(args: dict[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key} is required")
    return value.strip()


def _present(args: dict[str, Any], keys: tuple[str, ...]) -> dict[str, Any]:
    """Subset of *args* limited to *keys* that the caller actually sent."""
    return {key: args[key] for key in keys if key in args}


async def _handle_definition_create(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    definition = await run_sync(
        engine.mcp_sets.create_definition,
        args.get("name", ""),
        args.get("command", ""),
        args.get("args"),
        args.get("env"),
        args.get("description"),
        args.get("cwd"),
    )
    return _done(
        f"Created MCP definition '{definition.name}' [{definition.id}]",
        {"definition": definition.model_dump(mode="json")},
    )


async def _handle_definition_update(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    definition_id = _required(args, "definition_id")
    changes = _present(args, ("name", "command", "args", "env", "description", "cwd"))
    if not changes:
        raise ValueError("Provide at least one field to change")
    definition = await run_sync(engine.mcp_sets.update_definition, definition_id, **changes)
    return _done(
        f"Updated MCP definition '{definition.name}' ({', '.join(sorted(changes))})",
        {"definition": definition.model_dump(mode="json")},
    )


async def _handle_definition_delete(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    definition_id = _required(args, "definition_id")
    pruned = await run_sync(engine.mcp_sets.delete_definition, definition_id)
    return _done(
        f"Deleted MCP definition {definition_id} (removed from {pruned} set item(s))",
        {"definition_id": definition_id, "pruned_items": pruned},
    )


async def _handle_set_create(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    mcp_set = await run_sync(
        engine.mcp_sets.create_set,
        args.get("name", ""),
        args.get("items"),
        args.get("description"),
    )
    active = " (active)" if mcp_set.is_active else ""
    return _done(
        f"Created MCP set '{mcp_set.name}' [{mcp_set.id}]{active} with {len(mcp_set.items)} server(s)",
        {"set": mcp_set.model_dump(mode="json")},
    )


async def _handle_set_update(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    set_id = _required(args, "set_id")
    changes = _present(args, ("name", "description", "items"))
    if "archived" in args:
        changes["is_archived"] = bool(args["archived"])
    if not changes:
        raise ValueError("Provide at least one field to change")
    mcp_set = await run_sync(lambda: engine.mcp_sets.update_set(set_id, **changes))
    return _done(
        f"Updated MCP set '{mcp_set.name}' [{mcp_set.id}]",
        {"set": mcp_set.model_dump(mode="json")},
    )


async def _handle_set_delete(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    set_id = _required(args, "set_id")
    await run_sync(engine.mcp_sets.delete_set, set_id)
    return _done(f"Deleted MCP set {set_id}", {"set_id": set_id})


async def _handle_rule_create(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    rule = await run_sync(engine.rules.create, args.get("name", ""), args.get("content", ""))
    return _done(
        f"Created rule '{rule.name}' [{rule.id}] at position {rule.order_index}",
        {"rule": rule.model_dump(mode="json")},
    )


async def _handle_rule_update(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    rule_id = _required(args, "rule_id")
    if "name" not in args and "content" not in args:
        raise ValueError("Provide name or content")
    rule = await run_sync(engine.rules.update, rule_id, args.get("content"), args.get("name"))
    return _done(
        f"Updated rule '{rule.name}' [{rule.id}]",
        {"rule": rule.model_dump(mode="json")},
    )


async def _handle_rule_delete(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    rule = await run_sync(engine.rules.delete, _required(args, "rule_id"))
    return _done(
        f"Archived rule '{rule.name}' [{rule.id}]",
        {"rule": rule.model_dump(mode="json", exclude={"content"})},
    )


async def _handle_rule_restore(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    rule = await run_sync(engine.rules.restore, _required(args, "rule_id"))
    return _done(
        f"Restored rule '{rule.name}' [{rule.id}]",
        {"rule": rule.model_dump(mode="json", exclude={"content"})},
    )


async def _handle_rule_reorder(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    rule_ids = args.get("rule_ids")
    if not isinstance(rule_ids, list) or not rule_ids:
        raise ValueError("rule_ids must be a non-empty list")
    rules = await run_sync(engine.rules.reorder, rule_ids)
    lines = ["Rule order:"] + [f"  {r.order_index}. {r.name} [{r.id}]" for r in rules]
    return _done(
        "\n".join(lines),
        {"rules": [r.model_dump(mode="json", exclude={"content"}) for r in rules]},
    )


async def _handle_sync_config_update(engine: SyncEngine, args: dict[str, Any]) -> types.CallToolResult:
    tool_id = _required(args, "tool_id")
    if engine.registry.get(tool_id) is None:
        raise NotFoundError(f"Unknown tool '{tool_id}'", error_code="tool_not_found")
    changes = _present(args, ("enabled", "servers", "target_path", "is_global"))
    if not changes:
        raise ValueError("Provide at least one setting to change")
    if changes.get("target_path") == "":
        changes["target_path"] = None
    config = await run_sync(lambda: engine.sync_configs.update(tool_id, **changes))
    servers = "all" if config.servers is None else ", ".join(config.servers) or "none"
    scope = {None: "derived", True: "global", False: "project"}[config.is_global]
    return _done(
        f"Sync config for {tool_id}: enabled={config.enabled}, servers={servers}, "
        f"scope={scope}, project root={config.target_path or '-'}",
        {"config": config.model_dump(mode="json")},
    )


# ---------------------------------------------------------------------------
# Specs
# ---------------------------------------------------------------------------

_HANDLERS = {
    "mcp_definition_create": _handle_definition_create,
    "mcp_definition_update": _handle_definition_update,
    "mcp_definition_delete": _handle_definition_delete,
    "mcp_set_create": _handle_set_create,
    "mcp_set_update": _handle_set_update,
    "mcp_set_delete": _handle_set_delete,
    "rule_create": _handle_rule_create,
    "rule_update": _handle_rule_update,
    "rule_delete": _handle_rule_delete,
    "rule_restore": _handle_rule_restore,
    "rule_reorder": _handle_rule_reorder,
    "sync_config_update": _handle_sync_config_update,
}

LIBRARY_WRITE_SPECS: list[ToolSpec] = [
    ToolSpec(tool=tool, mutating=True, handler=_HANDLERS[tool.name])
    for tool in LIBRARY_WRITE_TOOLS
]
