"""Pydantic models for the synchronization engine.

Defines the data contracts shared by the store, the engine and the MCP
tools:

- ``McpDefinition``, ``McpSetItem``, ``McpSet``: the server pool and the
  named sets that reference it.
- ``Rule``: a named rules document.
- ``ToolSyncConfig``: per-tool sync preferences.
- ``SyncStateEntry``: last-synced checksum for one target path.
- ``SyncStatus``, ``SyncResult``: outcome of syncing one tool.
- ``SyncHistoryEntry``: one immutable audit record for a fleet run.

Records read from the store are frozen.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel


class McpDefinition(BaseModel):
    """A reusable MCP server definition in the pool.

    Attributes:
        id: Generated identifier.
        name: Key written under the tool's server container.
        command: Executable to launch.
        args: Command arguments.
        env: Optional environment variables.
        description: Free-form note.
        cwd: Optional working directory.
    """

    id: str
    name: str
    command: str
    args: list[str] = []
    env: dict[str, str] | None = None
    description: str | None = None
    cwd: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    model_config = {"frozen": True}

    def to_server_entry(self) -> dict[str, Any]:
        """Entry written into a tool config: command, args and env if set."""
        entry: dict[str, Any] = {
            "command": self.command,
            "args": list(self.args),
        }
        if self.env:
            entry["env"] = dict(self.env)
        return entry


class McpSetItem(BaseModel):
    """Weak reference from a set to a pool definition."""

    server_id: str
    disabled: bool = False
    order_index: int = 0

    model_config = {"frozen": True}


class McpSet(BaseModel):
    """A named, ordered selection of pool definitions."""

    id: str
    name: str
    description: str | None = None
    items: list[McpSetItem] = []
    is_active: bool = False
    is_archived: bool = False
    order_index: int = 0
    created_at: str | None = None
    updated_at: str | None = None

    model_config = {"frozen": True}


class Rule(BaseModel):
    """A named rules document (AGENTS.md / CLAUDE.md content)."""

    id: str
    name: str
    content: str
    order_index: int = 0
    is_archived: bool = False
    created_at: str | None = None
    updated_at: str | None = None

    model_config = {"frozen": True}


class ToolSyncConfig(BaseModel):
    """Per-tool sync preferences.

    Attributes:
        tool_id: Tool the row belongs to.
        enabled: Fleet syncs skip disabled tools.
        servers: Server names to sync; ``None`` means all in the source set.
        target_path: Project root directory for project-scoped fleet syncs;
            the tool's project file is resolved beneath it.
        is_global: Scope; ``None`` lets the caller derive it.
        rules_source_id: Last rule id synced to this tool.
    """

    tool_id: str
    enabled: bool = True
    servers: list[str] | None = None
    target_path: str | None = None
    is_global: bool | None = None
    rules_source_id: str | None = None
    updated_at: str | None = None

    model_config = {"frozen": True}


class SyncStateEntry(BaseModel):
    """Checksum recorded for a target path at its last successful sync."""

    path: str
    last_sync_hash: str
    synced_at: str

    model_config = {"frozen": True}


class SyncStatus(str, Enum):
    """Outcome of syncing one tool."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    UNSUPPORTED = "unsupported"
    ERROR = "error"


class SyncResult(BaseModel):
    """Result of syncing one tool.

    Attributes:
        tool_id: Tool id (``"global"`` for a batch-level failure).
        tool_name: Display name, when known.
        status: Outcome.
        message: Explanation for non-success outcomes.
        target_path: File that was (or would have been) written.
        applied_server_names: Server names written (MCP syncs only).
    """

    tool_id: str
    tool_name: str | None = None
    status: SyncStatus
    message: str | None = None
    target_path: str | None = None
    applied_server_names: list[str] | None = None

    model_config = {"frozen": True}


class HistoryTargetType(str, Enum):
    MCP_SET = "mcp_set"
    RULE = "rule"
    ALL_MCP = "all_mcp"
    ALL_RULES = "all_rules"


class HistoryStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class SyncHistoryEntry(BaseModel):
    """One append-only audit record summarising a fleet run."""

    id: int | None = None
    created_at: str | None = None
    target_type: HistoryTargetType
    target_id: str | None = None
    target_name: str | None = None
    status: HistoryStatus
    success_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    strategy: str | None = None
    details: list[dict[str, Any]] = []
    duration_ms: int = 0

    model_config = {"frozen": True}
