"""Synchronization engine for AI-tool configuration.

Propagates a selected source (an MCP set or a rule document) into the
config files of every installed tool, reconciling with what is already
there instead of blindly overwriting.

Modules:

- ``engine``     -- ``SyncEngine``: single-tool and fleet orchestration.
- ``strategies`` -- pure text and server-map reconciliation.
- ``formats``    -- ``ConfigFormat``: JSON/TOML parse, serialize, container key.
- ``mapper``     -- ``TargetPathResolver``: tool + scope to target file.
- ``state``      -- ``SyncStateTracker``: checksums for drift detection.
- ``backup``     -- ``TimestampedBackup``: pre-write snapshots.
- ``models``     -- data contracts shared with the store and MCP tools.
- ``reporter``   -- human-readable and JSON result formatting.

``engine``, ``state`` and ``backup`` depend on the store and are imported
from their modules directly.

Usage example
-------------
::

    from align_agents.capabilities import CapabilityRegistry
    from align_agents.store import Database
    from align_agents.sync.engine import SyncEngine
    from align_agents.sync import format_sync_results

    engine = SyncEngine(Database("~/.align-agents/align-agents.db"),
                        CapabilityRegistry())
    mcp_set = engine.mcp_sets.get_active_set()
    results = engine.sync_fleet_mcp(mcp_set.id, strategy="deep-merge")
    print(format_sync_results(results, "MCP sync"))
"""

from .formats import ConfigFormat
from .mapper import TargetKind, TargetPathResolver
from .models import (
    McpDefinition,
    McpSet,
    McpSetItem,
    Rule,
    SyncHistoryEntry,
    SyncResult,
    SyncStatus,
    ToolSyncConfig,
)
from .reporter import format_sync_results, results_to_json, summarize
from .strategies import (
    MARKER_END,
    MARKER_START,
    apply_text_strategy,
    deep_merge_server_map,
)

__all__ = [
    "ConfigFormat",
    "MARKER_END",
    "MARKER_START",
    "McpDefinition",
    "McpSet",
    "McpSetItem",
    "Rule",
    "SyncHistoryEntry",
    "SyncResult",
    "SyncStatus",
    "TargetKind",
    "TargetPathResolver",
    "ToolSyncConfig",
    "apply_text_strategy",
    "deep_merge_server_map",
    "format_sync_results",
    "results_to_json",
    "summarize",
]
