"""SQLite-backed persistence for definitions, sets, rules and sync metadata.

Modules:

- ``database``    -- ``Database``: connection, schema and transactions.
- ``mcp``         -- ``McpRepository``: definition pool and sets.
- ``rules``       -- ``RuleRepository``: rule documents.
- ``sync_config`` -- ``SyncConfigRepository``: per-tool preferences.
- ``history``     -- ``SyncHistoryRepository``: append-only audit log.
"""

from .database import Database
from .history import SyncHistoryRepository
from .mcp import McpRepository
from .rules import RuleRepository
from .sync_config import SyncConfigRepository

__all__ = [
    "Database",
    "McpRepository",
    "RuleRepository",
    "SyncConfigRepository",
    "SyncHistoryRepository",
]
