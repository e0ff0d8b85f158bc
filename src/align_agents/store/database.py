"""Embedded SQLite store: schema and connection management.

One ``Database`` owns one connection for the lifetime of the process.
Repositories run every multi-statement change inside ``transaction()``
so a failure part-way never leaves a half-applied change (two active
sets, dangling set items, a stale active pointer).
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_SCHEMA = """
CREATE TABLE IF NOT EXISTS app_state (
    key TEXT PRIMARY KEY,
    value TEXT
);

CREATE TABLE IF NOT EXISTS mcp_definitions (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    command TEXT NOT NULL,
    args TEXT NOT NULL DEFAULT '[]',   -- JSON array
    env TEXT,                          -- JSON object or NULL
    description TEXT,
    cwd TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS mcp_sets (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT,
    is_active INTEGER NOT NULL DEFAULT 0,
    is_archived INTEGER NOT NULL DEFAULT 0,
    order_index INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS mcp_set_items (
    set_id TEXT NOT NULL,
    server_id TEXT NOT NULL,
    disabled INTEGER NOT NULL DEFAULT 0,
    order_index INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (set_id, server_id),
    FOREIGN KEY (set_id) REFERENCES mcp_sets(id) ON DELETE CASCADE,
    FOREIGN KEY (server_id) REFERENCES mcp_definitions(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS rules (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    content TEXT NOT NULL,
    order_index INTEGER NOT NULL DEFAULT 0,
    is_archived INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sync_config (
    tool_id TEXT PRIMARY KEY,
    enabled INTEGER NOT NULL DEFAULT 1,
    servers TEXT,                      -- JSON array or NULL for "all"
    target_path TEXT,
    is_global INTEGER,
    rules_source_id TEXT,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sync_state (
    path TEXT PRIMARY KEY,
    last_sync_hash TEXT NOT NULL,
    synced_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sync_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at TEXT NOT NULL,
    target_type TEXT NOT NULL,
    target_id TEXT,
    target_name TEXT,
    status TEXT NOT NULL,
    success_count INTEGER NOT NULL DEFAULT 0,
    failed_count INTEGER NOT NULL DEFAULT 0,
    skipped_count INTEGER NOT NULL DEFAULT 0,
    strategy TEXT,
    details TEXT NOT NULL DEFAULT '[]',
    duration_ms INTEGER NOT NULL DEFAULT 0
);

CREATE TRIGGER IF NOT EXISTS sync_history_no_update
BEFORE UPDATE ON sync_history
BEGIN
    SELECT RAISE(ABORT, 'sync_history is append-only');
END;

CREATE TRIGGER IF NOT EXISTS sync_history_no_delete
BEFORE DELETE ON sync_history
BEGIN
    SELECT RAISE(ABORT, 'sync_history is append-only');
END;

CREATE INDEX IF NOT EXISTS idx_mcp_set_items_server_id ON mcp_set_items(server_id);
CREATE INDEX IF NOT EXISTS idx_sync_history_created_at ON sync_history(created_at);
"""


def utc_now() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class Database:
    """Single SQLite connection with schema bootstrap and transactions.

    Args:
        db_path: Database file, or ``":memory:"``.  Parent directories are
            created on demand.
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).expanduser().parent.mkdir(
                parents=True, exist_ok=True
            )
            self.db_path = str(Path(self.db_path).expanduser())

        # Engine calls arrive on worker threads via run_sync; the lock
        # serialises them on this one connection.
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(
            self.db_path, check_same_thread=False, isolation_level=None
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._depth = 0
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _ensure_schema(self) -> None:
        try:
            with self._lock:
                self._conn.executescript(_SCHEMA)
                self._conn.execute(
                    "INSERT OR IGNORE INTO app_state (key, value) VALUES (?, ?)",
                    ("schema_version", str(SCHEMA_VERSION)),
                )
        except sqlite3.Error as e:
            logger.error("Failed to initialise database %s: %s", self.db_path, e)
            raise
        logger.debug("Database ready: %s", self.db_path)

    # ------------------------------------------------------------------
    # Statement helpers
    # ------------------------------------------------------------------

    def execute(self, sql: str, params: tuple | list = ()) -> sqlite3.Cursor:
        with self._lock:
            return self._conn.execute(sql, params)

    def fetchone(self, sql: str, params: tuple | list = ()) -> sqlite3.Row | None:
        with self._lock:
            return self._conn.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: tuple | list = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block atomically; commit on success, roll back on any error.

        Nested use joins the outer transaction.
        """
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self._conn
                finally:
                    self._depth -= 1
                return

            self._conn.execute("BEGIN IMMEDIATE")
            self._depth = 1
            try:
                yield self._conn
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                self._conn.execute("COMMIT")
            finally:
                self._depth = 0

    # ------------------------------------------------------------------
    # Key/value app state
    # ------------------------------------------------------------------

    def get_state(self, key: str) -> str | None:
        row = self.fetchone("SELECT value FROM app_state WHERE key = ?", (key,))
        return row["value"] if row else None

    def set_state(self, key: str, value: str | None) -> None:
        self.execute(
            "INSERT INTO app_state (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )

    def close(self) -> None:
        with self._lock:
            self._conn.close()
