"""Append-only sync history (audit log).

Rows are inserted once and never changed: the schema installs triggers
that abort any UPDATE or DELETE on ``sync_history``.
"""

from __future__ import annotations

import json
import logging
import sqlite3

from ..sync.models import HistoryStatus, HistoryTargetType, SyncHistoryEntry
from .database import Database, utc_now

logger = logging.getLogger(__name__)


def _row_to_entry(row: sqlite3.Row) -> SyncHistoryEntry:
    return SyncHistoryEntry(
        id=row["id"],
        created_at=row["created_at"],
        target_type=HistoryTargetType(row["target_type"]),
        target_id=row["target_id"],
        target_name=row["target_name"],
        status=HistoryStatus(row["status"]),
        success_count=row["success_count"],
        failed_count=row["failed_count"],
        skipped_count=row["skipped_count"],
        strategy=row["strategy"],
        details=json.loads(row["details"] or "[]"),
        duration_ms=row["duration_ms"],
    )


class SyncHistoryRepository:
    """Append and query audit records."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def append(self, entry: SyncHistoryEntry) -> SyncHistoryEntry:
        created_at = entry.created_at or utc_now()
        cursor = self._db.execute(
            "INSERT INTO sync_history "
            "(created_at, target_type, target_id, target_name, status, "
            "success_count, failed_count, skipped_count, strategy, details, duration_ms) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                created_at,
                entry.target_type.value,
                entry.target_id,
                entry.target_name,
                entry.status.value,
                entry.success_count,
                entry.failed_count,
                entry.skipped_count,
                entry.strategy,
                json.dumps(entry.details, default=str),
                entry.duration_ms,
            ),
        )
        return entry.model_copy(
            update={"id": cursor.lastrowid, "created_at": created_at}
        )

    def get(self, entry_id: int) -> SyncHistoryEntry | None:
        row = self._db.fetchone(
            "SELECT * FROM sync_history WHERE id = ?", (entry_id,)
        )
        return _row_to_entry(row) if row else None

    def list(
        self,
        limit: int = 50,
        target_type: HistoryTargetType | str | None = None,
        status: HistoryStatus | str | None = None,
    ) -> list[SyncHistoryEntry]:
        """Most recent entries first, optionally filtered."""
        clauses: list[str] = []
        params: list = []
        if target_type is not None:
            clauses.append("target_type = ?")
            params.append(HistoryTargetType(target_type).value)
        if status is not None:
            clauses.append("status = ?")
            params.append(HistoryStatus(status).value)
        sql = "SELECT * FROM sync_history"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY id DESC LIMIT ?"
        params.append(max(1, int(limit)))
        return [_row_to_entry(r) for r in self._db.fetchall(sql, params)]
