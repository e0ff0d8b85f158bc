"""Per-tool sync configuration repository."""

from __future__ import annotations

import json
import logging
import sqlite3

from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from ..sync.models import ToolSyncConfig
from .database import Database, utc_now

logger = logging.getLogger(__name__)

_CONFIG_FIELDS = ("enabled", "servers", "target_path", "is_global", "rules_source_id")


def _row_to_config(row: sqlite3.Row) -> ToolSyncConfig:
    return ToolSyncConfig(
        tool_id=row["tool_id"],
        enabled=bool(row["enabled"]),
        servers=json.loads(row["servers"]) if row["servers"] is not None else None,
        target_path=row["target_path"],
        is_global=None if row["is_global"] is None else bool(row["is_global"]),
        rules_source_id=row["rules_source_id"],
        updated_at=row["updated_at"],
    )


class SyncConfigRepository:
    """Read and upsert ``ToolSyncConfig`` rows.

    A tool with no stored row behaves as enabled, syncing all servers,
    with scope left to the caller.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def get(self, tool_id: str) -> ToolSyncConfig:
        row = self._db.fetchone(
            "SELECT * FROM sync_config WHERE tool_id = ?", (tool_id,)
        )
        return _row_to_config(row) if row else ToolSyncConfig(tool_id=tool_id)

    def list(self) -> list[ToolSyncConfig]:
        rows = self._db.fetchall("SELECT * FROM sync_config ORDER BY tool_id")
        return [_row_to_config(r) for r in rows]

    def save(self, config: ToolSyncConfig) -> ToolSyncConfig:
        saved = config.model_copy(update={"updated_at": utc_now()})
        self._db.execute(
            "INSERT INTO sync_config "
            "(tool_id, enabled, servers, target_path, is_global, rules_source_id, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(tool_id) DO UPDATE SET "
            "enabled = excluded.enabled, servers = excluded.servers, "
            "target_path = excluded.target_path, is_global = excluded.is_global, "
            "rules_source_id = excluded.rules_source_id, updated_at = excluded.updated_at",
            (
                saved.tool_id,
                int(saved.enabled),
                json.dumps(saved.servers) if saved.servers is not None else None,
                saved.target_path,
                None if saved.is_global is None else int(saved.is_global),
                saved.rules_source_id,
                saved.updated_at,
            ),
        )
        return saved

    def update(self, tool_id: str, **changes) -> ToolSyncConfig:
        """Merge *changes* into the tool's config and persist it.

        Raises:
            ValidationError: Unknown field or a value of the wrong type.
        """
        unknown = set(changes) - set(_CONFIG_FIELDS)
        if unknown:
            raise ValidationError(
                f"Unknown sync config fields: {sorted(unknown)}",
                details={"allowed": list(_CONFIG_FIELDS)},
            )
        current = self.get(tool_id)
        try:
            merged = ToolSyncConfig.model_validate({**current.model_dump(), **changes})
        except PydanticValidationError as exc:
            raise ValidationError(
                f"Invalid sync config: {exc.errors()[0]['msg']}",
                error_code="invalid_sync_config",
                details={"fields": [".".join(map(str, e["loc"])) for e in exc.errors()]},
            ) from exc
        return self.save(merged)

    def set_rules_source(self, tool_id: str, source_id: str) -> ToolSyncConfig:
        return self.update(tool_id, rules_source_id=source_id)
