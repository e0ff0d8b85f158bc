"""MCP definition pool and set repository.

Definitions own identity; set items hold definition ids only.  Integrity
is kept on both sides:

* every item write validates that referenced definitions exist;
* deleting a definition prunes every item that references it, in the
  same transaction.

Exactly one non-archived set is active whenever any set exists that was
ever activated.  The ``active_mcp_set_id`` pointer in ``app_state`` and
the per-row ``is_active`` flags are always rewritten together.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..sync.models import McpDefinition, McpSet, McpSetItem
from .database import Database, utc_now

logger = logging.getLogger(__name__)

ACTIVE_SET_KEY = "active_mcp_set_id"

_DEFINITION_FIELDS = ("name", "command", "args", "env", "description", "cwd")


def _row_to_definition(row: sqlite3.Row) -> McpDefinition:
    return McpDefinition(
        id=row["id"],
        name=row["name"],
        command=row["command"],
        args=json.loads(row["args"] or "[]"),
        env=json.loads(row["env"]) if row["env"] else None,
        description=row["description"],
        cwd=row["cwd"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _coerce_items(items: list[Any] | None) -> list[McpSetItem]:
    """Accept ``McpSetItem``, dicts, or bare server ids."""
    result: list[McpSetItem] = []
    for index, item in enumerate(items or []):
        match item:
            case McpSetItem():
                result.append(item)
            case str():
                result.append(McpSetItem(server_id=item, order_index=index))
            case dict():
                data = {"order_index": index, **item}
                if "serverId" in data and "server_id" not in data:
                    data["server_id"] = data.pop("serverId")
                result.append(McpSetItem.model_validate(data))
            case _:
                raise ValidationError(
                    f"Invalid set item: {item!r}",
                    error_code="invalid_set_item",
                )
    return result


class McpRepository:
    """CRUD for MCP definitions and sets.

    Args:
        db: Open ``Database``.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def create_definition(
        self,
        name: str,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        description: str | None = None,
        cwd: str | None = None,
    ) -> McpDefinition:
        if not name or not name.strip():
            raise ValidationError("definition name is required")
        if not command or not command.strip():
            raise ValidationError("definition command is required")

        now = utc_now()
        definition = McpDefinition(
            id=str(uuid.uuid4()),
            name=name.strip(),
            command=command,
            args=list(args or []),
            env=dict(env) if env else None,
            description=description,
            cwd=cwd,
            created_at=now,
            updated_at=now,
        )
        self._db.execute(
            "INSERT INTO mcp_definitions "
            "(id, name, command, args, env, description, cwd, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                definition.id,
                definition.name,
                definition.command,
                json.dumps(definition.args),
                json.dumps(definition.env) if definition.env else None,
                definition.description,
                definition.cwd,
                now,
                now,
            ),
        )
        logger.info("Created MCP definition %s (%s)", definition.name, definition.id)
        return definition

    def get_definition(self, definition_id: str) -> McpDefinition | None:
        row = self._db.fetchone(
            "SELECT * FROM mcp_definitions WHERE id = ?", (definition_id,)
        )
        return _row_to_definition(row) if row else None

    def list_definitions(self) -> list[McpDefinition]:
        rows = self._db.fetchall(
            "SELECT * FROM mcp_definitions ORDER BY name COLLATE NOCASE, created_at"
        )
        return [_row_to_definition(r) for r in rows]

    def update_definition(self, definition_id: str, **changes: Any) -> McpDefinition:
        """Merge *changes* into an existing definition.

        ``args=None`` clears the arguments and an empty ``env`` clears the
        environment.  A rename is refused when another definition in one of
        the same sets already uses the new name.

        Raises:
            NotFoundError: Unknown id.
            ValidationError: Unknown field, blank name or command, a value
                of the wrong type, or a name clash inside a set.
        """
        unknown = set(changes) - set(_DEFINITION_FIELDS)
        if unknown:
            raise ValidationError(
                f"Unknown definition fields: {sorted(unknown)}",
                details={"allowed": list(_DEFINITION_FIELDS)},
            )

        with self._db.transaction() as conn:
            current = self.get_definition(definition_id)
            if current is None:
                raise NotFoundError(f"MCP definition not found: {definition_id}")

            merged = {**current.model_dump(), **changes, "updated_at": utc_now()}
            if merged["args"] is None:
                merged["args"] = []
            if not merged["env"]:
                merged["env"] = None
            for field in ("name", "command"):
                value = merged[field]
                if not isinstance(value, str) or not value.strip():
                    raise ValidationError(
                        f"definition {field} is required",
                        error_code=f"missing_{field}",
                    )
            merged["name"] = merged["name"].strip()
            try:
                updated = McpDefinition.model_validate(merged)
            except PydanticValidationError as exc:
                raise ValidationError(
                    f"Invalid MCP definition: {exc.errors()[0]['msg']}",
                    error_code="invalid_definition",
                    details={"fields": [".".join(map(str, e["loc"])) for e in exc.errors()]},
                ) from exc

            if updated.name != current.name:
                self._check_rename(conn, definition_id, updated.name)

            conn.execute(
                "UPDATE mcp_definitions SET name = ?, command = ?, args = ?, env = ?, "
                "description = ?, cwd = ?, updated_at = ? WHERE id = ?",
                (
                    updated.name,
                    updated.command,
                    json.dumps(list(updated.args)),
                    json.dumps(updated.env) if updated.env else None,
                    updated.description,
                    updated.cwd,
                    updated.updated_at,
                    definition_id,
                ),
            )
        return updated

    @staticmethod
    def _check_rename(conn: sqlite3.Connection, definition_id: str, name: str) -> None:
        clash = conn.execute(
            "SELECT s.name AS set_name FROM mcp_set_items a "
            "JOIN mcp_set_items b ON b.set_id = a.set_id AND b.server_id != a.server_id "
            "JOIN mcp_definitions d ON d.id = b.server_id "
            "JOIN mcp_sets s ON s.id = a.set_id "
            "WHERE a.server_id = ? AND d.name = ? LIMIT 1",
            (definition_id, name),
        ).fetchone()
        if clash is not None:
            raise ValidationError(
                f"MCP set '{clash['set_name']}' already has a server named '{name}'",
                error_code="duplicate_server_name",
                details={"name": name, "set": clash["set_name"]},
            )

    def delete_definition(self, definition_id: str) -> int:
        """Delete a definition and prune every set item referencing it.

        Returns:
            Number of set items pruned.

        Raises:
            NotFoundError: Unknown id.
        """
        with self._db.transaction() as conn:
            pruned = conn.execute(
                "DELETE FROM mcp_set_items WHERE server_id = ?", (definition_id,)
            ).rowcount
            deleted = conn.execute(
                "DELETE FROM mcp_definitions WHERE id = ?", (definition_id,)
            ).rowcount
            if not deleted:
                raise NotFoundError(f"MCP definition not found: {definition_id}")
        logger.info(
            "Deleted MCP definition %s (pruned %d set items)", definition_id, pruned
        )
        return pruned

    # ------------------------------------------------------------------
    # Sets
    # ------------------------------------------------------------------

    def _load_items(self, set_id: str) -> list[McpSetItem]:
        rows = self._db.fetchall(
            "SELECT server_id, disabled, order_index FROM mcp_set_items "
            "WHERE set_id = ? ORDER BY order_index, rowid",
            (set_id,),
        )
        return [
            McpSetItem(
                server_id=r["server_id"],
                disabled=bool(r["disabled"]),
                order_index=r["order_index"],
            )
            for r in rows
        ]

    def _row_to_set(self, row: sqlite3.Row) -> McpSet:
        return McpSet(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            items=self._load_items(row["id"]),
            is_active=bool(row["is_active"]),
            is_archived=bool(row["is_archived"]),
            order_index=row["order_index"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _validate_items(self, conn: sqlite3.Connection, items: list[McpSetItem]) -> None:
        seen: set[str] = set()
        for item in items:
            if item.server_id in seen:
                raise ValidationError(
                    f"Duplicate server in set items: {item.server_id}",
                    error_code="duplicate_set_item",
                )
            seen.add(item.server_id)
        if not seen:
            return
        placeholders = ",".join("?" for _ in seen)
        names = {
            r["id"]: r["name"]
            for r in conn.execute(
                f"SELECT id, name FROM mcp_definitions WHERE id IN ({placeholders})",
                tuple(seen),
            ).fetchall()
        }
        missing = sorted(seen - set(names))
        if missing:
            raise ValidationError(
                f"Set items reference unknown MCP definitions: {missing}",
                error_code="unknown_definition",
                details={"missing": missing},
            )

        # Names become container keys in tool configs.
        used: set[str] = set()
        for item in items:
            name = names[item.server_id]
            if name in used:
                raise ValidationError(
                    f"Two servers in the set are named '{name}'",
                    error_code="duplicate_server_name",
                    details={"name": name},
                )
            used.add(name)

    @staticmethod
    def _write_items(
        conn: sqlite3.Connection, set_id: str, items: list[McpSetItem]
    ) -> None:
        conn.execute("DELETE FROM mcp_set_items WHERE set_id = ?", (set_id,))
        conn.executemany(
            "INSERT INTO mcp_set_items (set_id, server_id, disabled, order_index) "
            "VALUES (?, ?, ?, ?)",
            [
                (set_id, item.server_id, int(item.disabled), item.order_index)
                for item in items
            ],
        )

    def create_set(
        self,
        name: str,
        items: list[Any] | None = None,
        description: str | None = None,
    ) -> McpSet:
        """Create a set; the first set ever created becomes active.

        Raises:
            ValidationError: Empty name, duplicate or unknown server ids.
        """
        if not name or not name.strip():
            raise ValidationError("set name is required")
        set_items = _coerce_items(items)
        set_id = str(uuid.uuid4())
        now = utc_now()

        with self._db.transaction() as conn:
            self._validate_items(conn, set_items)
            first = conn.execute("SELECT COUNT(*) FROM mcp_sets").fetchone()[0] == 0
            next_index = conn.execute(
                "SELECT COALESCE(MAX(order_index), -1) + 1 FROM mcp_sets"
            ).fetchone()[0]
            conn.execute(
                "INSERT INTO mcp_sets "
                "(id, name, description, is_active, is_archived, order_index, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, 0, ?, ?, ?)",
                (set_id, name.strip(), description, int(first), next_index, now, now),
            )
            self._write_items(conn, set_id, set_items)
            if first:
                self._point_active(conn, set_id)

        logger.info("Created MCP set %s (%s)%s", name, set_id, " [active]" if first else "")
        return self._require_set(set_id)

    def get_set(self, set_id: str, include_archived: bool = False) -> McpSet | None:
        sql = "SELECT * FROM mcp_sets WHERE id = ?"
        if not include_archived:
            sql += " AND is_archived = 0"
        row = self._db.fetchone(sql, (set_id,))
        return self._row_to_set(row) if row else None

    def _require_set(self, set_id: str) -> McpSet:
        mcp_set = self.get_set(set_id, include_archived=True)
        if mcp_set is None:
            raise NotFoundError(f"MCP set not found: {set_id}")
        return mcp_set

    def list_sets(self, include_archived: bool = False) -> list[McpSet]:
        sql = "SELECT * FROM mcp_sets"
        if not include_archived:
            sql += " WHERE is_archived = 0"
        sql += " ORDER BY order_index, created_at"
        return [self._row_to_set(r) for r in self._db.fetchall(sql)]

    def update_set(
        self,
        set_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        items: list[Any] | None = None,
        is_archived: bool | None = None,
    ) -> McpSet:
        """Rename, re-describe, replace items wholesale, or toggle archive.

        Raises:
            NotFoundError: Unknown id.
            ValidationError: Empty name, duplicate or unknown server ids.
            ConflictError: Archiving the active set.
        """
        with self._db.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM mcp_sets WHERE id = ?", (set_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError(f"MCP set not found: {set_id}")

            if is_archived and row["is_active"]:
                raise ConflictError(
                    "Cannot archive the active MCP set; activate another set first",
                    error_code="active_set",
                    details={"set_id": set_id},
                )

            assignments: list[str] = []
            params: list[Any] = []
            if name is not None:
                if not name.strip():
                    raise ValidationError("set name is required")
                assignments.append("name = ?")
                params.append(name.strip())
            if description is not None:
                assignments.append("description = ?")
                params.append(description)
            if is_archived is not None:
                assignments.append("is_archived = ?")
                params.append(int(is_archived))
            assignments.append("updated_at = ?")
            params.append(utc_now())

            conn.execute(
                f"UPDATE mcp_sets SET {', '.join(assignments)} WHERE id = ?",
                (*params, set_id),
            )
            if items is not None:
                set_items = _coerce_items(items)
                self._validate_items(conn, set_items)
                self._write_items(conn, set_id, set_items)

        return self._require_set(set_id)

    def delete_set(self, set_id: str) -> None:
        """Delete a set and its items.

        Raises:
            NotFoundError: Unknown id.
            ConflictError: The set is active.
        """
        with self._db.transaction() as conn:
            row = conn.execute(
                "SELECT is_active FROM mcp_sets WHERE id = ?", (set_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError(f"MCP set not found: {set_id}")
            if row["is_active"]:
                raise ConflictError(
                    "Cannot delete the active MCP set; activate another set first",
                    error_code="active_set",
                    details={"set_id": set_id},
                )
            conn.execute("DELETE FROM mcp_sets WHERE id = ?", (set_id,))
        logger.info("Deleted MCP set %s", set_id)

    # ------------------------------------------------------------------
    # Active set
    # ------------------------------------------------------------------

    @staticmethod
    def _point_active(conn: sqlite3.Connection, set_id: str) -> None:
        conn.execute(
            "UPDATE mcp_sets SET is_active = CASE WHEN id = ? THEN 1 ELSE 0 END",
            (set_id,),
        )
        conn.execute(
            "INSERT INTO app_state (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (ACTIVE_SET_KEY, set_id),
        )

    def set_active(self, set_id: str) -> McpSet:
        """Make *set_id* the only active set and repoint the pointer.

        Raises:
            NotFoundError: Unknown id.
            ValidationError: The set is archived.
        """
        with self._db.transaction() as conn:
            row = conn.execute(
                "SELECT is_archived FROM mcp_sets WHERE id = ?", (set_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError(f"MCP set not found: {set_id}")
            if row["is_archived"]:
                raise ValidationError(
                    f"Cannot activate archived MCP set: {set_id}",
                    error_code="archived_set",
                )
            self._point_active(conn, set_id)
        logger.info("Activated MCP set %s", set_id)
        return self._require_set(set_id)

    def get_active_set_id(self) -> str | None:
        return self._db.get_state(ACTIVE_SET_KEY)

    def get_active_set(self) -> McpSet | None:
        set_id = self.get_active_set_id()
        return self.get_set(set_id) if set_id else None

    # ------------------------------------------------------------------
    # Source resolution
    # ------------------------------------------------------------------

    def resolve_server_map(self, set_id: str) -> dict[str, dict[str, Any]]:
        """Build ``name -> {command, args, env?}`` for a set's enabled items.

        Dangling references are skipped with a warning.

        Raises:
            NotFoundError: Unknown or archived set.
        """
        mcp_set = self.get_set(set_id)
        if mcp_set is None:
            raise NotFoundError(
                f"MCP set not found: {set_id}",
                error_code="set_not_found",
                details={"set_id": set_id},
            )

        servers: dict[str, dict[str, Any]] = {}
        for item in mcp_set.items:
            if item.disabled:
                continue
            definition = self.get_definition(item.server_id)
            if definition is None:
                logger.warning(
                    "Set %s references missing MCP definition %s; skipping",
                    set_id,
                    item.server_id,
                )
                continue
            servers[definition.name] = definition.to_server_entry()
        return servers
