"""Rule document repository.

Rules are never hard-deleted: ``delete`` archives and keeps the content.
Listing excludes archived rules unless asked; ``get`` returns them so a
history entry can still name its source.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid

from ..errors import NotFoundError, ValidationError
from ..sync.models import Rule
from .database import Database, utc_now

logger = logging.getLogger(__name__)


def _row_to_rule(row: sqlite3.Row) -> Rule:
    return Rule(
        id=row["id"],
        name=row["name"],
        content=row["content"],
        order_index=row["order_index"],
        is_archived=bool(row["is_archived"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class RuleRepository:
    """CRUD, archive and ordering for rules.

    Args:
        db: Open ``Database``.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def create(self, name: str, content: str) -> Rule:
        """Create a rule at the end of the ordering."""
        if not name or not name.strip():
            raise ValidationError("rule name is required")
        rule_id = str(uuid.uuid4())
        now = utc_now()
        with self._db.transaction() as conn:
            next_index = conn.execute(
                "SELECT COALESCE(MAX(order_index), -1) + 1 FROM rules"
            ).fetchone()[0]
            conn.execute(
                "INSERT INTO rules (id, name, content, order_index, is_archived, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, 0, ?, ?)",
                (rule_id, name.strip(), content or "", next_index, now, now),
            )
        logger.info("Created rule %s (%s)", name, rule_id)
        return Rule(
            id=rule_id,
            name=name.strip(),
            content=content or "",
            order_index=next_index,
            created_at=now,
            updated_at=now,
        )

    def get(self, rule_id: str) -> Rule | None:
        row = self._db.fetchone("SELECT * FROM rules WHERE id = ?", (rule_id,))
        return _row_to_rule(row) if row else None

    def require(self, rule_id: str) -> Rule:
        rule = self.get(rule_id)
        if rule is None:
            raise NotFoundError(
                f"Rule not found: {rule_id}",
                error_code="rule_not_found",
                details={"rule_id": rule_id},
            )
        return rule

    def list(self, include_archived: bool = False) -> list[Rule]:
        sql = "SELECT * FROM rules"
        if not include_archived:
            sql += " WHERE is_archived = 0"
        sql += " ORDER BY order_index, created_at"
        return [_row_to_rule(r) for r in self._db.fetchall(sql)]

    def update(
        self,
        rule_id: str,
        content: str | None = None,
        name: str | None = None,
    ) -> Rule:
        current = self.require(rule_id)
        if name is not None and not name.strip():
            raise ValidationError("rule name is required")
        updated = current.model_copy(
            update={
                "content": current.content if content is None else content,
                "name": current.name if name is None else name.strip(),
                "updated_at": utc_now(),
            }
        )
        self._db.execute(
            "UPDATE rules SET name = ?, content = ?, updated_at = ? WHERE id = ?",
            (updated.name, updated.content, updated.updated_at, rule_id),
        )
        return updated

    def _set_archived(self, rule_id: str, archived: bool) -> Rule:
        cursor = self._db.execute(
            "UPDATE rules SET is_archived = ?, updated_at = ? WHERE id = ?",
            (int(archived), utc_now(), rule_id),
        )
        if not cursor.rowcount:
            raise NotFoundError(f"Rule not found: {rule_id}")
        return self.require(rule_id)

    def delete(self, rule_id: str) -> Rule:
        """Archive a rule; its content is retained."""
        rule = self._set_archived(rule_id, True)
        logger.info("Archived rule %s", rule_id)
        return rule

    def restore(self, rule_id: str) -> Rule:
        return self._set_archived(rule_id, False)

    def reorder(self, rule_ids: list[str]) -> list[Rule]:
        """Assign ``order_index`` by position in *rule_ids*.

        Raises:
            NotFoundError: Any id is unknown (nothing is changed).
        """
        with self._db.transaction() as conn:
            for index, rule_id in enumerate(rule_ids):
                updated = conn.execute(
                    "UPDATE rules SET order_index = ? WHERE id = ?",
                    (index, rule_id),
                ).rowcount
                if not updated:
                    raise NotFoundError(f"Rule not found: {rule_id}")
        return self.list(include_archived=True)
