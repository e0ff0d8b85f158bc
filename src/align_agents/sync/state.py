"""Sync state persistence layer.

Tracks, per target path, the checksum of the content written by the last
successful sync.  Comparing the file's current checksum against that
record reveals drift: an edit made outside align-agents since the last
sync.

Key design choices:

* **Content hashing** -- ``content_hash()`` normalises content (BOM,
  line-endings, trailing whitespace) before SHA-256 so hashes are stable
  across platforms and editors.
* **Advisory only** -- ``detect_drift()`` logs and returns a flag; it
  never raises and never blocks a write (last writer wins).
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from ..store.database import Database, utc_now
from .models import SyncStateEntry

logger = logging.getLogger(__name__)


def _key(path: str | Path) -> str:
    return str(Path(path).expanduser())


class SyncStateTracker:
    """Load, record, and query last-synced checksums.

    Args:
        db: Open ``Database`` holding the ``sync_state`` table.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def get(self, path: str | Path) -> SyncStateEntry | None:
        """Return the entry for *path*, or ``None`` if never synced."""
        row = self._db.fetchone(
            "SELECT * FROM sync_state WHERE path = ?", (_key(path),)
        )
        if row is None:
            return None
        return SyncStateEntry(
            path=row["path"],
            last_sync_hash=row["last_sync_hash"],
            synced_at=row["synced_at"],
        )

    def record(self, path: str | Path, content: str) -> SyncStateEntry:
        """Upsert the checksum of *content* as the last sync of *path*."""
        entry = SyncStateEntry(
            path=_key(path),
            last_sync_hash=self.content_hash(content),
            synced_at=utc_now(),
        )
        self._db.execute(
            "INSERT INTO sync_state (path, last_sync_hash, synced_at) VALUES (?, ?, ?) "
            "ON CONFLICT(path) DO UPDATE SET "
            "last_sync_hash = excluded.last_sync_hash, synced_at = excluded.synced_at",
            (entry.path, entry.last_sync_hash, entry.synced_at),
        )
        return entry

    def remove(self, path: str | Path) -> None:
        """Forget *path*.  No-op if not present."""
        self._db.execute("DELETE FROM sync_state WHERE path = ?", (_key(path),))

    def entries(self) -> list[SyncStateEntry]:
        rows = self._db.fetchall("SELECT * FROM sync_state ORDER BY path")
        return [
            SyncStateEntry(
                path=r["path"],
                last_sync_hash=r["last_sync_hash"],
                synced_at=r["synced_at"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Content hashing
    # ------------------------------------------------------------------

    @staticmethod
    def content_hash(content: str) -> str:
        """Compute a normalised SHA-256 hex digest of *content*.

        Normalisation steps (applied in order):

        1. Strip BOM (``\\ufeff``).
        2. Replace ``\\r\\n`` with ``\\n``.
        3. Right-strip each line.
        4. Strip trailing empty lines.

        The result is encoded as UTF-8 before hashing.
        """
        text = content.lstrip("\ufeff")
        text = text.replace("\r\n", "\n")
        lines = [line.rstrip() for line in text.split("\n")]
        while lines and lines[-1] == "":
            lines.pop()
        normalised = "\n".join(lines)
        return hashlib.sha256(normalised.encode("utf-8")).hexdigest()

    # ------------------------------------------------------------------
    # Drift query
    # ------------------------------------------------------------------

    def detect_drift(self, path: str | Path, current_content: str | None) -> bool:
        """Return ``True`` if *path* changed since its last recorded sync.

        A path that was never synced, or no longer exists, has no drift.
        Lookup failures are logged and reported as no drift.
        """
        if current_content is None:
            return False
        try:
            entry = self.get(path)
        except Exception as exc:
            logger.warning("Could not read sync state for %s: %s", path, exc)
            return False
        if entry is None:
            return False
        if entry.last_sync_hash == self.content_hash(current_content):
            return False
        logger.warning(
            "Drift detected: %s was modified since the last sync at %s; "
            "it will be overwritten",
            path,
            entry.synced_at,
        )
        return True
