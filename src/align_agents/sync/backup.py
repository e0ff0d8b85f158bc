"""Pre-write snapshots of tool config files.

The engine only depends on the ``BackupProvider`` protocol: it calls
``create_snapshot`` before writing a target and ignores any failure.
``TimestampedBackup`` is the default provider: it copies the file into a
sibling ``.backup/`` directory as ``<name>.<YYYYMMDD-HHMMSS-ffffff>`` and
keeps the newest ``max_backups`` copies per file.
"""

from __future__ import annotations

import logging
import re
import shutil
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from ..errors import NotFoundError

logger = logging.getLogger(__name__)

BACKUP_DIRNAME = ".backup"
_STAMP_FORMAT = "%Y%m%d-%H%M%S-%f"
_STAMP_SUFFIX = re.compile(r"\.(\d{8}-\d{6}-\d{6})$")


@runtime_checkable
class BackupProvider(Protocol):
    """Contract the sync engine requires of a backup collaborator."""

    def create_snapshot(self, label: str, path: Path) -> str | None:
        """Snapshot *path*; return a reference, or ``None`` if nothing was saved."""
        ...

    def restore(self, ref: str) -> Path:
        """Restore the snapshot *ref*; return the restored path."""
        ...


class TimestampedBackup:
    """File-copy backups next to the original.

    Args:
        enabled: When ``False`` ``create_snapshot`` is a no-op.
        max_backups: Copies kept per file (oldest pruned first).
    """

    def __init__(self, enabled: bool = True, max_backups: int = 5) -> None:
        self.enabled = enabled
        self.max_backups = max(1, max_backups)

    def create_snapshot(self, label: str, path: Path) -> str | None:
        path = Path(path)
        if not self.enabled or not path.is_file():
            return None

        backup_dir = path.parent / BACKUP_DIRNAME
        backup_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime(_STAMP_FORMAT)
        target = backup_dir / f"{path.name}.{stamp}"
        shutil.copy2(path, target)
        logger.info("Backup (%s): %s -> %s", label, path, target)

        self._prune(path)
        return str(target)

    def list_snapshots(self, path: Path) -> list[Path]:
        """Snapshots of *path*, newest first."""
        path = Path(path)
        backup_dir = path.parent / BACKUP_DIRNAME
        if not backup_dir.is_dir():
            return []
        snapshots = [
            p
            for p in backup_dir.iterdir()
            if p.name.startswith(f"{path.name}.")
            and _STAMP_SUFFIX.match(p.name[len(path.name):])
        ]
        return sorted(snapshots, key=lambda p: p.name, reverse=True)

    def restore(self, ref: str) -> Path:
        """Copy snapshot *ref* back over the file it was taken from.

        Raises:
            NotFoundError: If the snapshot no longer exists or *ref* is not
                a snapshot path.
        """
        snapshot = Path(ref)
        match = _STAMP_SUFFIX.search(snapshot.name)
        if not snapshot.is_file() or match is None:
            raise NotFoundError(
                f"Backup snapshot not found: {ref}",
                error_code="snapshot_not_found",
            )
        original_name = snapshot.name[: match.start()]
        destination = snapshot.parent.parent / original_name
        shutil.copy2(snapshot, destination)
        logger.info("Restored %s from %s", destination, snapshot)
        return destination

    def _prune(self, path: Path) -> None:
        for stale in self.list_snapshots(path)[self.max_backups:]:
            try:
                stale.unlink()
            except OSError as exc:
                logger.warning("Could not remove old backup %s: %s", stale, exc)
