"""Sidecar backups of files about to be mutated.

Backups live in a hidden directory at the project root and are named
from the original basename plus a nanosecond timestamp, so two snapshots
never collide within a transaction.
"""

from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path

from issuesolver.apply.errors import BackupError
from issuesolver.apply.validator import BACKUP_DIR_NAME

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackupHandle:
    """A snapshot of one file taken before mutation."""

    original_path: Path
    backup_path: Path
    timestamp: int


class BackupStore:
    """Creates, restores, and discards file snapshots under a project root."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._dir = self._root / BACKUP_DIR_NAME

    @property
    def directory(self) -> Path:
        return self._dir

    def backup(self, path: Path) -> BackupHandle | None:
        """Snapshot a file. Returns None when there is nothing to protect.

        Raises:
            BackupError: If the copy fails.
        """
        path = Path(path)
        if not path.is_file():
            return None

        stamp = time.time_ns()
        target = self._dir / f"{path.name}.{stamp}.backup"
        while target.exists():
            stamp += 1
            target = self._dir / f"{path.name}.{stamp}.backup"

        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, target)
        except OSError as e:
            raise BackupError(f"Backup creation failed for {path}: {e}") from e

        logger.debug("Backed up %s -> %s", path, target.name)
        return BackupHandle(original_path=path, backup_path=target, timestamp=stamp)

    def restore(self, handle: BackupHandle) -> None:
        """Copy the snapshot back over the original path.

        Raises:
            BackupError: If the backup is gone or the copy fails.
        """
        if not handle.backup_path.is_file():
            raise BackupError(f"Backup file not found: {handle.backup_path}")
        try:
            handle.original_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(handle.backup_path, handle.original_path)
        except OSError as e:
            raise BackupError(f"Restore failed for {handle.original_path}: {e}") from e
        logger.debug("Restored %s from %s", handle.original_path, handle.backup_path.name)

    def discard(self, handle: BackupHandle) -> None:
        """Delete a snapshot. Missing snapshots are ignored."""
        try:
            handle.backup_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to delete backup %s: %s", handle.backup_path, e)

    def cleanup(self, handles: list[BackupHandle]) -> None:
        """Discard snapshots and remove the backup directory once empty."""
        for handle in handles:
            self.discard(handle)
        try:
            if self._dir.is_dir() and not any(self._dir.iterdir()):
                self._dir.rmdir()
        except OSError as e:
            logger.debug("Could not remove backup directory %s: %s", self._dir, e)
