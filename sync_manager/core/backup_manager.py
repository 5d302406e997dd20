"""
Backup Manager

Keeps a bounded history of destination files that are about to be
overwritten. Each file gets its own folder under the backup root holding
timestamped snapshots; older snapshots are rotated out by retention count.

Layout::

    <backup-root>/<filename>/<stem>_<YYYYMMDD_HHMMSS><ext>

Author: SyncManager Project
License: MIT
"""

import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from ..utils.logger import get_logger, ActivityLog

logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


def snapshot_name(file_name: str, timestamp: datetime) -> str:
    """Build the snapshot file name for ``file_name`` taken at ``timestamp``."""
    path = Path(file_name)
    return f"{path.stem}_{timestamp.strftime(TIMESTAMP_FORMAT)}{path.suffix}"


def _creation_time(path: Path) -> float:
    stat = path.stat()
    # st_birthtime is only reported on some platforms
    return getattr(stat, "st_birthtime", stat.st_ctime)


class BackupManager:
    """
    Snapshots and rotates overwritten destination files.

    Backups are advisory: failures are logged and reported through the
    return value, never raised, so the caller can go ahead with the
    overwrite.
    """

    def __init__(
        self,
        backup_root: Union[str, Path],
        profile_name: str = "Sync",
        activity_log: Optional[ActivityLog] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize backup manager.

        Args:
            backup_root: Folder holding one subfolder per backed-up file
            profile_name: Profile reported in activity log entries
            activity_log: Activity log sink
            clock: Source of snapshot timestamps (local time)
        """
        self.backup_root = Path(backup_root)
        self.profile_name = profile_name
        self.activity_log = activity_log or ActivityLog()
        self.clock = clock

    def folder_for(self, file_name: str) -> Path:
        """Per-file backup folder, named exactly after the file."""
        return self.backup_root / file_name

    def backup(self, dest_file: Union[str, Path]) -> Tuple[bool, Optional[Path], Optional[str]]:
        """
        Snapshot the current content of ``dest_file``.

        A second backup of the same file within the same second replaces
        the first snapshot.

        Args:
            dest_file: Existing destination file about to be overwritten

        Returns:
            Tuple of (success: bool, snapshot_path: Path, error_message: str)
        """
        dest_path = Path(dest_file)
        file_name = dest_path.name

        try:
            folder = self.folder_for(file_name)
            folder.mkdir(parents=True, exist_ok=True)

            snapshot_path = folder / snapshot_name(file_name, self.clock())
            shutil.copy2(str(dest_path), str(snapshot_path))

            logger.debug(f"Backed up {dest_path} -> {snapshot_path}")
            return True, snapshot_path, None

        except OSError as e:
            error = f"Failed to backup {file_name}: {e}"
            logger.warning(error)
            self.activity_log.error(error, self.profile_name)
            return False, None, error

    def list_snapshots(self, file_name: str) -> List[Path]:
        """
        List snapshots of ``file_name``, newest first.

        Only files following the ``<stem>_*<ext>`` naming are considered.
        Ordering is by creation time, ties broken by name.

        Args:
            file_name: Base name of the original file (including extension)

        Returns:
            Snapshot paths, newest first; empty if there are none
        """
        folder = self.folder_for(file_name)
        if not folder.is_dir():
            return []

        original = Path(file_name)
        prefix = f"{original.stem}_"
        suffix = original.suffix

        entries = []
        for entry in folder.iterdir():
            name = entry.name
            if not entry.is_file():
                continue
            if not name.startswith(prefix) or not name.endswith(suffix):
                continue
            try:
                entries.append((_creation_time(entry), name, entry))
            except OSError as e:
                # Vanished between listing and stat
                logger.debug(f"Skipping unreadable snapshot {entry}: {e}")

        entries.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [entry for _, _, entry in entries]

    def rotate(self, file_name: str, retention_count: int) -> Tuple[int, List[str]]:
        """
        Delete snapshots of ``file_name`` beyond the newest ``retention_count``.

        A missing backup folder is a no-op. A snapshot that cannot be
        deleted is logged and skipped.

        Args:
            file_name: Base name of the original file (including extension)
            retention_count: Number of snapshots to keep

        Returns:
            Tuple of (deleted_count: int, errors: list of messages)
        """
        errors: List[str] = []
        deleted = 0

        try:
            snapshots = self.list_snapshots(file_name)
        except OSError as e:
            error = f"Failed to rotate backups for {file_name}: {e}"
            self.activity_log.error(error, self.profile_name)
            return 0, [error]

        for old_snapshot in snapshots[retention_count:]:
            try:
                os.remove(old_snapshot)
                deleted += 1
                logger.debug(f"Rotated out snapshot: {old_snapshot}")
            except OSError as e:
                error = f"Failed to delete old backup {old_snapshot.name}: {e}"
                errors.append(error)
                self.activity_log.error(error, self.profile_name)

        return deleted, errors
