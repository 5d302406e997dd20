"""
Sync Engine

Core synchronization logic: walks the source tree, applies exclusion rules,
detects changed files, snapshots destination files before overwriting them
and copies the new content across.

Author: SyncManager Project
License: MIT
"""

import fnmatch
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set

from ..utils.logger import get_logger, ActivityLog
from ..utils.file_ops import (
    DEFAULT_CHUNK_SIZE,
    copy_file,
    ensure_directory,
    has_file_changed
)
from ..config.schema import SyncProfile, ProfileStatus
from .backup_manager import BackupManager

logger = get_logger(__name__)

ProgressCallback = Callable[[str], None]

METADATA_FILE = ".sync-metadata.json"
BACKUP_SUBFOLDER = ".backups"

# Substrings that exclude a relative path from syncing
EXCLUDED_SUBSTRINGS = (
    METADATA_FILE,
    BACKUP_SUBFOLDER,
    "System Volume Information",
    "Thumbs.db",
    ".tmp",
)
LOCK_FILE_PREFIX = "~"
OFFICE_LOCK_MARKER = "~$"


class SyncError(Exception):
    """A failure that aborts a whole sync run."""


class SourceMissingError(SyncError):
    """The source folder does not exist."""


class DestinationUnavailableError(SyncError):
    """The destination or backup folder cannot be created."""


class CancellationToken:
    """
    Cooperative cancellation flag shared between a caller and a running sync.

    The engine checks it once per file; a copy that has already started
    always completes.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        """Request cancellation."""
        self._event.set()

    @property
    def cancellation_requested(self) -> bool:
        return self._event.is_set()


class SyncResult:
    """Outcome of one sync run."""

    def __init__(self, profile_name: str, dry_run: bool = False):
        """
        Initialize sync result.

        Args:
            profile_name: Profile the run belongs to
            dry_run: Whether the run was a dry run
        """
        self.profile_name = profile_name
        self.dry_run = dry_run
        self.success = False
        self.cancelled = False
        self.files_processed = 0
        self.files_backed_up = 0
        self.files_skipped = 0
        self.files_failed = 0
        self.orphaned_files = 0
        self.error: Optional[str] = None
        self.started_at = datetime.now()
        self.finished_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for reporting."""
        return {
            "profile": self.profile_name,
            "success": self.success,
            "cancelled": self.cancelled,
            "dry_run": self.dry_run,
            "files_processed": self.files_processed,
            "files_backed_up": self.files_backed_up,
            "files_skipped": self.files_skipped,
            "files_failed": self.files_failed,
            "orphaned_files": self.orphaned_files,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"SyncResult(profile={self.profile_name}, success={self.success}, "
            f"processed={self.files_processed}, skipped={self.files_skipped}, "
            f"failed={self.files_failed})"
        )


def is_excluded(relative_path: str, extra_patterns: Iterable[str] = ()) -> bool:
    """
    Check a source-relative path against the exclusion rules.

    Args:
        relative_path: Path relative to the source root, ``/``-separated
        extra_patterns: Additional glob patterns, matched against the
            relative path and the file name

    Returns:
        True if the file must not be synced
    """
    if any(marker in relative_path for marker in EXCLUDED_SUBSTRINGS):
        return True

    if relative_path.startswith(LOCK_FILE_PREFIX) or OFFICE_LOCK_MARKER in relative_path:
        return True

    file_name = relative_path.rsplit("/", 1)[-1]
    for pattern in extra_patterns:
        if fnmatch.fnmatchcase(relative_path, pattern) or fnmatch.fnmatchcase(file_name, pattern):
            return True

    return False


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


class SyncEngine:
    """
    Core synchronization engine.

    Files are processed one at a time in sorted order. A run is either
    real or dry; a dry run performs no filesystem changes but reports the
    counts a real run would produce.
    """

    def __init__(
        self,
        activity_log: Optional[ActivityLog] = None,
        exclusion_patterns: Optional[List[str]] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize sync engine.

        Args:
            activity_log: Activity log sink for notable events
            exclusion_patterns: Extra glob patterns to exclude
            chunk_size: Read size used when hashing
            clock: Timestamp source for backup snapshots
        """
        self.activity_log = activity_log or ActivityLog()
        self.exclusion_patterns = list(exclusion_patterns or [])
        self.chunk_size = chunk_size
        self.clock = clock

        logger.info("SyncEngine initialized")

    def execute(
        self,
        profile: SyncProfile,
        dry_run: bool = False,
        progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> SyncResult:
        """
        Run one sync of ``profile``.

        Never raises: fatal problems are reported through ``result.success``
        and ``result.error``, per-file problems through ``files_failed``.

        Args:
            profile: Profile to sync
            dry_run: Report what would change without touching the disk
            progress: Receives human-readable status lines
            cancel_token: Checked before each file

        Returns:
            SyncResult for this run
        """
        def report(message: str):
            if progress is None:
                return
            try:
                progress(message)
            except Exception as e:
                logger.error(f"Progress callback failed: {e}")

        result = SyncResult(profile.name, dry_run=dry_run)
        profile.status = ProfileStatus.SYNCING.value

        mode = "DRY RUN sync" if dry_run else "sync"
        self.activity_log.info(f"Starting {mode}", profile.name)

        try:
            self._run(profile, dry_run, report, cancel_token, result)
            result.success = True
        except SyncError as e:
            result.success = False
            result.error = str(e)
            report(f"FATAL ERROR: {e}")
            self.activity_log.error(str(e), profile.name)
        except OSError as e:
            result.success = False
            result.error = f"Unexpected filesystem error: {e}"
            report(f"FATAL ERROR: {e}")
            self.activity_log.error(result.error, profile.name)

        result.finished_at = datetime.now()

        if not result.success:
            profile.status = ProfileStatus.FAILED.value
        elif result.cancelled:
            profile.status = ProfileStatus.CANCELLED.value
            self.activity_log.warning(
                f"Sync cancelled after {result.files_processed} files", profile.name
            )
        else:
            profile.status = ProfileStatus.SUCCESS.value
            self.activity_log.success(
                f"Sync completed: {result.files_processed} files processed, "
                f"{result.files_backed_up} backed up, {result.files_skipped} skipped, "
                f"{result.files_failed} failed",
                profile.name
            )

        return result

    def _run(
        self,
        profile: SyncProfile,
        dry_run: bool,
        report: ProgressCallback,
        cancel_token: Optional[CancellationToken],
        result: SyncResult
    ):
        source = Path(profile.source_folder)
        destination = Path(profile.destination_folder)
        backup_root = profile.get_backup_folder()

        report(f"[{_timestamp()}] Validating folders...")

        if not source.is_dir():
            raise SourceMissingError(f"Source folder does not exist: {source}")

        self._prepare_folder(destination, "destination", dry_run, report)
        self._prepare_folder(backup_root, "backup", dry_run, report)

        backups = BackupManager(
            backup_root,
            profile_name=profile.name,
            activity_log=self.activity_log,
            clock=self.clock
        )

        report(f"[{_timestamp()}] Starting sync operation...")

        try:
            source_files = sorted(p for p in source.rglob("*") if p.is_file())
        except OSError as e:
            raise SyncError(f"Failed to enumerate source folder {source}: {e}")

        report(f"Found {len(source_files)} files in source")
        seen: Set[str] = set()

        for source_file in source_files:
            if cancel_token is not None and cancel_token.cancellation_requested:
                result.cancelled = True
                report("Sync cancelled by user")
                break

            relative = source_file.relative_to(source).as_posix()
            seen.add(relative)

            if is_excluded(relative, self.exclusion_patterns):
                result.files_skipped += 1
                continue

            try:
                self._sync_file(
                    source_file, destination / relative, relative,
                    profile, backups, dry_run, report, result
                )
            except Exception as e:
                result.files_failed += 1
                report(f"ERROR syncing {relative}: {e}")
                self.activity_log.error(f"Failed to sync {relative}: {e}", profile.name)

        if not result.cancelled:
            self._report_orphans(destination, backup_root, seen, profile, report, result)

        report(
            f"[{_timestamp()}] Sync operation completed: "
            f"{result.files_processed} processed, {result.files_backed_up} backed up, "
            f"{result.files_skipped} skipped, {result.files_failed} failed"
        )

    def _prepare_folder(self, folder: Path, label: str, dry_run: bool, report: ProgressCallback):
        """Create a required folder, or only announce it in a dry run."""
        if folder.is_dir():
            return

        if dry_run:
            report(f"[DRY RUN] Would create {label} folder: {folder}")
            return

        ok, error = ensure_directory(folder)
        if not ok:
            raise DestinationUnavailableError(error)
        report(f"Created {label} folder: {folder}")

    def _sync_file(
        self,
        source_file: Path,
        dest_file: Path,
        relative: str,
        profile: SyncProfile,
        backups: BackupManager,
        dry_run: bool,
        report: ProgressCallback,
        result: SyncResult
    ):
        """Sync one file. Exceptions are handled by the caller."""
        if not dry_run:
            dest_file.parent.mkdir(parents=True, exist_ok=True)

        if not has_file_changed(source_file, dest_file, self.chunk_size):
            result.files_skipped += 1
            return

        report(f"[{_timestamp()}] Syncing: {relative}")
        dest_exists = dest_file.exists()

        if dry_run:
            if dest_exists:
                report(f"[DRY RUN] Would back up and overwrite: {relative}")
                result.files_backed_up += 1
            else:
                report(f"[DRY RUN] Would copy new file: {relative}")
            result.files_processed += 1
            return

        if dest_exists:
            # Best effort: the overwrite goes ahead even if this fails
            backups.backup(dest_file)
            result.files_backed_up += 1

        copy_file(source_file, dest_file)
        backups.rotate(dest_file.name, profile.backup_versions)

        result.files_processed += 1

    def _report_orphans(
        self,
        destination: Path,
        backup_root: Path,
        seen: Set[str],
        profile: SyncProfile,
        report: ProgressCallback,
        result: SyncResult
    ):
        """Log destination files missing from the source. They are kept."""
        if not destination.is_dir():
            return

        # Backup root may be relative while the destination is absolute
        destination = destination.resolve()
        backup_root = backup_root.resolve()

        try:
            orphans = [
                p.relative_to(destination).as_posix()
                for p in destination.rglob("*")
                if p.is_file() and not p.is_relative_to(backup_root)
            ]
        except OSError as e:
            logger.warning(f"Could not scan destination for removed files: {e}")
            return

        orphans = [
            rel for rel in orphans
            if rel not in seen and not is_excluded(rel, self.exclusion_patterns)
        ]
        result.orphaned_files = len(orphans)

        if orphans:
            report(f"{len(orphans)} files exist only in destination (kept)")
            self.activity_log.info(
                f"{len(orphans)} files deleted from source were kept in destination",
                profile.name
            )
            for rel in orphans:
                logger.debug(f"Kept destination-only file: {rel}")
