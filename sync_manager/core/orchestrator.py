"""
Orchestrator

Coordinates change monitoring, scheduled triggers and manual requests,
and runs sync jobs one at a time on a dedicated worker thread.

Author: SyncManager Project
License: MIT
"""

import itertools
import queue
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from threading import Event, Lock, Thread
from typing import Callable, Dict, Optional, Set

from ..utils.logger import get_logger, ActivityLog
from ..config.schema import Config, SyncProfile, ProfileStatus
from ..monitoring.watcher import ChangeMonitor
from ..scheduler.task_scheduler import TaskScheduler
from .sync_engine import SyncEngine, SyncResult, CancellationToken

logger = get_logger(__name__)


class Priority(IntEnum):
    """Priority levels for queued sync requests."""
    AUTOMATIC = 1
    MANUAL = 0  # Manual triggers get highest priority


@dataclass(order=True)
class SyncRequest:
    """Queued request to sync one profile."""
    priority: int
    sequence: int
    profile_name: str = field(compare=False)
    dry_run: bool = field(default=False, compare=False)
    manual: bool = field(default=False, compare=False)
    requested_at: datetime = field(default_factory=datetime.now, compare=False)


class SyncCoordinator:
    """
    Owner of profile state and sync execution.

    Triggers may arrive from watchdog timers, scheduler threads or the
    caller; they are all turned into queued requests and executed by a
    single worker thread. A profile that is already queued or running
    rejects further requests.
    """

    def __init__(
        self,
        config: Config,
        engine: Optional[SyncEngine] = None,
        monitor: Optional[ChangeMonitor] = None,
        scheduler: Optional[TaskScheduler] = None,
        activity_log: Optional[ActivityLog] = None,
        on_progress: Optional[Callable[[str, str], None]] = None,
        on_result: Optional[Callable[[SyncResult], None]] = None
    ):
        """
        Initialize coordinator.

        Args:
            config: Application configuration holding the profiles
            engine: Sync engine (built from settings if None)
            monitor: Change monitor (built from settings if None)
            scheduler: Task scheduler (built if None)
            activity_log: Activity log sink
            on_progress: Callback(profile_name, message) for progress lines
            on_result: Callback receiving each finished SyncResult
        """
        self.config = config
        self.activity_log = activity_log or ActivityLog()

        self.engine = engine or SyncEngine(
            activity_log=self.activity_log,
            exclusion_patterns=config.settings.exclusion_patterns,
            chunk_size=config.settings.hash_chunk_size
        )
        self.monitor = monitor or ChangeMonitor(
            debounce_ms=config.settings.debounce_ms,
            activity_log=self.activity_log
        )
        self.scheduler = scheduler or TaskScheduler()

        self.monitor.add_listener(self._on_sync_requested)
        self.scheduler.set_trigger_callback(self._on_scheduled_trigger)

        self.on_progress = on_progress
        self.on_result = on_result

        self._queue: "queue.PriorityQueue[SyncRequest]" = queue.PriorityQueue()
        self._sequence = itertools.count()
        self._lock = Lock()
        self._pending: Set[str] = set()
        self._tokens: Dict[str, CancellationToken] = {}
        self._last_results: Dict[str, SyncResult] = {}

        self._running = False
        self._stop_event = Event()
        self._worker_thread: Optional[Thread] = None

        logger.info("SyncCoordinator initialized")

    def start(self):
        """Start the worker, scheduler and monitors for auto-sync profiles."""
        if self._running:
            logger.warning("SyncCoordinator already running")
            return

        logger.info("Starting coordinator...")

        self._running = True
        self._stop_event.clear()

        self._worker_thread = Thread(target=self._worker_loop, name="sync-worker", daemon=True)
        self._worker_thread.start()

        for profile in self.config.profiles:
            if profile.auto_sync_enabled:
                self._start_auto_sync(profile)
            if profile.schedule:
                self.scheduler.add_profile_job(profile.name, profile.schedule)

        self.scheduler.start()
        logger.info(f"Coordinator started with {len(self.config.profiles)} profiles")

    def stop(self):
        """Stop monitors, scheduler and worker; cancel running syncs."""
        if not self._running:
            return

        logger.info("Stopping coordinator...")

        self._running = False
        self._stop_event.set()

        self.monitor.stop_all()
        self.scheduler.stop()

        with self._lock:
            for token in self._tokens.values():
                token.cancel()

        if self._worker_thread:
            self._worker_thread.join(timeout=30)

        dropped = self._drain_queue()
        if dropped:
            logger.info(f"Dropped {dropped} queued sync requests")

        logger.info("Coordinator stopped")

    def _drain_queue(self) -> int:
        """Discard requests the worker never picked up and release their profiles."""
        dropped = 0
        while True:
            try:
                request = self._queue.get_nowait()
            except queue.Empty:
                return dropped

            with self._lock:
                self._pending.discard(request.profile_name)

            profile = self.config.get_profile(request.profile_name)
            if profile is not None and profile.status == ProfileStatus.QUEUED.value:
                profile.status = ProfileStatus.IDLE.value
            dropped += 1

    def request_sync(self, profile_name: str, dry_run: bool = False, manual: bool = False) -> bool:
        """
        Queue a sync for a profile.

        Args:
            profile_name: Profile to sync
            dry_run: Run without modifying anything
            manual: User-initiated request (runs ahead of automatic ones)

        Returns:
            True if the request was queued, False if rejected
        """
        profile = self.config.get_profile(profile_name)
        if profile is None:
            logger.warning(f"Sync requested for unknown profile: {profile_name}")
            return False

        with self._lock:
            if profile_name in self._pending:
                logger.info(f"Sync already pending for {profile_name}, ignoring trigger")
                return False
            self._pending.add(profile_name)

        profile.status = ProfileStatus.QUEUED.value
        priority = Priority.MANUAL if manual else Priority.AUTOMATIC
        self._queue.put(SyncRequest(
            priority=priority.value,
            sequence=next(self._sequence),
            profile_name=profile_name,
            dry_run=dry_run,
            manual=manual
        ))

        logger.debug(f"Queued sync for {profile_name} (queue_size={self._queue.qsize()})")
        return True

    def run_now(self, profile_name: str, dry_run: bool = False) -> Optional[SyncResult]:
        """
        Run a sync on the calling thread.

        Args:
            profile_name: Profile to sync
            dry_run: Run without modifying anything

        Returns:
            SyncResult, or None if the profile is unknown or already busy
        """
        profile = self.config.get_profile(profile_name)
        if profile is None:
            logger.warning(f"Unknown profile: {profile_name}")
            return None

        with self._lock:
            if profile_name in self._pending:
                logger.warning(f"A sync operation is already in progress for {profile_name}")
                return None
            self._pending.add(profile_name)

        return self._execute(profile, dry_run, manual=True)

    def cancel(self, profile_name: str) -> bool:
        """
        Request cancellation of a running sync.

        Returns:
            True if a running sync was signalled
        """
        with self._lock:
            token = self._tokens.get(profile_name)

        if token is None:
            return False

        token.cancel()
        self.activity_log.info("Cancellation requested", profile_name)
        return True

    def set_auto_sync(self, profile_name: str, enabled: bool) -> bool:
        """
        Turn auto-sync on or off for a profile.

        Returns:
            False if the profile is unknown or its watch could not start
        """
        profile = self.config.get_profile(profile_name)
        if profile is None:
            return False

        profile.auto_sync_enabled = enabled

        if enabled:
            self.activity_log.info("Auto-sync enabled", profile_name)
            return self._start_auto_sync(profile)

        self.monitor.stop_watching(profile_name)
        profile.status = ProfileStatus.IDLE.value
        self.activity_log.info("Auto-sync disabled", profile_name)
        return True

    def is_busy(self, profile_name: str) -> bool:
        """Check if a profile is queued or running."""
        with self._lock:
            return profile_name in self._pending

    def get_last_result(self, profile_name: str) -> Optional[SyncResult]:
        with self._lock:
            return self._last_results.get(profile_name)

    def get_status(self) -> dict:
        """
        Get current coordinator status.

        Returns:
            Dictionary with status information
        """
        with self._lock:
            pending = sorted(self._pending)
            running = sorted(self._tokens)

        return {
            "running": self._running,
            "queue_size": self._queue.qsize(),
            "pending": pending,
            "active": running,
            "watched_profiles": self.monitor.get_watched_profiles(),
            "scheduled_jobs": self.scheduler.get_jobs(),
            "profiles": {p.name: p.status for p in self.config.profiles},
        }

    def _start_auto_sync(self, profile: SyncProfile) -> bool:
        if self.monitor.start_watching(profile):
            profile.status = ProfileStatus.AUTO_SYNC_ACTIVE.value
            return True
        return False

    def _on_sync_requested(self, profile_name: str):
        """Change monitor callback (runs on a timer thread)."""
        self.request_sync(profile_name)

    def _on_scheduled_trigger(self, profile_name: str):
        """Scheduler callback (runs on a scheduler thread)."""
        self.activity_log.info("Scheduled sync triggered", profile_name)
        self.request_sync(profile_name)

    def _worker_loop(self):
        """Thread loop executing queued requests one at a time."""
        logger.info("Sync worker started")

        while not self._stop_event.is_set():
            try:
                request = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue

            profile = self.config.get_profile(request.profile_name)
            if profile is None:
                with self._lock:
                    self._pending.discard(request.profile_name)
                continue

            if request.manual:
                self.activity_log.info("Manual sync started", profile.name)
            else:
                self.activity_log.info("Auto-sync triggered by file changes", profile.name)

            try:
                self._execute(profile, request.dry_run, request.manual)
            except Exception as e:
                logger.error(f"Error in sync worker for {profile.name}: {e}")

        logger.info("Sync worker stopped")

    def _execute(self, profile: SyncProfile, dry_run: bool, manual: bool) -> SyncResult:
        """Run the engine for a profile already marked pending."""
        token = CancellationToken()
        with self._lock:
            self._tokens[profile.name] = token

        def progress(message: str):
            if self.on_progress:
                self.on_progress(profile.name, message)
            else:
                logger.info(f"[{profile.name}] {message}")

        try:
            result = self.engine.execute(profile, dry_run=dry_run, progress=progress, cancel_token=token)
        finally:
            with self._lock:
                self._tokens.pop(profile.name, None)
                self._pending.discard(profile.name)

        if not result.success:
            self.activity_log.error(f"Sync failed: {result.error}", profile.name)

        # Watched profiles go back to showing that auto-sync is on
        if result.success and not manual and self.monitor.is_watching(profile.name):
            profile.status = ProfileStatus.AUTO_SYNC_ACTIVE.value

        with self._lock:
            self._last_results[profile.name] = result

        if self.on_result:
            try:
                self.on_result(result)
            except Exception as e:
                logger.error(f"Error in result callback for {profile.name}: {e}")

        return result
