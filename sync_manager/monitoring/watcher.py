"""
File System Watcher

Watches profile source folders with the watchdog library and coalesces
bursts of filesystem events into a single sync request per profile once
the folder has been quiet for the debounce period.

Author: SyncManager Project
License: MIT
"""

import itertools
import os
import time
from dataclasses import dataclass, field
from threading import Lock, Timer
from typing import Callable, Dict, List, Optional
from watchdog.observers import Observer
from watchdog.events import FileSystemEvent, FileSystemEventHandler

from ..utils.logger import get_logger, ActivityLog
from ..config.schema import SyncProfile

logger = get_logger(__name__)

DEFAULT_DEBOUNCE_MS = 2000

SyncRequestedCallback = Callable[[str], None]

# Partial downloads and temp files
IGNORED_EXTENSIONS = {'.tmp', '.temp', '.crdownload', '.part'}
# Office lock files
IGNORED_PREFIXES = ('~$', '.~')


def should_ignore_file(file_name: str) -> bool:
    """
    Check if a changed file is temporary noise.

    Args:
        file_name: Base name of the changed file

    Returns:
        True for partial downloads, temp files and office lock files
    """
    if not file_name:
        return True

    if os.path.splitext(file_name)[1].lower() in IGNORED_EXTENSIONS:
        return True

    return file_name.startswith(IGNORED_PREFIXES)


class SourceChangeHandler(FileSystemEventHandler):
    """
    Filesystem event handler for one profile's source folder.

    Forwards every relevant event to the monitor, which re-arms the
    profile's debounce timer.
    """

    def __init__(self, profile_name: str, on_change: Callable[[str, str, str], None]):
        """
        Initialize the source change handler.

        Args:
            profile_name: Profile whose source folder is watched
            on_change: Callback(profile_name, event_type, path) for relevant events
        """
        super().__init__()
        self.profile_name = profile_name
        self.on_change = on_change

    def on_any_event(self, event: FileSystemEvent):
        """Handle created, modified, deleted and moved events."""
        if event.event_type not in ("created", "modified", "deleted", "moved"):
            return

        try:
            # Directory modifications only echo changes to their children
            if event.is_directory and event.event_type == "modified":
                return

            path = os.fsdecode(getattr(event, "dest_path", "") or event.src_path)
            if should_ignore_file(os.path.basename(path)):
                return

            self.on_change(self.profile_name, event.event_type, path)

        except Exception as e:
            # Never let one bad event tear down the observer thread
            logger.warning(f"Dropped filesystem event for {self.profile_name}: {e}")


@dataclass
class WatchRegistration:
    """Everything held for one watched profile."""
    profile_name: str
    source_folder: str
    observer: Observer
    handler: SourceChangeHandler
    timer: Optional[Timer] = None
    generation: int = 0
    last_event_time: Optional[float] = None
    event_count: int = field(default=0)


class ChangeMonitor:
    """
    Watches source folders and raises ``sync_requested`` events.

    Each profile has at most one registration. Every relevant event
    restarts the profile's debounce timer; when the timer runs out the
    listeners are called once with the profile name. Timers fire on their
    own threads, so listeners must hand the request over to whichever
    thread owns sync execution.
    """

    def __init__(
        self,
        on_sync_requested: Optional[SyncRequestedCallback] = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        activity_log: Optional[ActivityLog] = None
    ):
        """
        Initialize the change monitor.

        Args:
            on_sync_requested: Listener called with the profile name
            debounce_ms: Quiet period before a sync is requested
            activity_log: Activity log sink
        """
        self.debounce_seconds = debounce_ms / 1000.0
        self.activity_log = activity_log or ActivityLog()

        self._listeners: List[SyncRequestedCallback] = []
        if on_sync_requested:
            self._listeners.append(on_sync_requested)

        self._registrations: Dict[str, WatchRegistration] = {}
        self._lock = Lock()
        # Shared across registrations so a stale timer never matches a new one
        self._generations = itertools.count(1)

        logger.info(f"ChangeMonitor initialized (debounce={debounce_ms}ms)")

    def add_listener(self, callback: SyncRequestedCallback):
        """Subscribe to ``sync_requested`` events."""
        with self._lock:
            self._listeners.append(callback)

    def start_watching(self, profile: SyncProfile) -> bool:
        """
        Start watching a profile's source folder.

        Any existing registration for the same profile is torn down first.

        Args:
            profile: Profile to watch

        Returns:
            True if the watch was started
        """
        self.stop_watching(profile.name)

        if not profile.source_folder or not os.path.isdir(profile.source_folder):
            self.activity_log.warning(
                "Cannot start watching: Source folder does not exist", profile.name
            )
            return False

        handler = SourceChangeHandler(profile.name, self._on_change)
        observer = Observer()

        try:
            observer.schedule(handler, profile.source_folder, recursive=True)
            observer.start()
        except OSError as e:
            self.activity_log.error(f"Failed to start monitoring: {e}", profile.name)
            return False

        registration = WatchRegistration(
            profile_name=profile.name,
            source_folder=profile.source_folder,
            observer=observer,
            handler=handler
        )

        with self._lock:
            # A concurrent start for the same name may have slipped in
            previous = self._registrations.pop(profile.name, None)
            self._registrations[profile.name] = registration

        if previous is not None:
            self._release(previous)

        self.activity_log.info(f"Started monitoring folder: {profile.source_folder}", profile.name)
        return True

    def stop_watching(self, profile_name: str):
        """
        Stop watching a profile. Safe to call when it is not watched.

        Args:
            profile_name: Profile to stop watching
        """
        with self._lock:
            registration = self._registrations.pop(profile_name, None)

        if registration is None:
            return

        self._release(registration)
        self.activity_log.info("Stopped monitoring", profile_name)

    def stop_all(self):
        """Release every registration (process shutdown)."""
        with self._lock:
            registrations = list(self._registrations.values())
            self._registrations.clear()

        for registration in registrations:
            self._release(registration)

        if registrations:
            logger.info(f"Stopped monitoring {len(registrations)} profiles")

    def is_watching(self, profile_name: str) -> bool:
        """Check if a profile is currently watched."""
        with self._lock:
            registration = self._registrations.get(profile_name)
        return registration is not None and registration.observer.is_alive()

    def get_watched_profiles(self) -> List[str]:
        """Get names of watched profiles."""
        with self._lock:
            return list(self._registrations.keys())

    def has_pending_sync(self, profile_name: str) -> bool:
        """Check if a debounce timer is currently armed for a profile."""
        with self._lock:
            registration = self._registrations.get(profile_name)
            return registration is not None and registration.timer is not None

    def _release(self, registration: WatchRegistration):
        """Stop the observer and timer of a registration."""
        if registration.timer is not None:
            registration.timer.cancel()
            registration.timer = None

        try:
            registration.observer.stop()
            registration.observer.join(timeout=5)
        except RuntimeError as e:
            # Observer was never started
            logger.debug(f"Observer for {registration.profile_name} not running: {e}")

    def _on_change(self, profile_name: str, event_type: str, path: str):
        """Re-arm the debounce timer for a profile."""
        with self._lock:
            registration = self._registrations.get(profile_name)
            if registration is None:
                return

            if registration.timer is not None:
                registration.timer.cancel()

            registration.generation = next(self._generations)
            timer = Timer(
                self.debounce_seconds,
                self._on_timer,
                args=(profile_name, registration.generation)
            )
            timer.daemon = True

            registration.timer = timer
            registration.last_event_time = time.monotonic()
            registration.event_count += 1
            timer.start()

        logger.debug(f"Detected change for {profile_name}: {event_type} - {path}")

    def _on_timer(self, profile_name: str, generation: int):
        """Debounce timer elapsed: raise one sync request."""
        with self._lock:
            registration = self._registrations.get(profile_name)
            # A newer event or a stop replaced this timer
            if registration is None or registration.generation != generation:
                return

            registration.timer = None
            event_count = registration.event_count
            registration.event_count = 0
            listeners = list(self._listeners)

        self.activity_log.info(
            f"Auto-sync triggered after detecting {event_count} changes", profile_name
        )

        for listener in listeners:
            try:
                listener(profile_name)
            except Exception as e:
                logger.error(f"Error in sync_requested listener for {profile_name}: {e}")
