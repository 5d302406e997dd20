"""
Task Scheduler

APScheduler integration for periodic, per-profile sync triggers.

Author: SyncManager Project
License: MIT
"""

import re
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from typing import Callable, Optional

from ..utils.logger import get_logger

logger = get_logger(__name__)

_EVERY_PATTERN = re.compile(r"^every\s+(\d+)\s*([mh])$", re.IGNORECASE)


def parse_schedule(expression: str) -> Optional[BaseTrigger]:
    """
    Turn a schedule expression into an APScheduler trigger.

    Accepted forms:
        - ``hourly``, ``daily``, ``weekly``
        - ``every <N>m`` / ``every <N>h``
        - a 5-field cron expression (minute hour day month day_of_week)

    Args:
        expression: Schedule expression

    Returns:
        Trigger, or None if the expression is not understood
    """
    expr = (expression or "").strip()
    if not expr:
        return None

    named = {
        "hourly": lambda: IntervalTrigger(hours=1),
        "daily": lambda: IntervalTrigger(days=1),
        "weekly": lambda: IntervalTrigger(weeks=1),
    }
    if expr.lower() in named:
        return named[expr.lower()]()

    match = _EVERY_PATTERN.match(expr)
    if match:
        amount = int(match.group(1))
        if amount < 1:
            return None
        if match.group(2).lower() == "m":
            return IntervalTrigger(minutes=amount)
        return IntervalTrigger(hours=amount)

    parts = expr.split()
    if len(parts) != 5:
        return None

    try:
        return CronTrigger(
            minute=parts[0],
            hour=parts[1],
            day=parts[2],
            month=parts[3],
            day_of_week=parts[4]
        )
    except ValueError:
        return None


class TaskScheduler:
    """
    Manages scheduled sync triggers.

    Features:
    - Cron-based scheduling
    - Interval-based scheduling
    - One job per profile
    """

    def __init__(self, timezone: Optional[str] = None):
        """
        Initialize task scheduler.

        Args:
            timezone: Scheduler timezone (local time if None)
        """
        scheduler_kwargs = {
            'job_defaults': {
                'coalesce': True,  # Combine missed executions
                'max_instances': 1  # Only one instance per job
            }
        }
        if timezone:
            scheduler_kwargs['timezone'] = timezone

        self.scheduler = BackgroundScheduler(**scheduler_kwargs)
        self._trigger_callback: Optional[Callable[[str], None]] = None

        logger.info("TaskScheduler initialized")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self):
        """Start the scheduler."""
        if self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler.start()
        logger.info("Scheduler started")

    def stop(self):
        """Stop the scheduler."""
        if not self.scheduler.running:
            return

        self.scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped")

    def set_trigger_callback(self, callback: Callable[[str], None]):
        """
        Set callback function for scheduled syncs.

        Args:
            callback: Function taking the profile name
        """
        self._trigger_callback = callback

    @staticmethod
    def job_id(profile_name: str) -> str:
        return f"sync:{profile_name}"

    def add_profile_job(self, profile_name: str, schedule: str) -> bool:
        """
        Add (or replace) the scheduled sync for a profile.

        Args:
            profile_name: Profile to sync
            schedule: Schedule expression (see ``parse_schedule``)

        Returns:
            True if the job was added
        """
        trigger = parse_schedule(schedule)
        if trigger is None:
            logger.error(f"Invalid schedule for {profile_name}: {schedule}")
            return False

        self.scheduler.add_job(
            func=self._execute_profile_sync,
            trigger=trigger,
            args=[profile_name],
            id=self.job_id(profile_name),
            name=f"Sync: {profile_name}",
            replace_existing=True
        )

        logger.info(f"Added sync job for {profile_name} with schedule: {schedule}")
        return True

    def remove_profile_job(self, profile_name: str) -> bool:
        """
        Remove the scheduled sync for a profile.

        Returns:
            True if a job was removed
        """
        job = self.scheduler.get_job(self.job_id(profile_name))
        if job is None:
            return False

        job.remove()
        logger.info(f"Removed sync job for {profile_name}")
        return True

    def _execute_profile_sync(self, profile_name: str):
        """Execute a scheduled sync trigger."""
        logger.info(f"Executing scheduled sync for {profile_name}")

        if self._trigger_callback is None:
            logger.warning("No trigger callback registered")
            return

        try:
            self._trigger_callback(profile_name)
        except Exception as e:
            logger.error(f"Error in scheduled sync callback for {profile_name}: {e}")

    def get_jobs(self) -> list:
        """
        Get list of scheduled jobs.

        Returns:
            List of job information dictionaries
        """
        jobs = []

        for job in self.scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)

            jobs.append({
                'id': job.id,
                'name': job.name,
                'next_run': next_run.isoformat() if next_run else None,
                'trigger': str(job.trigger)
            })

        return jobs
