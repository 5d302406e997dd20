"""
Scheduler Module

Scheduled sync triggers.

Author: SyncManager Project
License: MIT
"""

from .task_scheduler import TaskScheduler, parse_schedule

__all__ = ['TaskScheduler', 'parse_schedule']
