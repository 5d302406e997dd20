"""
Monitoring Module

Debounced filesystem change monitoring.

Author: SyncManager Project
License: MIT
"""

from .watcher import ChangeMonitor, SourceChangeHandler, should_ignore_file

__all__ = ['ChangeMonitor', 'SourceChangeHandler', 'should_ignore_file']
