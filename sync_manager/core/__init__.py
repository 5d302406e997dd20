"""
SyncManager Core Module

Sync engine, backup management and orchestration logic.

Author: SyncManager Project
License: MIT
"""

from .backup_manager import BackupManager
from .sync_engine import (
    SyncEngine,
    SyncResult,
    CancellationToken,
    SyncError,
    SourceMissingError,
    DestinationUnavailableError,
)
from .orchestrator import SyncCoordinator

__all__ = [
    'BackupManager', 'SyncEngine', 'SyncResult', 'CancellationToken',
    'SyncError', 'SourceMissingError', 'DestinationUnavailableError',
    'SyncCoordinator'
]
