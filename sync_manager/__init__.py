"""
SyncManager

One-way folder synchronization with versioned backups of overwritten files
and debounced change monitoring.

Author: SyncManager Project
License: MIT
"""

__version__ = "0.1.0"
