"""
SyncManager Configuration Module

This module handles configuration loading and validation for SyncManager.
Profiles and settings come from a YAML file with environment variable
overrides.

Author: SyncManager Project
License: MIT
"""

from .schema import Config, SyncProfile, SyncSettings, AppConfig, ProfileStatus
from .config_loader import ConfigLoader, load_config

__all__ = [
    'Config', 'SyncProfile', 'SyncSettings', 'AppConfig', 'ProfileStatus',
    'ConfigLoader', 'load_config'
]
