"""
Configuration Schema and Models

Defines Pydantic models for the configuration schema, providing validation,
default values, and type checking for sync profiles and application settings.

Author: SyncManager Project
License: MIT
"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class LogLevel(str, Enum):
    """Logging level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ProfileStatus(str, Enum):
    """Status labels shown for a profile."""
    IDLE = "Idle"
    AUTO_SYNC_ACTIVE = "Auto-Sync Active"
    QUEUED = "Queued"
    SYNCING = "Syncing"
    SUCCESS = "Success"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


BACKUP_ROOT_DIRNAME = "SyncManagerBackups"


def default_documents_path() -> Path:
    """Return the user's documents folder."""
    return Path.home() / "Documents"


class SyncProfile(BaseModel):
    """
    A named source -> destination sync relationship.

    Everything except ``status`` is treated as read-only by the sync core;
    ``status`` is updated as runs start and finish.
    """

    model_config = ConfigDict(validate_assignment=True)

    name: str = Field(
        description="Unique profile name"
    )
    source_folder: str = Field(
        description="Folder whose contents are copied"
    )
    destination_folder: str = Field(
        description="Folder made to match the source"
    )
    backup_folder: Optional[str] = Field(
        default=None,
        description="Backup root (defaults to Documents/SyncManagerBackups/<name>)"
    )
    backup_versions: int = Field(
        default=3,
        description="Snapshots kept per overwritten file"
    )
    auto_sync_enabled: bool = Field(
        default=False,
        description="Watch the source folder and sync on changes"
    )
    schedule: Optional[str] = Field(
        default=None,
        description="Cron expression or hourly/daily/weekly/'every <N>m|h'"
    )
    status: str = Field(
        default=ProfileStatus.IDLE.value,
        description="Current status label"
    )
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        """Names are used as folder names and registry keys."""
        if not v or not v.strip():
            raise ValueError("Profile name must not be empty")
        return v.strip()

    @field_validator("source_folder", "destination_folder")
    @classmethod
    def validate_folders(cls, v):
        if not v or not v.strip():
            raise ValueError("Folder path must not be empty")
        return v

    @field_validator("backup_folder")
    @classmethod
    def blank_backup_folder_is_default(cls, v):
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("backup_versions")
    @classmethod
    def validate_backup_versions(cls, v):
        if v < 1:
            raise ValueError(f"backup_versions must be a positive number: {v}")
        return v

    def get_backup_folder(self) -> Path:
        """Resolve the effective backup root for this profile."""
        if self.backup_folder:
            return Path(self.backup_folder)
        return default_documents_path() / BACKUP_ROOT_DIRNAME / self.name


class SyncSettings(BaseModel):
    """Settings shared by every profile."""

    default_backup_versions: int = Field(
        default=3,
        description="Retention used by profiles that do not set their own"
    )
    exclusion_patterns: List[str] = Field(
        default=[],
        description="Extra glob patterns excluded from every sync"
    )
    debounce_ms: int = Field(
        default=2000,
        description="Quiet period after the last change before auto-sync"
    )
    hash_chunk_size: int = Field(
        default=65536,
        description="Read size used when hashing files (bytes)"
    )

    @field_validator("default_backup_versions", "debounce_ms", "hash_chunk_size")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError(f"Value must be positive: {v}")
        return v

    @field_validator("exclusion_patterns", mode="before")
    @classmethod
    def strip_patterns(cls, v):
        """Drop blank lines from pattern lists."""
        if isinstance(v, list):
            return [p.strip() for p in v if p and p.strip()]
        return v


class AppConfig(BaseModel):
    """Application-level settings."""

    model_config = ConfigDict(use_enum_values=True)

    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Application logging level"
    )
    log_to_file: bool = Field(
        default=False,
        description="Enable logging to file"
    )
    log_file_path: str = Field(
        default="logs/sync_manager.log",
        description="Log file location"
    )
    log_rotation_size: int = Field(
        default=10485760,  # 10MB
        description="Log file size before rotation (bytes)"
    )
    log_retention_count: int = Field(
        default=5,
        description="Number of rotated log files to keep"
    )
    json_logs: bool = Field(
        default=False,
        description="Emit logs as JSON"
    )


class Config(BaseModel):
    """
    Root configuration model for SyncManager.

    Loaded from config.yaml and optionally overridden by environment
    variables.
    """

    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)

    app: AppConfig = Field(default_factory=AppConfig)
    settings: SyncSettings = Field(default_factory=SyncSettings)
    profiles: List[SyncProfile] = Field(
        default=[],
        description="Configured sync profiles"
    )

    @field_validator("profiles")
    @classmethod
    def validate_unique_names(cls, v):
        """Ensure no duplicate profile names."""
        names = [p.name for p in v]
        if len(names) != len(set(names)):
            raise ValueError("Duplicate profile names detected in configuration")
        return v

    def get_profile(self, name: str) -> Optional[SyncProfile]:
        """Look up a profile by name."""
        for profile in self.profiles:
            if profile.name == name:
                return profile
        return None
