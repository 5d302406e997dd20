"""
Configuration Loader

Handles loading and parsing configuration from YAML files and merging
environment variable overrides.

Author: SyncManager Project
License: MIT
"""

import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any
from dotenv import load_dotenv

from .schema import Config

DEFAULT_CONFIG_PATH = "config/config.yaml"


class ConfigLoader:
    """
    Configuration loader.

    Loads configuration from a YAML file, merges environment variables,
    fills in profile defaults and validates the result.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration loader.

        Args:
            config_path: Path to the configuration file. If None, uses
                SYNC_MANAGER_CONFIG or the default location.
        """
        # Load environment variables from .env if present
        load_dotenv()

        self.config_path = config_path or os.getenv(
            "SYNC_MANAGER_CONFIG",
            DEFAULT_CONFIG_PATH
        )
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """
        Load and validate configuration.

        Returns:
            Validated Config object

        Raises:
            ValueError: If YAML parsing or validation fails
        """
        config_data = self._load_yaml()
        config_data = self._merge_env_vars(config_data)
        config_data = self._apply_defaults(config_data)

        self._config = Config(**config_data)
        return self._config

    def _load_yaml(self) -> Dict[str, Any]:
        """
        Load YAML configuration file.

        Returns:
            Dictionary with configuration data
        """
        config_file = Path(self.config_path)

        if not config_file.exists():
            return self._create_default_config()

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse YAML config: {e}")

        if not isinstance(data, dict):
            raise ValueError(f"Config root must be a mapping: {config_file}")
        return data

    def _create_default_config(self) -> Dict[str, Any]:
        """
        Create default configuration structure.

        Returns:
            Default configuration dictionary
        """
        return {
            "app": {
                "log_level": "INFO",
                "log_to_file": False
            },
            "settings": {
                "default_backup_versions": 3,
                "exclusion_patterns": [],
                "debounce_ms": 2000
            },
            "profiles": []
        }

    def _merge_env_vars(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge environment variables into configuration.

        Environment variables override config file values.

        Args:
            config_data: Configuration dictionary from file

        Returns:
            Merged configuration dictionary
        """
        # App settings
        if os.getenv("SYNC_LOG_LEVEL"):
            config_data.setdefault("app", {})["log_level"] = os.getenv("SYNC_LOG_LEVEL").upper()
        if os.getenv("SYNC_LOG_FILE"):
            config_data.setdefault("app", {})["log_to_file"] = True
            config_data["app"]["log_file_path"] = os.getenv("SYNC_LOG_FILE")
        if os.getenv("SYNC_JSON_LOGS"):
            config_data.setdefault("app", {})["json_logs"] = os.getenv("SYNC_JSON_LOGS").lower() == "true"

        # Sync settings
        if os.getenv("SYNC_DEBOUNCE_MS"):
            config_data.setdefault("settings", {})["debounce_ms"] = int(os.getenv("SYNC_DEBOUNCE_MS"))
        if os.getenv("SYNC_DEFAULT_BACKUP_VERSIONS"):
            config_data.setdefault("settings", {})["default_backup_versions"] = int(
                os.getenv("SYNC_DEFAULT_BACKUP_VERSIONS")
            )
        if os.getenv("SYNC_EXCLUSION_PATTERNS"):
            patterns = config_data.setdefault("settings", {}).setdefault("exclusion_patterns", [])
            for pattern in os.getenv("SYNC_EXCLUSION_PATTERNS").split(","):
                pattern = pattern.strip()
                if pattern and pattern not in patterns:
                    patterns.append(pattern)

        return config_data

    def _apply_defaults(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Fill in per-profile defaults from the shared settings.

        Args:
            config_data: Configuration dictionary

        Returns:
            Configuration with defaults applied
        """
        default_versions = config_data.get("settings", {}).get("default_backup_versions", 3)

        for profile in config_data.get("profiles") or []:
            if isinstance(profile, dict) and profile.get("backup_versions") is None:
                profile["backup_versions"] = default_versions

        return config_data

    def reload(self) -> Config:
        """
        Reload configuration from file.

        Returns:
            Reloaded Config object
        """
        return self.load()

    @property
    def config(self) -> Optional[Config]:
        """Get the current configuration object."""
        return self._config


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Convenience function to load configuration.

    Args:
        config_path: Optional path to config file

    Returns:
        Loaded and validated Config object
    """
    loader = ConfigLoader(config_path)
    return loader.load()
