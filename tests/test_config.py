"""
Unit Tests for Configuration Module

Tests configuration loading, validation, environment variable merging,
and error handling.

Author: SyncManager Project
License: MIT
"""

import pytest
from pathlib import Path
from pydantic import ValidationError

from sync_manager.config.config_loader import ConfigLoader, load_config
from sync_manager.config.schema import Config, SyncProfile, SyncSettings, ProfileStatus

ENV_VARS = (
    "SYNC_MANAGER_CONFIG",
    "SYNC_LOG_LEVEL",
    "SYNC_LOG_FILE",
    "SYNC_JSON_LOGS",
    "SYNC_DEBOUNCE_MS",
    "SYNC_DEFAULT_BACKUP_VERSIONS",
    "SYNC_EXCLUSION_PATTERNS",
)

SAMPLE_YAML = """
app:
  log_level: WARNING
settings:
  default_backup_versions: 5
  exclusion_patterns:
    - "*.bak"
    - ""
profiles:
  - name: Documents
    source_folder: /data/docs
    destination_folder: /mnt/usb/docs
    backup_versions: 2
    auto_sync_enabled: true
  - name: Photos
    source_folder: /data/photos
    destination_folder: /mnt/usb/photos
    schedule: daily
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the host environment out of config loading."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(SAMPLE_YAML)
    return path


class TestConfigLoader:
    """Test suite for ConfigLoader class."""

    def test_create_default_config(self):
        """Test default configuration creation."""
        default_config = ConfigLoader()._create_default_config()

        assert default_config["app"]["log_level"] == "INFO"
        assert default_config["settings"]["default_backup_versions"] == 3
        assert default_config["profiles"] == []

    def test_load_nonexistent_config_creates_default(self, tmp_path):
        """Test that loading non-existent config creates defaults."""
        config = ConfigLoader(str(tmp_path / "missing.yaml")).load()

        assert isinstance(config, Config)
        assert config.app.log_level == "INFO"
        assert config.settings.debounce_ms == 2000
        assert config.profiles == []

    def test_path_from_environment(self, config_file, monkeypatch):
        """Test SYNC_MANAGER_CONFIG selects the file."""
        monkeypatch.setenv("SYNC_MANAGER_CONFIG", str(config_file))

        loader = ConfigLoader()

        assert loader.config_path == str(config_file)
        assert len(loader.load().profiles) == 2

    def test_load_profiles(self, config_file):
        """Test profiles are parsed and defaults inherited."""
        config = load_config(str(config_file))

        docs = config.get_profile("Documents")
        photos = config.get_profile("Photos")

        assert config.app.log_level == "WARNING"
        assert config.settings.exclusion_patterns == ["*.bak"]
        assert docs.backup_versions == 2
        assert docs.auto_sync_enabled is True
        assert photos.backup_versions == 5
        assert photos.schedule == "daily"
        assert photos.status == ProfileStatus.IDLE.value
        assert config.get_profile("Music") is None

    def test_env_var_override(self, config_file, monkeypatch):
        """Test environment variable overrides."""
        monkeypatch.setenv("SYNC_LOG_LEVEL", "debug")
        monkeypatch.setenv("SYNC_DEBOUNCE_MS", "500")
        monkeypatch.setenv("SYNC_DEFAULT_BACKUP_VERSIONS", "7")
        monkeypatch.setenv("SYNC_EXCLUSION_PATTERNS", "*.iso, *.bak ,")
        monkeypatch.setenv("SYNC_JSON_LOGS", "true")

        config = ConfigLoader(str(config_file)).load()

        assert config.app.log_level == "DEBUG"
        assert config.app.json_logs is True
        assert config.settings.debounce_ms == 500
        assert config.settings.exclusion_patterns == ["*.bak", "*.iso"]
        # Only profiles without their own retention inherit the override
        assert config.get_profile("Photos").backup_versions == 7
        assert config.get_profile("Documents").backup_versions == 2

    def test_log_file_env_enables_file_logging(self, tmp_path, monkeypatch):
        """Test SYNC_LOG_FILE turns file logging on."""
        monkeypatch.setenv("SYNC_LOG_FILE", str(tmp_path / "sync.log"))

        config = ConfigLoader(str(tmp_path / "missing.yaml")).load()

        assert config.app.log_to_file is True
        assert config.app.log_file_path == str(tmp_path / "sync.log")

    def test_invalid_yaml_raises_error(self, tmp_path):
        """Test malformed YAML is reported as ValueError."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("profiles: [unclosed\n")

        with pytest.raises(ValueError, match="Failed to parse YAML"):
            ConfigLoader(str(config_path)).load()

    def test_non_mapping_root_rejected(self, tmp_path):
        """Test a YAML list at the root is rejected."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError, match="mapping"):
            ConfigLoader(str(config_path)).load()

    def test_reload_picks_up_changes(self, config_file):
        """Test reload re-reads the file."""
        loader = ConfigLoader(str(config_file))
        loader.load()

        config_file.write_text("profiles: []\n")
        config = loader.reload()

        assert config.profiles == []
        assert loader.config is config


class TestSchema:
    """Test suite for configuration models."""

    def test_duplicate_profile_names_rejected(self):
        """Test profile names must be unique."""
        profile = {"name": "A", "source_folder": "/a", "destination_folder": "/b"}

        with pytest.raises(ValidationError):
            Config(profiles=[profile, dict(profile)])

    @pytest.mark.parametrize("versions", [0, -1])
    def test_backup_versions_must_be_positive(self, versions):
        """Test retention below one is rejected."""
        with pytest.raises(ValidationError):
            SyncProfile(
                name="A", source_folder="/a", destination_folder="/b",
                backup_versions=versions
            )

    def test_blank_name_rejected(self):
        """Test empty profile names are rejected."""
        with pytest.raises(ValidationError):
            SyncProfile(name="  ", source_folder="/a", destination_folder="/b")

    def test_default_backup_folder(self, tmp_path, monkeypatch):
        """Test backups default to Documents/SyncManagerBackups/<name>."""
        monkeypatch.setenv("HOME", str(tmp_path))
        profile = SyncProfile(name="Work", source_folder="/a", destination_folder="/b", backup_folder="")

        assert profile.backup_folder is None
        assert profile.get_backup_folder() == tmp_path / "Documents" / "SyncManagerBackups" / "Work"

    def test_explicit_backup_folder(self):
        """Test an explicit backup root is used as-is."""
        profile = SyncProfile(
            name="Work", source_folder="/a", destination_folder="/b",
            backup_folder="/backups/work"
        )

        assert profile.get_backup_folder() == Path("/backups/work")

    def test_status_assignment_validated(self):
        """Test status updates go through validation."""
        profile = SyncProfile(name="A", source_folder="/a", destination_folder="/b")

        profile.status = ProfileStatus.SYNCING.value

        assert profile.status == "Syncing"

    def test_settings_reject_zero_debounce(self):
        """Test shared settings must be positive."""
        with pytest.raises(ValidationError):
            SyncSettings(debounce_ms=0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
