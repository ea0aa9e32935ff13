"""Tests for the configuration module."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from pydantic import ValidationError

from tasksync.config import (
    CONFIG_DIR_NAME,
    CONFIG_FILE_NAME,
    Settings,
    dump_settings,
    load_settings,
    read_config_file,
)


@pytest.fixture
def clean_cwd(tmp_path):
    """Run inside an empty directory with no TASKSYNC_* variables."""
    original_cwd = os.getcwd()
    env = {k: v for k, v in os.environ.items() if not k.startswith("TASKSYNC_")}
    with patch.dict(os.environ, env, clear=True):
        os.chdir(tmp_path)
        try:
            yield tmp_path
        finally:
            os.chdir(original_cwd)


class TestSettings:
    """Test Settings class."""

    def test_default_values(self, clean_cwd):
        """Test default configuration values."""
        settings = Settings()
        assert settings.enabled
        assert settings.section_header == "## ⚡ High Priority Tasks"
        assert settings.task_limit == 5
        assert settings.debounce_ms == 3500
        assert settings.include_highest
        assert settings.include_high
        assert settings.enable_reverse_sync
        assert settings.excluded_folders == []
        assert settings.daily_note_folder == ""
        assert settings.daily_note_format == "%Y-%m-%d"
        assert settings.log_level == "INFO"
        assert settings.vault_root == clean_cwd.resolve()

    def test_custom_values(self, clean_cwd):
        """Test values from TASKSYNC_* environment variables."""
        with patch.dict(
            os.environ,
            {
                "TASKSYNC_TASK_LIMIT": "0",
                "TASKSYNC_INCLUDE_HIGH": "false",
                "TASKSYNC_DAILY_NOTE_FOLDER": "Journal",
                "TASKSYNC_LOG_LEVEL": "DEBUG",
            },
        ):
            settings = Settings()
            assert settings.task_limit == 0
            assert not settings.include_high
            assert settings.daily_note_folder == "Journal"
            assert settings.log_level == "DEBUG"

    def test_comma_separated_lists(self, clean_cwd):
        """Test that exclusion lists parse from comma-separated strings."""
        with patch.dict(
            os.environ,
            {
                "TASKSYNC_EXCLUDED_FOLDERS": "Archive, Templates,",
                "TASKSYNC_EXCLUDED_FILE_NAMES": "Session Log.md",
            },
        ):
            settings = Settings()
            assert settings.excluded_folders == ["Archive", "Templates"]
            assert settings.excluded_file_names == ["Session Log.md"]
            assert settings.excluded_files == []

            rules = settings.exclusion_rules
            assert rules.folders == ("Archive", "Templates")
            assert rules.is_excluded("Templates/Daily.md")

    def test_debounce_clamped(self, clean_cwd):
        """Test that the debounce delay is clamped to its range."""
        assert Settings(debounce_ms=20).debounce_ms == 500
        assert Settings(debounce_ms=60000).debounce_ms == 10000
        assert Settings(debounce_ms=1500).debounce_seconds == 1.5

    def test_negative_limit_raises(self, clean_cwd):
        """Test that a negative task limit is rejected."""
        with pytest.raises(ValidationError):
            Settings(task_limit=-1)

    def test_config_paths(self, clean_cwd):
        """Test config directory and file paths."""
        settings = Settings(vault_root=clean_cwd)
        assert settings.config_dir == clean_cwd.resolve() / CONFIG_DIR_NAME
        assert settings.config_file.name == CONFIG_FILE_NAME


class TestLoadSettings:
    """Test load_settings function."""

    def test_load_from_specified_root(self, clean_cwd):
        """Test loading settings with specified root."""
        root = clean_cwd / "vault"
        root.mkdir()

        settings = load_settings(root)

        assert settings.vault_root == root.resolve()

    def test_config_file_overrides_environment(self, clean_cwd):
        """Test that the YAML file wins over the environment."""
        root = clean_cwd
        config_dir = root / CONFIG_DIR_NAME
        config_dir.mkdir()
        (config_dir / CONFIG_FILE_NAME).write_text(
            "task_limit: 3\nexcluded_folders: [Archive, Templates]\n",
            encoding="utf-8",
        )

        with patch.dict(os.environ, {"TASKSYNC_TASK_LIMIT": "9"}):
            settings = load_settings(root)

        assert settings.task_limit == 3
        assert settings.excluded_folders == ["Archive", "Templates"]

    def test_env_file_in_root(self, clean_cwd):
        """Test that a .env file in the vault root is read."""
        (clean_cwd / ".env").write_text(
            "TASKSYNC_DAILY_NOTE_FOLDER=Journal\n", encoding="utf-8"
        )

        settings = load_settings(clean_cwd)

        assert settings.daily_note_folder == "Journal"

    def test_invalid_settings_exit(self, clean_cwd, capsys):
        """Test that invalid settings print help and exit."""
        config_dir = clean_cwd / CONFIG_DIR_NAME
        config_dir.mkdir()
        (config_dir / CONFIG_FILE_NAME).write_text("task_limit: -5\n", encoding="utf-8")

        with pytest.raises(SystemExit):
            load_settings(clean_cwd)

        assert "Configuration Error" in capsys.readouterr().out


class TestConfigFile:
    """Test YAML settings file helpers."""

    def test_missing_file(self, tmp_path: Path):
        """Test that a missing file yields no values."""
        assert read_config_file(tmp_path / "nope.yaml") == {}

    def test_invalid_yaml(self, tmp_path: Path):
        """Test that unparsable YAML is ignored."""
        path = tmp_path / "config.yaml"
        path.write_text("task_limit: [unclosed\n", encoding="utf-8")
        assert read_config_file(path) == {}

    def test_non_mapping(self, tmp_path: Path):
        """Test that a YAML list is ignored."""
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        assert read_config_file(path) == {}

    def test_dump_settings(self, clean_cwd):
        """Test that dumped settings read back as YAML."""
        settings = Settings(task_limit=2, excluded_folders=["Archive"])

        data = yaml.safe_load(dump_settings(settings))

        assert data["task_limit"] == 2
        assert data["excluded_folders"] == ["Archive"]
        assert data["section_header"] == "## ⚡ High Priority Tasks"
