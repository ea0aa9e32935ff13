"""Configuration management for tasksync."""

import sys
from pathlib import Path
from typing import Annotated, Any, Literal

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from tasksync.tasks.scanner import ExclusionRules

DEBOUNCE_MIN_MS = 500
DEBOUNCE_MAX_MS = 10000

CONFIG_DIR_NAME = ".tasksync"
CONFIG_FILE_NAME = "config.yaml"


class Settings(BaseSettings):
    """tasksync configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="TASKSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Vault
    vault_root: Path = Field(
        default_factory=Path.cwd,
        description="Root directory of the Markdown vault",
    )
    daily_note_folder: str = Field(
        default="",
        description="Vault-relative folder holding daily notes",
    )
    daily_note_format: str = Field(
        default="%Y-%m-%d",
        description="strftime format of daily note file names",
    )

    @field_validator("vault_root", mode="before")
    @classmethod
    def resolve_root(cls, v: str | Path) -> Path:
        """Resolve and validate root path."""
        return Path(v).expanduser().resolve()

    # Sync behaviour
    enabled: bool = Field(
        default=True,
        description="Turn task syncing on or off",
    )
    section_header: str = Field(
        default="## ⚡ High Priority Tasks",
        description="Heading in the daily note where tasks are synced",
    )
    task_limit: int = Field(
        default=5,
        ge=0,
        description="Maximum tasks per full sync (0 = no limit)",
    )
    debounce_ms: int = Field(
        default=3500,
        description="Delay after the last change before syncing",
    )

    @field_validator("debounce_ms", mode="after")
    @classmethod
    def clamp_debounce(cls, v: int) -> int:
        """Clamp the debounce delay to 500-10000 ms."""
        return max(DEBOUNCE_MIN_MS, min(DEBOUNCE_MAX_MS, v))

    @property
    def debounce_seconds(self) -> float:
        """Debounce delay in seconds."""
        return self.debounce_ms / 1000

    # Priority filters
    include_highest: bool = Field(
        default=True,
        description="Sync tasks marked with the highest priority emoji (⏫)",
    )
    include_high: bool = Field(
        default=True,
        description="Sync tasks marked with the high priority emoji (🔺)",
    )

    # Two-way sync
    enable_reverse_sync: bool = Field(
        default=True,
        description="Mirror checkbox changes between daily note and sources",
    )

    # Exclusions
    excluded_folders: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Folders to ignore when scanning",
    )
    excluded_files: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Files to ignore when scanning (full path)",
    )
    excluded_file_names: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="File names to ignore in any directory",
    )

    @field_validator(
        "excluded_folders", "excluded_files", "excluded_file_names", mode="before"
    )
    @classmethod
    def parse_list(cls, v: str | list[str] | None) -> list[str]:
        """Parse a comma-separated string or list."""
        if v is None or v == "":
            return []
        if isinstance(v, list):
            return [str(x).strip() for x in v if str(x).strip()]
        # Parse comma-separated string: "Archive,Templates"
        return [x.strip() for x in str(v).split(",") if x.strip()]

    @property
    def exclusion_rules(self) -> ExclusionRules:
        """Exclusion rules for the scanner."""
        return ExclusionRules(
            folders=tuple(self.excluded_folders),
            files=tuple(self.excluded_files),
            file_names=tuple(self.excluded_file_names),
        )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    @property
    def config_dir(self) -> Path:
        """Path to .tasksync directory."""
        return self.vault_root / CONFIG_DIR_NAME

    @property
    def config_file(self) -> Path:
        """Path to the YAML settings file."""
        return self.config_dir / CONFIG_FILE_NAME


def read_config_file(path: Path) -> dict[str, Any]:
    """Read YAML settings from a file.

    Args:
        path: Path to the YAML file.

    Returns:
        Mapping of setting names to values (empty if missing or invalid).
    """
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError:
        return {}
    return data if isinstance(data, dict) else {}


def dump_settings(settings: Settings) -> str:
    """Render the effective settings as YAML."""
    data = settings.model_dump(mode="json")
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


def load_settings(root: Path | None = None) -> Settings:
    """Load settings from environment, .env and the YAML settings file.

    Values in ``<root>/.tasksync/config.yaml`` take precedence over the
    environment.

    Args:
        root: Optional vault root override.

    Returns:
        Validated Settings instance.

    Raises:
        SystemExit: If the settings are invalid.
    """
    root = root or Path.cwd()
    env_file = root / ".env"
    if not env_file.exists():
        env_file = root / CONFIG_DIR_NAME / ".env"

    file_values = read_config_file(root / CONFIG_DIR_NAME / CONFIG_FILE_NAME)
    file_values.setdefault("vault_root", root)

    try:
        if env_file.exists():
            # _env_file is a valid pydantic-settings parameter
            return Settings(_env_file=env_file, **file_values)  # type: ignore[call-arg]
        return Settings(**file_values)

    except ValidationError as e:
        _print_config_help(e)
        sys.exit(1)


def _print_config_help(error: Exception) -> None:
    """Print helpful message for invalid configuration."""
    print("\n" + "=" * 60)
    print("tasksync Configuration Error")
    print("=" * 60 + "\n")

    print("Settings are read from TASKSYNC_* environment variables, a .env")
    print(f"file, and {CONFIG_DIR_NAME}/{CONFIG_FILE_NAME} in the vault root.")
    print()
    print("Example .env file:")
    print("-" * 40)
    print("TASKSYNC_SECTION_HEADER=## ⚡ High Priority Tasks")
    print("TASKSYNC_DAILY_NOTE_FOLDER=Daily")
    print("TASKSYNC_TASK_LIMIT=5")
    print("TASKSYNC_DEBOUNCE_MS=3500")
    print("TASKSYNC_EXCLUDED_FOLDERS=Archive,Templates")
    print("-" * 40)
    print()

    # Print the actual validation error for debugging
    print(f"Validation error: {error}")
    print()
