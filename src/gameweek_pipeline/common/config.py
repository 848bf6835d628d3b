"""Application configuration loading and models."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator


class DatabaseConfig(BaseModel):
    """Result store (SQLite) configuration."""

    path: str = "data/results.db"


class ResultSourceConfig(BaseModel):
    """SportMonks result source configuration."""

    base_url: str = "https://api.sportmonks.com/v3/football"
    api_token: str = ""
    timeout_seconds: int = 30
    # Fixed delay between single-fixture polls (third-party rate limit)
    request_delay_seconds: float = 0.2


class StorageConfig(BaseModel):
    """File-backed gameweek storage configuration."""

    data_dir: str = "data"
    season: str = "2025-26"

    @property
    def gameweeks_dir(self) -> Path:
        """Directory holding one sub-directory per season."""
        return Path(self.data_dir) / "gameweeks"

    @property
    def memory_dir(self) -> Path:
        """Directory holding version manifests and the performance ledger."""
        return Path(self.data_dir) / "memory"

    @property
    def status_file(self) -> Path:
        """Path of the pipeline status file written by run-pipeline."""
        return Path(self.data_dir) / "pipeline-status.json"


class SyncConfig(BaseModel):
    """Sync window scheduling parameters.

    Defaults are tuned for football: matches finish within ~2h of kickoff,
    so the first poll is at +3h, a backup at +4h, and polling stops at +8h.
    """

    bucket_minutes: int = 15
    sync_after_hours: float = 3.0
    backup_sync_hours: float = 4.0
    expiry_hours: float = 8.0
    recent_window_hours: float = 24.0

    @model_validator(mode="after")
    def _check_offsets(self) -> "SyncConfig":
        if self.bucket_minutes <= 0:
            raise ValueError("bucket_minutes must be positive")
        if not 0 < self.sync_after_hours < self.backup_sync_hours < self.expiry_hours:
            raise ValueError(
                "sync offsets must satisfy 0 < sync_after_hours < "
                "backup_sync_hours < expiry_hours"
            )
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"  # "json" or "console"
    log_file: str | None = None


class AppConfig(BaseModel):
    """Root application configuration."""

    environment: str = Field(default="dev", description="Environment name (dev/prod)")
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    result_source: ResultSourceConfig = Field(default_factory=ResultSourceConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load configuration from a YAML file with environment variable substitution.

    Environment variables can override config values. The following env vars are checked:
    - SPORTMONKS_API_TOKEN: SportMonks API token
    - GAMEWEEK_SEASON: Season directory name (e.g. "2025-26")
    - GAMEWEEK_DATA_DIR: Root data directory
    - DATABASE_PATH: SQLite result store path
    - LOG_LEVEL: Logging level

    Args:
        config_path: Path to the YAML configuration file. When None, defaults
            are used (environment overrides still apply).

    Returns:
        Parsed AppConfig instance.

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist.
        pydantic.ValidationError: If the config values are invalid.
    """
    # Load .env file if python-dotenv is available
    try:
        from dotenv import load_dotenv

        load_dotenv()
    except ImportError:
        pass  # dotenv not installed, rely on system env vars

    raw_config: dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path) as f:
            raw_config = yaml.safe_load(f) or {}

    _apply_env_overrides(raw_config)

    return AppConfig(**raw_config)


def _apply_env_overrides(config: dict[str, Any]) -> None:
    """Apply environment variable overrides to config dict.

    Args:
        config: Configuration dictionary to modify in place.
    """
    for section in ("result_source", "storage", "database", "logging"):
        if not isinstance(config.get(section), dict):
            config[section] = {}

    if token := os.environ.get("SPORTMONKS_API_TOKEN"):
        config["result_source"]["api_token"] = token

    if season := os.environ.get("GAMEWEEK_SEASON"):
        config["storage"]["season"] = season

    if data_dir := os.environ.get("GAMEWEEK_DATA_DIR"):
        config["storage"]["data_dir"] = data_dir

    if db_path := os.environ.get("DATABASE_PATH"):
        config["database"]["path"] = db_path

    if level := os.environ.get("LOG_LEVEL"):
        config["logging"]["level"] = level
