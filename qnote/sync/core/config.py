"""
Configuration Management.

Loads secrets from config/.env and settings from config/settings/*.yaml.
No hardcoded values in code; all configuration comes from these sources.

Secrets (.env):
    REMOTE_API_TOKEN

Settings (YAML):
    application.yaml   - App identity and environment
    database.yaml      - Local cache (SQLite) connection and paging
    logging.yaml       - Logging configuration
    sync.yaml          - Size ceiling, parallelism, retry and breaker policy
    remote.yaml        - Remote store backend selection and endpoint
    connectivity.yaml  - Connectivity probe target and interval
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from qnote.sync.core.config_schema import (
    ApplicationSchema,
    ConnectivitySchema,
    DatabaseSchema,
    LoggingSchema,
    RemoteSchema,
    SyncSchema,
)


def find_project_root() -> Path:
    """Find project root by looking for .project_root marker file."""
    current = Path.cwd()
    while current != current.parent:
        if (current / ".project_root").exists():
            return current
        current = current.parent
    raise RuntimeError("Project root not found. Ensure .project_root file exists.")


def validate_project_root() -> Path:
    """
    Validate that the project root can be found.

    Raises SystemExit with a clear message if .project_root is not found.
    Use this in entry scripts before any configuration loading.
    """
    try:
        return find_project_root()
    except RuntimeError as e:
        raise SystemExit(f"Error: {e}") from e


def load_yaml_config(filename: str) -> dict[str, Any]:
    """Load a YAML configuration file from config/settings/."""
    project_root = find_project_root()
    config_path = project_root / "config" / "settings" / filename

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


class Settings(BaseSettings):
    """Secrets loaded from config/.env. Only passwords, tokens, and keys."""

    remote_api_token: str | None = None

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def _load_validated(schema_cls: type, filename: str) -> Any:
    """Load YAML and validate against schema. Returns typed model instance."""
    raw = load_yaml_config(filename)
    try:
        return schema_cls(**raw)
    except ValidationError as e:
        raise ValueError(
            f"Invalid configuration in {filename}:\n{e}"
        ) from e


class AppConfig:
    """
    Application configuration loaded from YAML files.

    Each YAML file is validated against its Pydantic schema at load time.
    Missing keys, wrong types, or unknown fields raise a clear error
    immediately instead of causing cryptic KeyErrors later.

    Properties return typed Pydantic model instances with attribute access.
    """

    def __init__(self) -> None:
        self._application = _load_validated(ApplicationSchema, "application.yaml")
        self._database = _load_validated(DatabaseSchema, "database.yaml")
        self._logging = _load_validated(LoggingSchema, "logging.yaml")
        self._sync = _load_validated(SyncSchema, "sync.yaml")
        self._remote = _load_validated(RemoteSchema, "remote.yaml")
        self._connectivity = _load_validated(ConnectivitySchema, "connectivity.yaml")

    @property
    def application(self) -> ApplicationSchema:
        """Application settings."""
        return self._application

    @property
    def database(self) -> DatabaseSchema:
        """Local cache settings."""
        return self._database

    @property
    def logging(self) -> LoggingSchema:
        """Logging settings."""
        return self._logging

    @property
    def sync(self) -> SyncSchema:
        """Sync engine policy."""
        return self._sync

    @property
    def remote(self) -> RemoteSchema:
        """Remote store settings."""
        return self._remote

    @property
    def connectivity(self) -> ConnectivitySchema:
        """Connectivity monitor settings."""
        return self._connectivity


@lru_cache
def get_settings() -> Settings:
    """Get cached secrets instance. Resolves .env path from project root."""
    env_path = find_project_root() / "config" / ".env"
    return Settings(_env_file=str(env_path))


@lru_cache
def get_app_config() -> AppConfig:
    """Get cached application configuration."""
    return AppConfig()


def get_cache_url() -> str:
    """
    Construct the local cache database URL from database.yaml.

    Relative SQLite paths are resolved against the project root so the
    cache file location does not depend on the working directory.

    Returns:
        SQLAlchemy async URL string.
    """
    db = get_app_config().database
    path = Path(db.path)
    if not path.is_absolute():
        path = find_project_root() / path
    return f"sqlite+aiosqlite:///{path}"
