"""
Configuration Schemas.

Pydantic models defining the expected structure of each YAML config file.
Used by AppConfig to validate configuration at load time. If a YAML file
has missing keys, wrong types, or unknown fields, a clear ValidationError
is raised at startup instead of a cryptic KeyError deep in application code.

Each top-level class corresponds to one file in config/settings/:
    ApplicationSchema   → application.yaml
    DatabaseSchema      → database.yaml
    LoggingSchema       → logging.yaml
    SyncSchema          → sync.yaml
    RemoteSchema        → remote.yaml
    ConnectivitySchema  → connectivity.yaml
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _StrictBase(BaseModel):
    """Base with extra='forbid' so unknown YAML keys are caught immediately."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# application.yaml
# =============================================================================


class ApplicationSchema(_StrictBase):
    name: str
    version: str
    description: str
    environment: str
    debug: bool


# =============================================================================
# database.yaml
# =============================================================================


class DatabaseSchema(_StrictBase):
    path: str
    echo: bool
    page_size: int = Field(gt=0)


# =============================================================================
# logging.yaml
# =============================================================================


class ConsoleHandlerSchema(_StrictBase):
    enabled: bool


class FileHandlerSchema(_StrictBase):
    enabled: bool
    path: str
    max_bytes: int
    backup_count: int


class HandlersSchema(_StrictBase):
    console: ConsoleHandlerSchema
    file: FileHandlerSchema


class LoggingSchema(_StrictBase):
    level: str
    format: str
    handlers: HandlersSchema


# =============================================================================
# sync.yaml
# =============================================================================


class RetrySchema(_StrictBase):
    max_attempts: int = Field(ge=1)
    backoff_multiplier: float = Field(ge=0)
    backoff_max: float = Field(ge=0)


class CircuitBreakerSchema(_StrictBase):
    fail_max: int = Field(ge=1)
    timeout_duration: int = Field(ge=1)


class SyncSchema(_StrictBase):
    content_size_ceiling: int = Field(gt=0)
    max_parallel_operations: int = Field(ge=1)
    pull_page_size: int = Field(gt=0)
    request_timeout_seconds: float = Field(gt=0)
    retry: RetrySchema
    circuit_breaker: CircuitBreakerSchema


# =============================================================================
# remote.yaml
# =============================================================================


class RemoteSchema(_StrictBase):
    backend: Literal["memory", "http"]
    base_url: str
    timeout_seconds: float = Field(gt=0)


# =============================================================================
# connectivity.yaml
# =============================================================================


class ConnectivitySchema(_StrictBase):
    initially_online: bool
    probe_url: str
    probe_interval_seconds: float = Field(gt=0)
    probe_timeout_seconds: float = Field(gt=0)
