"""
fhirside.core.config - Configuration Management
=================================================

This module provides the configuration system for FhirSide. Configuration
can be loaded from multiple sources with the following priority (highest first):

    1. Explicit constructor arguments
    2. Environment variables (prefixed with FHIRSIDE_)
    3. YAML configuration file (fhirside.yaml)
    4. Default values defined in the models below

Architecture Context:
    Configuration flows DOWN through the system. The top-level FhirSideConfig
    is created once and handed to the FhirSide facade, which passes the
    relevant sections to each component:

        FhirSideConfig
            ├── ServerConfig  → uvicorn (python -m fhirside)
            ├── ExportConfig  → ExportOrchestrator
            └── (other)       → logging, resource seeding

Usage:
    # Load from environment variables:
    config = FhirSideConfig()

    # Load from YAML file:
    config = load_config("fhirside.yaml")

    # Explicit overrides:
    config = FhirSideConfig(log_level="DEBUG", seed_sample_data=False)

Environment Variables:
    FHIRSIDE_LOG_LEVEL=DEBUG
    FHIRSIDE_LOG_FORMAT=json
    FHIRSIDE_SERVER__PORT=8080
    FHIRSIDE_EXPORT__TIMEOUT_SECONDS=120
    FHIRSIDE_EXPORT__DISCARD_PARTIAL_ON_FAILURE=true
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, EnvSettingsSource

from fhirside.core.enums import DEFAULT_EXPORT_ORDER, ResourceType
from fhirside.core.exceptions import ConfigurationError


# =============================================================================
# Server Configuration
# =============================================================================
class ServerConfig(BaseModel):
    """Where the HTTP server listens when started with ``python -m fhirside``."""

    host: str = Field(
        default="127.0.0.1",
        description="Interface to bind",
    )
    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="TCP port to bind",
    )


# =============================================================================
# Export Configuration
# =============================================================================
# Controls the asynchronous bulk export subsystem.
#
#   timeout_seconds:
#       Upper bound on a single job's background execution. A job that
#       exceeds it transitions to FAILED. None disables the bound.
#
#   discard_partial_on_failure:
#       False keeps the artifacts of categories that finished before a
#       failure downloadable. True rolls them back when the job fails.
# =============================================================================
class ExportConfig(BaseModel):
    """Configuration for bulk export jobs.

    Attributes:
        base_path: Route prefix of the FHIR API; used to build status and
            download URLs.
        timeout_seconds: Maximum background execution time per job.
        discard_partial_on_failure: Roll back finished artifacts on failure.
        resource_types: Categories to export, in output order.
    """

    base_path: str = Field(
        default="/fhir",
        description="Route prefix of the FHIR API",
    )
    timeout_seconds: Optional[float] = Field(
        default=300.0,
        gt=0,
        description="Per-job execution timeout in seconds (None = unbounded)",
    )
    discard_partial_on_failure: bool = Field(
        default=False,
        description="Remove already-written artifacts when a job fails",
    )
    resource_types: list[ResourceType] = Field(
        default_factory=lambda: list(DEFAULT_EXPORT_ORDER),
        description="Resource categories to export, in output order",
    )

    @field_validator("resource_types")
    @classmethod
    def _unique_non_empty(cls, value: list[ResourceType]) -> list[ResourceType]:
        if not value:
            raise ValueError("resource_types must list at least one category")
        if len(set(value)) != len(value):
            raise ValueError("resource_types must not contain duplicates")
        return value

    @field_validator("base_path")
    @classmethod
    def _normalize_base_path(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if value and not value.startswith("/"):
            value = f"/{value}"
        return value


# =============================================================================
# Main Configuration
# =============================================================================
# Environment Variable Mapping:
#   FHIRSIDE_LOG_LEVEL              → config.log_level
#   FHIRSIDE_SEED_SAMPLE_DATA       → config.seed_sample_data
#   FHIRSIDE_SERVER__PORT           → config.server.port
#   FHIRSIDE_EXPORT__TIMEOUT_SECONDS → config.export.timeout_seconds
# =============================================================================
class FhirSideConfig(BaseSettings):
    """Top-level configuration for FhirSide.

    Attributes:
        environment: Deployment environment.
        log_level: Python logging level name.
        log_format: "console" for human-readable logs, "json" for aggregators.
        seed_sample_data: Populate the resource stores with sandbox records.
        server: HTTP server settings (see ServerConfig).
        export: Bulk export settings (see ExportConfig).

    Example:
        >>> config = FhirSideConfig(
        ...     log_level="DEBUG",
        ...     export=ExportConfig(timeout_seconds=30),
        ... )
    """

    environment: Literal["dev", "staging", "prod"] = Field(
        default="dev",
        description="Deployment environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        description="Log renderer: console or json",
    )
    seed_sample_data: bool = Field(
        default=True,
        description="Seed the in-memory resource stores with sample records",
    )

    server: ServerConfig = Field(
        default_factory=ServerConfig,
        description="HTTP server configuration",
    )
    export: ExportConfig = Field(
        default_factory=ExportConfig,
        description="Bulk export configuration",
    )

    model_config = {
        "env_prefix": "FHIRSIDE_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()


# =============================================================================
# Configuration Loader
# =============================================================================
def load_config(path: Optional[str] = None) -> FhirSideConfig:
    """Load FhirSide configuration from a YAML file and/or environment variables.

    FHIRSIDE_* environment variables override values from the file, key by
    key, including nested keys such as FHIRSIDE_EXPORT__TIMEOUT_SECONDS.

    Args:
        path: Path to a YAML configuration file. If None, looks for
            'fhirside.yaml' in the current directory and falls back to pure
            defaults + environment variables when it does not exist.

    Returns:
        A fully validated FhirSideConfig instance.

    Raises:
        FileNotFoundError: If an explicit path is provided but doesn't exist.
        ConfigurationError: If the YAML file is malformed or not a mapping.
    """
    if path is None:
        default_path = Path("fhirside.yaml")
        if default_path.exists():
            path = str(default_path)

    yaml_data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(config_path) as f:
            try:
                raw_data = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ConfigurationError(
                    message=f"Invalid YAML in {path}: {exc}",
                    error_code="INVALID_YAML",
                    details={"path": str(path)},
                ) from exc

        if raw_data is None:
            raw_data = {}
        if not isinstance(raw_data, dict):
            raise ConfigurationError(
                message=f"Configuration file {path} must contain a mapping",
                error_code="INVALID_CONFIG_SHAPE",
                details={"path": str(path), "type": type(raw_data).__name__},
            )
        yaml_data = raw_data

    # Constructor arguments outrank the environment, so fold FHIRSIDE_*
    # values over the file before validating.
    env_data = EnvSettingsSource(FhirSideConfig)()
    return FhirSideConfig(**_merge(yaml_data, env_data))


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def get_default_config() -> FhirSideConfig:
    """Create a FhirSideConfig from defaults and environment variables."""
    return FhirSideConfig()
