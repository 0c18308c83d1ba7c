"""
fhirside.core - Foundation Layer
==================================

This package contains the building blocks that every other FhirSide module
depends on:

    - config:         Configuration management (FhirSideConfig, ExportConfig, ServerConfig)
    - enums:          ResourceType, ExportScope, ExportStatus
    - models:         ExportJob and OutputDescriptor snapshots
    - exceptions:     Custom exception hierarchy for structured error handling
    - observability:  structlog wiring

Dependency Rule:
    core/ depends on NOTHING else in the fhirside package.
"""

from fhirside.core.config import ExportConfig, FhirSideConfig, ServerConfig
from fhirside.core.enums import DEFAULT_EXPORT_ORDER, ExportScope, ExportStatus, ResourceType
from fhirside.core.exceptions import (
    ConfigurationError,
    DuplicateArtifactError,
    DuplicateJobError,
    ExportExecutionError,
    ExportFileNotFoundError,
    ExportJobNotFoundError,
    FhirSideError,
    InvalidResourceError,
    JobStateError,
    NotFoundError,
    ResourceNotFoundError,
)
from fhirside.core.models import ExportJob, OutputDescriptor

__all__ = [
    # Config
    "FhirSideConfig",
    "ExportConfig",
    "ServerConfig",
    # Enums
    "DEFAULT_EXPORT_ORDER",
    "ExportScope",
    "ExportStatus",
    "ResourceType",
    # Models
    "ExportJob",
    "OutputDescriptor",
    # Exceptions
    "FhirSideError",
    "ConfigurationError",
    "NotFoundError",
    "ExportJobNotFoundError",
    "ExportFileNotFoundError",
    "ResourceNotFoundError",
    "DuplicateJobError",
    "DuplicateArtifactError",
    "JobStateError",
    "ExportExecutionError",
    "InvalidResourceError",
]
