"""
fhirside.infrastructure - Export State Layer
==============================================

The two pieces of shared mutable state of the export subsystem. Both own
their synchronization, so callers never lock around them.

    ┌─────────────── ORCHESTRATION LAYER ─────────────────┐
    │  ExportOrchestrator                                  │
    └───────────────┬─────────────────────┬───────────────┘
                    │                     │
    ┌───────────────▼──────┐   ┌──────────▼───────────────┐
    │ JobRegistry (ABC)     │   │ ArtifactStore (ABC)       │
    │  └ InMemoryJobRegistry│   │  └ InMemoryArtifactStore  │
    └──────────────────────┘   └──────────────────────────┘

Usage:
    from fhirside.infrastructure import InMemoryArtifactStore, InMemoryJobRegistry
"""

from fhirside.infrastructure.artifact_store import (
    Artifact,
    ArtifactStore,
    InMemoryArtifactStore,
)
from fhirside.infrastructure.job_registry import (
    InMemoryJobRegistry,
    JobMutation,
    JobRegistry,
)

__all__ = [
    "Artifact",
    "ArtifactStore",
    "InMemoryArtifactStore",
    "InMemoryJobRegistry",
    "JobMutation",
    "JobRegistry",
]
