"""
fhirside.facade - FhirSide Top-Level Facade
=============================================

This module implements the FhirSide facade: the single object that wires
the resource stores, the export state layer and the orchestrator together
and owns their lifecycle. The HTTP application holds exactly one instance.

Architecture Context:

    ┌──────────────────────────────────────────────────┐
    │                 FhirSide (Facade)                  │
    │                                                   │
    │  ┌─────────────────────────────────────────────┐ │
    │  │         Orchestration Layer                   │ │
    │  │  ExportOrchestrator                          │ │
    │  └─────────────────────┬───────────────────────┘ │
    │                        │                          │
    │  ┌─────────────────────▼───────────────────────┐ │
    │  │         Infrastructure Layer                  │ │
    │  │  JobRegistry, ArtifactStore                   │ │
    │  └─────────────────────┬───────────────────────┘ │
    │                        │                          │
    │  ┌─────────────────────▼───────────────────────┐ │
    │  │         Resource Layer                        │ │
    │  │  ResourceRepository, NdjsonEncoder            │ │
    │  └─────────────────────────────────────────────┘ │
    └──────────────────────────────────────────────────┘

Usage:
    >>> from fhirside.facade import FhirSide
    >>> from fhirside.core.config import FhirSideConfig
    >>>
    >>> fhir = FhirSide(FhirSideConfig())
    >>> await fhir.initialize()
    >>> job = await fhir.start_export(ExportScope.SYSTEM, "http://localhost:8000")
    >>> await fhir.shutdown()

    Or with async context manager:
    >>> async with FhirSide(config) as fhir:
    ...     job = await fhir.start_export(ExportScope.PATIENT, base_url)
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from fhirside.core.config import FhirSideConfig
from fhirside.core.enums import ExportScope
from fhirside.core.models import ExportJob
from fhirside.infrastructure.artifact_store import ArtifactStore, InMemoryArtifactStore
from fhirside.infrastructure.job_registry import InMemoryJobRegistry, JobRegistry
from fhirside.orchestration.export_orchestrator import ExportOrchestrator
from fhirside.resources.encoder import NdjsonEncoder
from fhirside.resources.seed import SAMPLE_RECORDS
from fhirside.resources.store import ResourceRepository


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


class FhirSide:
    """Top-level facade for the FhirSide sandbox server.

    Lifecycle:
        1. ``FhirSide(config)``   → build every component
        2. ``await initialize()`` → connect the job registry
        3. serve requests
        4. ``await shutdown()``   → fail in-flight exports, drop job state

    Attributes:
        _config: FhirSide configuration.
        _resources: Resource stores, seeded when configured.
        _job_registry: Export job storage.
        _artifact_store: Export file storage.
        _orchestrator: Bulk export orchestrator.
        _initialized: Whether initialize() has been called.
    """

    def __init__(
        self,
        config: Optional[FhirSideConfig] = None,
        *,
        resources: Optional[ResourceRepository] = None,
        job_registry: Optional[JobRegistry] = None,
        artifact_store: Optional[ArtifactStore] = None,
        encoder: Optional[NdjsonEncoder] = None,
    ) -> None:
        """Initialize the facade.

        Args:
            config: Configuration. Defaults to FhirSideConfig(), which reads
                FHIRSIDE_* environment variables.
            resources: Optional resource repository. Defaults to in-memory
                stores, seeded with sample records if ``seed_sample_data``.
            job_registry: Optional job registry. Defaults to InMemoryJobRegistry.
            artifact_store: Optional artifact store. Defaults to InMemoryArtifactStore.
            encoder: Optional NDJSON encoder.
        """
        self._config = config or FhirSideConfig()

        # --- Resource Layer ---
        if resources is None:
            seed = SAMPLE_RECORDS if self._config.seed_sample_data else None
            resources = ResourceRepository.in_memory(seed=seed)
        self._resources = resources

        # --- Infrastructure Layer ---
        self._job_registry = job_registry or InMemoryJobRegistry()
        self._artifact_store = artifact_store or InMemoryArtifactStore()

        # --- Orchestration Layer ---
        self._orchestrator = ExportOrchestrator.from_config(
            self._config.export,
            resources=self._resources,
            job_registry=self._job_registry,
            artifact_store=self._artifact_store,
            encoder=encoder,
        )

        self._initialized = False
        self._logger = logger.bind(component="fhirside")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def config(self) -> FhirSideConfig:
        return self._config

    @property
    def resources(self) -> ResourceRepository:
        return self._resources

    @property
    def job_registry(self) -> JobRegistry:
        return self._job_registry

    @property
    def artifact_store(self) -> ArtifactStore:
        return self._artifact_store

    @property
    def orchestrator(self) -> ExportOrchestrator:
        return self._orchestrator

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def initialize(self) -> None:
        """Connect the export state layer.

        Idempotent: Safe to call multiple times.
        """
        if self._initialized:
            self._logger.debug("fhirside_already_initialized")
            return

        self._logger.info("fhirside_initializing", environment=self._config.environment)
        await self._job_registry.connect()

        self._initialized = True
        self._logger.info(
            "fhirside_initialized",
            resource_types=[rt.value for rt in self._resources.resource_types],
        )

    async def shutdown(self) -> None:
        """Fail every running export, then disconnect the job registry.

        Idempotent: Safe to call multiple times.
        """
        if not self._initialized:
            self._logger.debug("fhirside_not_initialized_skipping_shutdown")
            return

        self._logger.info("fhirside_shutting_down")
        await self._orchestrator.shutdown()
        await self._job_registry.disconnect()

        self._initialized = False
        self._logger.info("fhirside_shutdown_complete")

    # =========================================================================
    # Async Context Manager
    # =========================================================================

    async def __aenter__(self) -> FhirSide:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()

    # =========================================================================
    # Export Shortcuts
    # =========================================================================

    async def start_export(
        self,
        scope: ExportScope,
        base_url: str,
        request_url: Optional[str] = None,
    ) -> ExportJob:
        """Start a bulk export.

        Raises:
            RuntimeError: If FhirSide has not been initialized.
        """
        self._ensure_initialized()
        return await self._orchestrator.start_export(scope, base_url, request_url)

    async def wait_for_export(
        self, job_id: str, timeout: Optional[float] = None
    ) -> Optional[ExportJob]:
        """Wait for an export to finish and return its final snapshot."""
        self._ensure_initialized()
        return await self._orchestrator.wait_for_job(job_id, timeout=timeout)

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError(
                "FhirSide has not been initialized. "
                "Call 'await fhir.initialize()' first or use "
                "'async with FhirSide() as fhir:'."
            )
