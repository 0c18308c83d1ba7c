"""
fhirside.infrastructure.artifact_store - Export Artifact Storage
==================================================================

This module provides storage for the encoded output files of bulk export
jobs. Each job owns a namespace of artifacts keyed by file name.

Architecture Context:

    ┌───────────────┐  stage → publish   ┌──────────────────────────┐
    │ Orchestrator   │ ────────────────→  │      ArtifactStore       │
    └───────────────┘                    │                          │
    ┌───────────────┐  get(job, file)    │  job_id ─┬─ Patient.ndjson │
    │ Download route │ ────────────────→  │          └─ Encounter...  │
    └───────────────┘                    └──────────────────────────┘

Visibility Protocol:
    An artifact is written in two steps so that a reader can never download
    a file the status endpoint does not list yet:

        1. stage(job_id, artifact)     content stored, NOT readable
        2. (orchestrator commits the OutputDescriptor in the JobRegistry)
        3. publish(job_id, file_name)  content becomes readable

    ``get`` and ``list_by_job`` only ever return published artifacts.

Immutability:
    Once a file name has been staged for a job it cannot be written again
    until ``remove_all(job_id)`` drops the whole namespace.

Storage Implementations:
    - InMemoryArtifactStore: Dict-based, for development/testing
    - (Future) object storage for large exports

Usage:
    >>> store = InMemoryArtifactStore()
    >>> artifact = Artifact(
    ...     job_id="4f0c...",
    ...     file_name="Patient.ndjson",
    ...     resource_type="Patient",
    ...     content='{"resourceType":"Patient","id":"1"}',
    ...     record_count=1,
    ... )
    >>> await store.stage(artifact)
    >>> await store.publish(artifact.job_id, artifact.file_name)
    >>> retrieved = await store.get("4f0c...", "Patient.ndjson")
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from fhirside.core.exceptions import DuplicateArtifactError, ExportFileNotFoundError


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


# =============================================================================
# Artifact Model
# =============================================================================
class Artifact(BaseModel):
    """One encoded output file of an export job.

    Attributes:
        job_id: ID of the export job that produced this artifact.
        file_name: Name under which the artifact is downloaded.
        resource_type: Category whose records the artifact contains.
        content: The NDJSON body.
        record_count: Number of records (lines) in ``content``.
        created_at: When this artifact was staged.
    """

    model_config = {"frozen": True}

    job_id: str = Field(
        description="ID of the export job that produced this artifact",
    )
    file_name: str = Field(
        description="Download file name, e.g. 'Patient.ndjson'",
    )
    resource_type: str = Field(
        description="Resource category of the records in this artifact",
    )
    content: str = Field(
        description="Encoded NDJSON body",
    )
    record_count: int = Field(
        default=0,
        ge=0,
        description="Number of records encoded into the body",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When this artifact was staged (UTC)",
    )


# =============================================================================
# Abstract Base Class
# =============================================================================
class ArtifactStore(ABC):
    """Abstract interface for export artifact persistence.

    Methods:
        stage(artifact): Store content without making it readable.
        publish(job_id, file_name): Make a staged artifact readable.
        put(artifact): stage + publish.
        get(job_id, file_name): Retrieve one published artifact.
        list_by_job(job_id): Every published artifact of a job.
        discard_staged(job_id): Drop a job's unpublished artifacts.
        remove_all(job_id): Drop a job's whole namespace.
        count(): Total number of published artifacts.
    """

    @abstractmethod
    async def stage(self, artifact: Artifact) -> None:
        """Store an artifact invisibly.

        Raises:
            DuplicateArtifactError: If the file name already exists for the job.
        """
        ...

    @abstractmethod
    async def publish(self, job_id: str, file_name: str) -> Artifact:
        """Make a staged artifact readable.

        Returns:
            The published artifact.

        Raises:
            ExportFileNotFoundError: If nothing is staged under that name.
        """
        ...

    async def put(self, artifact: Artifact) -> Artifact:
        """Stage and immediately publish an artifact."""
        await self.stage(artifact)
        return await self.publish(artifact.job_id, artifact.file_name)

    @abstractmethod
    async def get(self, job_id: str, file_name: str) -> Optional[Artifact]:
        """Return a published artifact, or None if the job or file is absent."""
        ...

    @abstractmethod
    async def list_by_job(self, job_id: str) -> list[Artifact]:
        """Return the published artifacts of a job, oldest first."""
        ...

    @abstractmethod
    async def discard_staged(self, job_id: str) -> int:
        """Drop a job's staged-but-unpublished artifacts.

        Returns:
            Number of artifacts discarded.
        """
        ...

    @abstractmethod
    async def remove_all(self, job_id: str) -> int:
        """Drop every artifact (staged or published) of a job.

        Returns:
            Number of artifacts removed.
        """
        ...

    @abstractmethod
    async def count(self) -> int:
        """Total number of published artifacts across all jobs."""
        ...


# =============================================================================
# In-Memory Implementation
# =============================================================================
# Key Data Structures:
#   _staged:    dict[job_id, dict[file_name, Artifact]]
#   _published: dict[job_id, dict[file_name, Artifact]]
#   _lock:      asyncio.Lock guarding both maps for every write
#
# Readers look up _published only. Writers replace the per-job inner dict
# instead of mutating it, so a reader holding the old inner dict never sees
# it change underneath.
# =============================================================================
class InMemoryArtifactStore(ArtifactStore):
    """In-memory artifact store for development and testing.

    Data is lost when the process exits and is not shared between processes.

    Example:
        >>> store = InMemoryArtifactStore()
        >>> await store.put(artifact)
        >>> files = await store.list_by_job(artifact.job_id)
    """

    def __init__(self) -> None:
        self._staged: dict[str, dict[str, Artifact]] = {}
        self._published: dict[str, dict[str, Artifact]] = {}
        self._lock = asyncio.Lock()
        self._logger = logger.bind(component="in_memory_artifact_store")

    async def stage(self, artifact: Artifact) -> None:
        async with self._lock:
            job_id, file_name = artifact.job_id, artifact.file_name
            if file_name in self._staged.get(job_id, {}) or file_name in self._published.get(job_id, {}):
                raise DuplicateArtifactError(job_id, file_name)

            self._staged[job_id] = {**self._staged.get(job_id, {}), file_name: artifact}

        self._logger.debug(
            "artifact_staged",
            job_id=artifact.job_id,
            file_name=artifact.file_name,
            record_count=artifact.record_count,
        )

    async def publish(self, job_id: str, file_name: str) -> Artifact:
        async with self._lock:
            staged = self._staged.get(job_id, {})
            artifact = staged.get(file_name)
            if artifact is None:
                raise ExportFileNotFoundError(job_id, file_name)

            remaining = {name: a for name, a in staged.items() if name != file_name}
            if remaining:
                self._staged[job_id] = remaining
            else:
                self._staged.pop(job_id, None)

            self._published[job_id] = {**self._published.get(job_id, {}), file_name: artifact}

        self._logger.debug("artifact_published", job_id=job_id, file_name=file_name)
        return artifact

    async def get(self, job_id: str, file_name: str) -> Optional[Artifact]:
        return self._published.get(job_id, {}).get(file_name)

    async def list_by_job(self, job_id: str) -> list[Artifact]:
        artifacts = list(self._published.get(job_id, {}).values())
        return sorted(artifacts, key=lambda a: a.created_at)

    async def discard_staged(self, job_id: str) -> int:
        async with self._lock:
            discarded = len(self._staged.pop(job_id, {}))

        if discarded:
            self._logger.debug("staged_artifacts_discarded", job_id=job_id, discarded=discarded)
        return discarded

    async def remove_all(self, job_id: str) -> int:
        async with self._lock:
            removed = len(self._staged.pop(job_id, {})) + len(self._published.pop(job_id, {}))

        if removed:
            self._logger.debug("artifacts_removed", job_id=job_id, removed=removed)
        return removed

    async def count(self) -> int:
        return sum(len(files) for files in self._published.values())
