"""
fhirside.infrastructure.job_registry - Export Job Registry
============================================================

This module implements the Job Registry: the authoritative, concurrency-safe
store of export jobs. A job "exists" exactly when the registry holds it.

Architecture:

    ┌──────────────┐   put / update       ┌──────────────────┐
    │ Orchestrator  │ ──────────────────→  │                  │
    │ (background)  │                      │   Job Registry   │
    └──────────────┘                      │                  │
    ┌──────────────┐   get / remove        │  id → ExportJob  │
    │ Gateway       │ ──────────────────→  │  (snapshots)     │
    └──────────────┘                      └──────────────────┘

Snapshot Semantics:
    ExportJob is frozen. ``update()`` applies a pure function
    ``ExportJob → ExportJob`` under the registry lock and swaps the stored
    reference. A concurrent ``get()`` returns either the old snapshot or the
    new one, never a half-appended output list.

Implementations:
    - JobRegistry (ABC):     Abstract interface
    - InMemoryJobRegistry:   Dict + asyncio.Lock, single process
    - (Future) a shared store would be required for multi-instance deployment
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Optional

import structlog

from fhirside.core.exceptions import DuplicateJobError, ExportJobNotFoundError, JobStateError
from fhirside.core.models import ExportJob

logger = structlog.get_logger()

JobMutation = Callable[[ExportJob], ExportJob]


# =============================================================================
# Abstract Base Class: JobRegistry
# =============================================================================
class JobRegistry(ABC):
    """Abstract base class for export job storage.

    Example:
        >>> async def track(registry: JobRegistry, job: ExportJob):
        ...     await registry.put(job)
        ...     await registry.update(job.id, lambda j: j.mark_completed())
    """

    # -------------------------------------------------------------------------
    # Connection Lifecycle
    # -------------------------------------------------------------------------
    @abstractmethod
    async def connect(self) -> None:
        """Prepare the backend for use."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the backend. In-memory implementations drop all jobs."""

    # -------------------------------------------------------------------------
    # Job Operations
    # -------------------------------------------------------------------------
    @abstractmethod
    async def put(self, job: ExportJob) -> None:
        """Insert a new job.

        Raises:
            DuplicateJobError: If ``job.id`` is already registered.
        """

    @abstractmethod
    async def get(self, job_id: str) -> Optional[ExportJob]:
        """Return the current snapshot of a job, or None."""

    @abstractmethod
    async def remove(self, job_id: str) -> bool:
        """Remove a job. Returns True if it was present."""

    @abstractmethod
    async def update(self, job_id: str, mutation: JobMutation) -> ExportJob:
        """Atomically replace a job with ``mutation(current)``.

        Args:
            job_id: The job to update.
            mutation: Pure function producing the next snapshot. Exceptions
                it raises propagate and leave the stored job untouched.

        Returns:
            The snapshot that was stored.

        Raises:
            ExportJobNotFoundError: If the job is not registered.
            JobStateError: If the mutation changes the job id.
        """

    @abstractmethod
    async def list_jobs(self) -> list[ExportJob]:
        """Return every registered job, oldest request first."""

    @abstractmethod
    async def count(self) -> int:
        """Number of registered jobs."""


# =============================================================================
# InMemoryJobRegistry Implementation
# =============================================================================
# Key Data Structures:
#   _jobs: dict[job_id, ExportJob]
#   _lock: asyncio.Lock serializing every write. Reads of a single key are a
#          plain dict lookup of an immutable snapshot and need no lock.
# =============================================================================
class InMemoryJobRegistry(JobRegistry):
    """In-memory job registry.

    Data is lost when the process ends; durable job storage across restarts
    is out of scope.

    Example:
        >>> registry = InMemoryJobRegistry()
        >>> await registry.put(job)
        >>> snapshot = await registry.get(job.id)
    """

    def __init__(self) -> None:
        self._jobs: dict[str, ExportJob] = {}
        self._lock = asyncio.Lock()
        self._connected = False
        self._logger = logger.bind(component="in_memory_job_registry")

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True
        self._logger.info("job_registry_connected")

    async def disconnect(self) -> None:
        async with self._lock:
            self._jobs.clear()
        self._connected = False
        self._logger.info("job_registry_disconnected")

    async def put(self, job: ExportJob) -> None:
        async with self._lock:
            if job.id in self._jobs:
                raise DuplicateJobError(job.id)
            self._jobs[job.id] = job
        self._logger.debug("job_registered", job_id=job.id, kind=job.kind.value)

    async def get(self, job_id: str) -> Optional[ExportJob]:
        return self._jobs.get(job_id)

    async def remove(self, job_id: str) -> bool:
        async with self._lock:
            removed = self._jobs.pop(job_id, None) is not None
        if removed:
            self._logger.debug("job_removed", job_id=job_id)
        return removed

    async def update(self, job_id: str, mutation: JobMutation) -> ExportJob:
        async with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                raise ExportJobNotFoundError(job_id)

            updated = mutation(current)
            if updated.id != job_id:
                raise JobStateError(
                    message="Job mutation must not change the job id",
                    job_id=job_id,
                    error_code="JOB_ID_CHANGED",
                    details={"new_id": updated.id},
                )
            self._jobs[job_id] = updated

        self._logger.debug(
            "job_updated",
            job_id=job_id,
            status=updated.status.value,
            outputs=len(updated.outputs),
        )
        return updated

    async def list_jobs(self) -> list[ExportJob]:
        return sorted(self._jobs.values(), key=lambda j: j.requested_at)

    async def count(self) -> int:
        return len(self._jobs)
