"""
fhirside.orchestration.export_orchestrator - Asynchronous Bulk Export
=======================================================================

This module implements the Export Orchestrator: it creates export jobs,
runs them in the background, and finalizes their status. It is the only
component that mutates a job after creation.

Architecture Context:

    ┌────────────────────────────────────────────────────────────────┐
    │                     Export Orchestrator                          │
    │                                                                │
    │  start_export ──→ JobRegistry.put(RUNNING) ──→ spawn task ──→ return
    │                                                   │            │
    │  background task (one per job):                   ▼            │
    │    for each category in fixed order:                           │
    │      ResourceRepository.list_all(category)                     │
    │      └─ empty? skip (no descriptor, no artifact)               │
    │      NdjsonEncoder.encode_many(records)                        │
    │      ArtifactStore.stage ─→ JobRegistry.update(with_output)    │
    │                          ─→ ArtifactStore.publish              │
    │    JobRegistry.update(mark_completed)                          │
    │                                                                │
    │  any error ──→ JobRegistry.update(mark_failed(message))        │
    └────────────────────────────────────────────────────────────────┘

Execution Model:
    ``start_export`` registers the job and spawns an asyncio task that is
    never awaited by the request that created it. Every exception inside
    the task is caught at the task boundary and turned into a FAILED job;
    nothing propagates to the event loop's default exception handler.

    The task suspends only when it awaits the resource stores, the job
    registry or the artifact store. Jobs run fully concurrently and share
    no state besides the registry and the artifact store.

Ordering Guarantees:
    - Descriptors are appended in the configured category order.
    - For each category the artifact is staged, the descriptor committed,
      then the artifact published. A poller never downloads a file the
      status endpoint does not list.

Failure Policy:
    - Fetch or encode errors abandon the remaining categories. The job
      becomes FAILED with a human-readable ``error_message``.
    - Artifacts of categories finished before the failure stay downloadable
      unless ``discard_partial_on_failure`` is set, in which case they are
      removed together with their descriptors.
    - ``timeout_seconds`` bounds a job's execution; expiry fails the job.
    - There is no automatic retry. A failed job is terminal; clients start
      a new export.

Usage:
    >>> orchestrator = ExportOrchestrator(repository, InMemoryJobRegistry(), InMemoryArtifactStore())
    >>> job = await orchestrator.start_export(ExportScope.SYSTEM, "http://localhost:8000")
    >>> final = await orchestrator.wait_for_job(job.id)
    >>> final.status
    <ExportStatus.COMPLETED: 'completed'>
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Iterable, Optional

import structlog

from fhirside.core.config import ExportConfig
from fhirside.core.enums import DEFAULT_EXPORT_ORDER, ExportScope, ResourceType
from fhirside.core.exceptions import (
    ExportExecutionError,
    ExportFileNotFoundError,
    ExportJobNotFoundError,
    JobStateError,
)
from fhirside.core.models import ExportJob, OutputDescriptor, build_download_url, ndjson_file_name
from fhirside.infrastructure.artifact_store import Artifact, ArtifactStore
from fhirside.infrastructure.job_registry import JobRegistry
from fhirside.resources.encoder import NdjsonEncoder
from fhirside.resources.store import ResourceRepository


# =============================================================================
# Logger Setup
# =============================================================================
logger = structlog.get_logger()

SHUTDOWN_MESSAGE = "Export cancelled: server shutting down"


class ExportOrchestrator:
    """Creates, runs and tracks bulk export jobs.

    Attributes:
        _resources: Read-only source of records per category.
        _job_registry: Authoritative job storage.
        _artifact_store: Storage for encoded output files.
        _encoder: Record → NDJSON line encoder.
        _resource_types: Categories to export, in output order.
        _base_path: Route prefix used to build download URLs.
        _timeout_seconds: Per-job execution bound (None = unbounded).
        _discard_partial_on_failure: Roll back finished artifacts on failure.
        _tasks: Background task handle per unfinished job.

    Example:
        >>> job = await orchestrator.start_export(ExportScope.PATIENT, base_url)
        >>> snapshot = await orchestrator.get_status(job.id)
        >>> body = await orchestrator.get_artifact(job.id, "Patient.ndjson")
        >>> await orchestrator.delete_job(job.id)
        True
    """

    def __init__(
        self,
        resources: ResourceRepository,
        job_registry: JobRegistry,
        artifact_store: ArtifactStore,
        encoder: Optional[NdjsonEncoder] = None,
        *,
        resource_types: Iterable[ResourceType] = DEFAULT_EXPORT_ORDER,
        base_path: str = "/fhir",
        timeout_seconds: Optional[float] = 300.0,
        discard_partial_on_failure: bool = False,
    ) -> None:
        self._resources = resources
        self._job_registry = job_registry
        self._artifact_store = artifact_store
        self._encoder = encoder or NdjsonEncoder()
        self._resource_types: tuple[ResourceType, ...] = tuple(resource_types)
        self._base_path = base_path
        self._timeout_seconds = timeout_seconds
        self._discard_partial_on_failure = discard_partial_on_failure

        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._shutting_down = False
        self._logger = logger.bind(component="export_orchestrator")

    @classmethod
    def from_config(
        cls,
        config: ExportConfig,
        resources: ResourceRepository,
        job_registry: JobRegistry,
        artifact_store: ArtifactStore,
        encoder: Optional[NdjsonEncoder] = None,
    ) -> ExportOrchestrator:
        """Build an orchestrator from the ``export`` section of FhirSideConfig."""
        return cls(
            resources,
            job_registry,
            artifact_store,
            encoder,
            resource_types=config.resource_types,
            base_path=config.base_path,
            timeout_seconds=config.timeout_seconds,
            discard_partial_on_failure=config.discard_partial_on_failure,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def resource_types(self) -> tuple[ResourceType, ...]:
        return self._resource_types

    @property
    def base_path(self) -> str:
        return self._base_path

    @property
    def running_count(self) -> int:
        """Number of background export tasks that have not finished."""
        return sum(1 for task in self._tasks.values() if not task.done())

    # =========================================================================
    # Kick-off
    # =========================================================================

    async def start_export(
        self,
        scope: ExportScope,
        base_url: str,
        request_url: Optional[str] = None,
    ) -> ExportJob:
        """Register a RUNNING job and start its execution in the background.

        Returns immediately; the caller never waits for the export itself.

        Args:
            scope: Scope tag recorded on the job.
            base_url: Scheme and host of the kick-off request.
            request_url: Absolute kick-off URL; defaults to the system
                export URL under ``base_url``.

        Returns:
            The freshly registered RUNNING snapshot. Its ``id`` is the job id.
        """
        base_url = base_url.rstrip("/")
        job = ExportJob(
            kind=scope,
            base_url=base_url,
            request_url=request_url or f"{base_url}{self._base_path}/$export",
            types_total=len(self._resource_types),
        )
        await self._job_registry.put(job)

        task = asyncio.create_task(self._execute(job.id), name=f"bulk-export-{job.id}")
        self._tasks[job.id] = task
        task.add_done_callback(self._forget_task)

        self._logger.info("export_started", job_id=job.id, scope=scope.value)
        return job

    # =========================================================================
    # Read Side
    # =========================================================================

    async def get_status(self, job_id: str) -> Optional[ExportJob]:
        """Return the current job snapshot, or None if the id is unknown."""
        return await self._job_registry.get(job_id)

    async def get_artifact(self, job_id: str, file_name: str) -> Optional[str]:
        """Return the NDJSON body of one output file.

        A file is served only once the job is COMPLETED or FAILED and only
        while its registry entry lists it. A running job's status carries no
        output list, and a deleted or rolled-back job never leaks content.

        Returns:
            The body, or None if the job is unknown or still running, or the
            file is not listed.
        """
        job = await self._job_registry.get(job_id)
        if job is None or not job.is_terminal or job.find_output(file_name) is None:
            return None

        artifact = await self._artifact_store.get(job_id, file_name)
        return artifact.content if artifact is not None else None

    async def list_jobs(self) -> list[ExportJob]:
        return await self._job_registry.list_jobs()

    async def wait_for_job(
        self, job_id: str, timeout: Optional[float] = None
    ) -> Optional[ExportJob]:
        """Wait until a job's background task has finished.

        Args:
            job_id: The job to wait for.
            timeout: Seconds to wait at most. On expiry the current (possibly
                still RUNNING) snapshot is returned.

        Returns:
            The latest snapshot, or None if the job does not exist.
        """
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.wait({task}, timeout=timeout)
        return await self._job_registry.get(job_id)

    # =========================================================================
    # Deletion
    # =========================================================================

    async def delete_job(self, job_id: str) -> bool:
        """Delete a job together with all of its artifacts.

        A RUNNING job's task is cancelled and allowed to unwind first. The
        registry entry goes next, so status lookups and download lookups
        both miss from that point on, and the artifacts follow.

        Returns:
            True if the job existed.
        """
        task = self._tasks.get(job_id)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

        removed = await self._job_registry.remove(job_id)
        await self._artifact_store.remove_all(job_id)

        if removed:
            self._logger.info("export_deleted", job_id=job_id)
        return removed

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def shutdown(self) -> None:
        """Cancel every unfinished export; each one ends FAILED."""
        pending = [task for task in self._tasks.values() if not task.done()]
        if not pending:
            return

        self._logger.info("export_orchestrator_shutting_down", pending=len(pending))
        self._shutting_down = True
        try:
            for task in pending:
                task.cancel()
            await asyncio.wait(pending)
        finally:
            self._shutting_down = False

    # =========================================================================
    # Background Execution
    # =========================================================================

    def _forget_task(self, task: asyncio.Task[None]) -> None:
        for job_id, tracked in list(self._tasks.items()):
            if tracked is task:
                del self._tasks[job_id]

    async def _execute(self, job_id: str) -> None:
        """Task boundary: run the job and convert every failure into FAILED."""
        log = self._logger.bind(job_id=job_id)
        try:
            if self._timeout_seconds is None:
                await self._run(job_id)
            else:
                await asyncio.wait_for(self._run(job_id), timeout=self._timeout_seconds)
        except ExportJobNotFoundError:
            # Deleted while running: nothing left to report on.
            await self._artifact_store.remove_all(job_id)
            log.info("export_abandoned", reason="job_deleted")
        except asyncio.TimeoutError:
            await self._fail(job_id, f"Export timed out after {self._timeout_seconds:g} seconds")
        except asyncio.CancelledError:
            if self._shutting_down:
                await self._fail(job_id, SHUTDOWN_MESSAGE)
            raise
        except ExportExecutionError as exc:
            await self._fail(job_id, exc.message)
        except Exception as exc:
            log.exception("export_unexpected_error")
            await self._fail(job_id, f"Export failed: {exc}")

    async def _run(self, job_id: str) -> None:
        for index, resource_type in enumerate(self._resource_types, start=1):
            await self._export_category(job_id, resource_type)
            await self._job_registry.update(job_id, lambda j, n=index: j.with_progress(n))

        job = await self._job_registry.update(job_id, lambda j: j.mark_completed())
        self._logger.info(
            "export_completed",
            job_id=job_id,
            outputs=[o.type for o in job.outputs],
        )

    async def _export_category(self, job_id: str, resource_type: ResourceType) -> None:
        """Export one category: fetch, encode, stage, commit, publish."""
        try:
            records = await self._resources.list_all(resource_type)
            if not records:
                self._logger.debug(
                    "export_category_empty", job_id=job_id, resource_type=resource_type.value
                )
                return
            content = self._encoder.encode_many(records)
        except Exception as exc:
            raise ExportExecutionError(
                message=f"Failed to export {resource_type.value}: {exc}",
                job_id=job_id,
                resource_type=resource_type.value,
            ) from exc

        job = await self._job_registry.get(job_id)
        if job is None:
            raise ExportJobNotFoundError(job_id)

        file_name = ndjson_file_name(resource_type)
        descriptor = OutputDescriptor(
            type=resource_type.value,
            file_name=file_name,
            url=build_download_url(job.base_url, self._base_path, job_id, file_name),
            count=len(records),
        )

        await self._artifact_store.stage(
            Artifact(
                job_id=job_id,
                file_name=file_name,
                resource_type=resource_type.value,
                content=content,
                record_count=len(records),
            )
        )
        await self._job_registry.update(job_id, lambda j: j.with_output(descriptor))
        await self._artifact_store.publish(job_id, file_name)

        self._logger.info(
            "export_category_completed",
            job_id=job_id,
            resource_type=resource_type.value,
            count=len(records),
        )

    async def _fail(self, job_id: str, message: str) -> None:
        """Move a job to FAILED and apply the partial-output policy."""
        discard = self._discard_partial_on_failure

        def mutation(job: ExportJob) -> ExportJob:
            if discard:
                job = job.without_outputs()
            return job.mark_failed(message)

        try:
            job = await self._job_registry.update(job_id, mutation)
        except ExportJobNotFoundError:
            await self._artifact_store.remove_all(job_id)
            return
        except JobStateError:
            self._logger.warning("export_already_terminal", job_id=job_id, error=message)
            return

        if discard:
            await self._artifact_store.remove_all(job_id)
        else:
            # Publish anything the job lists but whose publish was interrupted.
            for descriptor in job.outputs:
                if await self._artifact_store.get(job_id, descriptor.file_name) is None:
                    with contextlib.suppress(ExportFileNotFoundError):
                        await self._artifact_store.publish(job_id, descriptor.file_name)
            await self._artifact_store.discard_staged(job_id)

        self._logger.warning(
            "export_failed",
            job_id=job_id,
            error=message,
            kept_outputs=[o.type for o in job.outputs],
        )
