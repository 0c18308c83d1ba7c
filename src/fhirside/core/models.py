"""
fhirside.core.models - Export Job Data Models
===============================================

This module defines the Pydantic models that describe a bulk export job.
Every layer of the export subsystem speaks in terms of these types: the
orchestrator creates and advances them, the job registry stores them, and
the gateway renders them.

Model Hierarchy:
    ExportJob         → One invocation of a bulk export (the job ticket)
    OutputDescriptor  → One downloadable NDJSON file listed by a job

Data Flow:
    ┌──────────────┐   ExportJob (RUNNING)   ┌──────────────┐
    │ Orchestrator  │ ─────────────────────→  │ Job Registry │
    │ (background)  │   with_output(...)      │  (snapshots) │
    │               │   mark_completed(...)   │              │
    └──────────────┘                          └──────┬───────┘
                                                     │ get()
                                                     ↓
                                              ┌──────────────┐
                                              │   Gateway    │
                                              │ (status/dl)  │
                                              └──────────────┘

Design Principles:
    1. Immutable snapshots: both models are frozen. A mutation returns a new
       ExportJob, and the registry swaps the stored snapshot atomically.
       Readers therefore always see a complete output list.
    2. The state machine lives on the model: transition helpers refuse to
       move a terminal job and refuse duplicate output types.
    3. Serializable: snapshots convert to JSON for logs and API responses.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from fhirside.core.enums import ExportScope, ExportStatus, ResourceType
from fhirside.core.exceptions import JobStateError


NDJSON_EXTENSION = ".ndjson"


# =============================================================================
# Helpers
# =============================================================================
def _generate_job_id() -> str:
    """Generate an opaque export job id.

    Returns:
        32 lowercase hex characters (uuid4 without dashes).
    """
    return uuid4().hex


def _now() -> datetime:
    """Get the current UTC timestamp."""
    return datetime.now(timezone.utc)


def ndjson_file_name(resource_type: ResourceType | str) -> str:
    """Derive the artifact file name for a resource category.

    Example:
        >>> ndjson_file_name(ResourceType.PATIENT)
        'Patient.ndjson'
    """
    type_name = resource_type.value if isinstance(resource_type, ResourceType) else resource_type
    return f"{type_name}{NDJSON_EXTENSION}"


def build_download_url(base_url: str, base_path: str, job_id: str, file_name: str) -> str:
    """Build the absolute download URL for one export file.

    Trailing slashes on ``base_url`` are tolerated so that values taken from
    ``request.base_url`` ("http://host/") and hand-written values
    ("http://host") produce the same URL.
    """
    return f"{base_url.rstrip('/')}{base_path}/$export-download/{job_id}/{file_name}"


# =============================================================================
# Output Descriptor
# =============================================================================
class OutputDescriptor(BaseModel):
    """One entry of a job's ``output`` listing.

    A descriptor exists only for a category that produced at least one
    record. An empty category yields no descriptor and no artifact.

    Attributes:
        type: Resource category name ("Patient", "Observation", ...).
        file_name: Deterministic artifact name derived from ``type``.
        url: Absolute download URL for the artifact.
        count: Number of records encoded into the artifact.
    """

    model_config = {"frozen": True}

    type: str = Field(description="Resource category name")
    file_name: str = Field(description="Artifact file name, e.g. 'Patient.ndjson'")
    url: str = Field(description="Absolute download URL")
    count: int = Field(ge=1, description="Number of records in the artifact")


# =============================================================================
# Export Job
# =============================================================================
# The central record of the export subsystem.
#
# State Machine:
#     RUNNING ──mark_completed()──→ COMPLETED
#     RUNNING ──mark_failed()─────→ FAILED
#
# Only the orchestrator's background execution calls the transition helpers.
# =============================================================================
class ExportJob(BaseModel):
    """Snapshot of a bulk export job.

    Attributes:
        id: Opaque unique token assigned at creation.
        status: Current state (RUNNING, COMPLETED, FAILED).
        kind: Export scope tag (system or patient).
        requested_at: When the kick-off request was accepted (UTC).
        completed_at: When the job reached a terminal state (UTC), else None.
        base_url: Scheme and host of the kick-off request. Download URLs are
            built from it so they stay correct behind proxies or multiple hosts.
        request_url: Absolute URL of the kick-off request (manifest ``request``).
        outputs: Descriptors in the fixed category order, append-only while
            RUNNING, read-only once terminal.
        types_processed: Number of categories finished so far (progress only).
        types_total: Number of categories the job visits (progress only).
        error_message: Human-readable failure cause, set only when FAILED.

    Example:
        >>> job = ExportJob(kind=ExportScope.SYSTEM, base_url="http://localhost:8000")
        >>> job.status
        <ExportStatus.RUNNING: 'running'>
    """

    model_config = {"frozen": True}

    id: str = Field(
        default_factory=_generate_job_id,
        description="Opaque unique job identifier",
    )
    status: ExportStatus = Field(
        default=ExportStatus.RUNNING,
        description="Current job state",
    )
    kind: ExportScope = Field(
        description="Export scope tag",
    )
    requested_at: datetime = Field(
        default_factory=_now,
        description="When the export was requested (UTC)",
    )
    completed_at: Optional[datetime] = Field(
        default=None,
        description="When the job reached a terminal state (UTC)",
    )
    base_url: str = Field(
        description="Request-scoped base URL used for download links",
    )
    request_url: str = Field(
        default="",
        description="Absolute URL of the kick-off request",
    )
    outputs: tuple[OutputDescriptor, ...] = Field(
        default=(),
        description="Output descriptors in export order",
    )
    types_processed: int = Field(
        default=0,
        ge=0,
        description="Categories finished so far",
    )
    types_total: int = Field(
        default=0,
        ge=0,
        description="Categories this job will visit",
    )
    error_message: Optional[str] = Field(
        default=None,
        description="Failure cause (FAILED only)",
    )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------
    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def find_output(self, file_name: str) -> Optional[OutputDescriptor]:
        """Return the descriptor listing ``file_name``, or None."""
        for descriptor in self.outputs:
            if descriptor.file_name == file_name:
                return descriptor
        return None

    # -------------------------------------------------------------------------
    # Transitions (each returns a new snapshot)
    # -------------------------------------------------------------------------
    def _require_running(self, action: str) -> None:
        if self.is_terminal:
            raise JobStateError(
                message=f"Cannot {action}: job is already {self.status.value}",
                job_id=self.id,
                details={"status": self.status.value},
            )

    def with_output(self, descriptor: OutputDescriptor) -> ExportJob:
        """Append an output descriptor.

        Raises:
            JobStateError: If the job is terminal or already lists ``descriptor.type``.
        """
        self._require_running("append output")
        if any(o.type == descriptor.type for o in self.outputs):
            raise JobStateError(
                message=f"Output for {descriptor.type} already recorded",
                job_id=self.id,
                error_code="DUPLICATE_OUTPUT",
                details={"type": descriptor.type},
            )
        return self.model_copy(update={"outputs": self.outputs + (descriptor,)})

    def with_progress(self, types_processed: int) -> ExportJob:
        self._require_running("record progress")
        return self.model_copy(update={"types_processed": types_processed})

    def without_outputs(self) -> ExportJob:
        """Drop every descriptor (rollback-on-failure policy)."""
        self._require_running("discard outputs")
        return self.model_copy(update={"outputs": ()})

    def mark_completed(self, at: Optional[datetime] = None) -> ExportJob:
        """Transition RUNNING → COMPLETED."""
        self._require_running("complete")
        return self.model_copy(
            update={"status": ExportStatus.COMPLETED, "completed_at": at or _now()}
        )

    def mark_failed(self, message: str, at: Optional[datetime] = None) -> ExportJob:
        """Transition RUNNING → FAILED, recording ``message``."""
        self._require_running("fail")
        return self.model_copy(
            update={
                "status": ExportStatus.FAILED,
                "error_message": message,
                "completed_at": at or _now(),
            }
        )
