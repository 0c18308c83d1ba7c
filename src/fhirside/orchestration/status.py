"""
fhirside.orchestration.status - Export Status Views
=====================================================

Converts an ExportJob snapshot into exactly one of three status views. The
HTTP layer renders each view; nothing else inspects ``ExportJob.status``
to decide what a poller sees.

    ExportJob ──status_view()──┬──→ RunningStatus    (progress only, no outputs)
                               ├──→ CompletedStatus  (manifest with outputs)
                               └──→ FailedStatus     (error message)

The manifest follows the Bulk Data status-response layout:

    {
      "transactionTime": "...",
      "request": "http://host/fhir/$export",
      "requiresAccessToken": false,
      "output": [{"type": "Patient", "url": "...", "count": 2}],
      "error": []
    }
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from fhirside.core.enums import ExportStatus
from fhirside.core.models import ExportJob


# =============================================================================
# Manifest
# =============================================================================
class ManifestOutput(BaseModel):
    """One ``output`` entry of a completed manifest."""

    type: str
    url: str
    count: int


class BulkDataManifest(BaseModel):
    """Body returned for a completed export."""

    model_config = {"populate_by_name": True}

    transaction_time: datetime = Field(
        alias="transactionTime",
        description="When the export finished (UTC)",
    )
    request: str = Field(description="Absolute URL of the kick-off request")
    requires_access_token: bool = Field(
        default=False,
        alias="requiresAccessToken",
        description="Whether downloads need a bearer token",
    )
    output: list[ManifestOutput] = Field(default_factory=list)
    error: list[ManifestOutput] = Field(default_factory=list)

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# Status Variants
# =============================================================================
class RunningStatus(BaseModel):
    kind: Literal["running"] = "running"
    job_id: str
    types_processed: int = 0
    types_total: int = 0

    @property
    def progress(self) -> str:
        return (
            f"Export in progress ({self.types_processed}/{self.types_total} "
            "resource types processed)"
        )


class CompletedStatus(BaseModel):
    kind: Literal["completed"] = "completed"
    job_id: str
    manifest: BulkDataManifest


class FailedStatus(BaseModel):
    kind: Literal["failed"] = "failed"
    job_id: str
    message: str


ExportStatusView = Annotated[
    Union[RunningStatus, CompletedStatus, FailedStatus],
    Field(discriminator="kind"),
]


def build_manifest(job: ExportJob) -> BulkDataManifest:
    """Build the manifest of a completed job from its descriptors, in order."""
    return BulkDataManifest(
        transaction_time=job.completed_at or job.requested_at,
        request=job.request_url,
        output=[
            ManifestOutput(type=descriptor.type, url=descriptor.url, count=descriptor.count)
            for descriptor in job.outputs
        ],
    )


def status_view(job: ExportJob) -> ExportStatusView:
    """Map a job snapshot onto its status view.

    A RUNNING job never exposes its partial output list; only a COMPLETED
    job carries a manifest.
    """
    if job.status == ExportStatus.COMPLETED:
        return CompletedStatus(job_id=job.id, manifest=build_manifest(job))
    if job.status == ExportStatus.FAILED:
        return FailedStatus(job_id=job.id, message=job.error_message or "Export failed")
    return RunningStatus(
        job_id=job.id,
        types_processed=job.types_processed,
        types_total=job.types_total,
    )
