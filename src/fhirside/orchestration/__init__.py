"""
fhirside.orchestration - Export Execution
===========================================

    ExportOrchestrator  → creates jobs, runs them in the background
    status_view()       → maps a job snapshot onto running/completed/failed
"""

from fhirside.orchestration.export_orchestrator import SHUTDOWN_MESSAGE, ExportOrchestrator
from fhirside.orchestration.status import (
    BulkDataManifest,
    CompletedStatus,
    ExportStatusView,
    FailedStatus,
    ManifestOutput,
    RunningStatus,
    build_manifest,
    status_view,
)

__all__ = [
    "SHUTDOWN_MESSAGE",
    "BulkDataManifest",
    "CompletedStatus",
    "ExportOrchestrator",
    "ExportStatusView",
    "FailedStatus",
    "ManifestOutput",
    "RunningStatus",
    "build_manifest",
    "status_view",
]
