"""
Tests for fhirside.orchestration.status
=========================================

These tests verify the mapping from ExportJob snapshots to status views
and the layout of the completed-export manifest.
"""

from datetime import datetime, timezone

from pydantic import TypeAdapter

from fhirside.core.enums import ExportScope
from fhirside.core.models import ExportJob, OutputDescriptor
from fhirside.orchestration.status import (
    CompletedStatus,
    ExportStatusView,
    FailedStatus,
    RunningStatus,
    build_manifest,
    status_view,
)


# =============================================================================
# Helpers
# =============================================================================
def _job(**overrides) -> ExportJob:
    defaults = {
        "kind": ExportScope.SYSTEM,
        "base_url": "http://test",
        "request_url": "http://test/fhir/$export",
        "types_total": 4,
    }
    defaults.update(overrides)
    return ExportJob(**defaults)


def _descriptor(job_id: str, type_name: str, count: int) -> OutputDescriptor:
    file_name = f"{type_name}.ndjson"
    return OutputDescriptor(
        type=type_name,
        file_name=file_name,
        url=f"http://test/fhir/$export-download/{job_id}/{file_name}",
        count=count,
    )


# =============================================================================
# Tests: status_view
# =============================================================================
class TestStatusView:
    """Each job status maps onto exactly one view variant."""

    def test_running_job(self) -> None:
        job = _job().with_progress(2)
        view = status_view(job)

        assert isinstance(view, RunningStatus)
        assert view.progress == "Export in progress (2/4 resource types processed)"

    def test_running_job_hides_partial_outputs(self) -> None:
        job = _job()
        job = job.with_output(_descriptor(job.id, "Patient", 2))

        view = status_view(job)

        assert isinstance(view, RunningStatus)
        assert not hasattr(view, "manifest")

    def test_completed_job(self) -> None:
        job = _job()
        job = job.with_output(_descriptor(job.id, "Patient", 2)).mark_completed()

        view = status_view(job)

        assert isinstance(view, CompletedStatus)
        assert view.manifest.output[0].type == "Patient"

    def test_failed_job(self) -> None:
        view = status_view(_job().mark_failed("boom"))

        assert isinstance(view, FailedStatus)
        assert view.message == "boom"

    def test_discriminated_union_round_trip(self) -> None:
        adapter = TypeAdapter(ExportStatusView)
        view = status_view(_job().mark_failed("boom"))

        parsed = adapter.validate_python(view.model_dump())
        assert isinstance(parsed, FailedStatus)


# =============================================================================
# Tests: Manifest
# =============================================================================
class TestManifest:
    """Tests for the completed-export response body."""

    def test_manifest_layout(self) -> None:
        finished = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        job = _job()
        job = (
            job.with_output(_descriptor(job.id, "Patient", 2))
            .with_output(_descriptor(job.id, "Encounter", 1))
            .mark_completed(at=finished)
        )

        body = build_manifest(job).to_response()

        assert set(body) == {"transactionTime", "request", "requiresAccessToken", "output", "error"}
        assert body["transactionTime"].startswith("2026-01-02T03:04:05")
        assert body["request"] == "http://test/fhir/$export"
        assert body["requiresAccessToken"] is False
        assert body["error"] == []
        assert body["output"] == [
            {
                "type": "Patient",
                "url": f"http://test/fhir/$export-download/{job.id}/Patient.ndjson",
                "count": 2,
            },
            {
                "type": "Encounter",
                "url": f"http://test/fhir/$export-download/{job.id}/Encounter.ndjson",
                "count": 1,
            },
        ]

    def test_empty_export_manifest(self) -> None:
        body = build_manifest(_job().mark_completed()).to_response()
        assert body["output"] == []
