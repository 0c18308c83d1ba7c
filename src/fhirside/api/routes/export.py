"""
fhirside.api.routes.export - Bulk Data Export Endpoints
=========================================================

Thin HTTP gateway over the ExportOrchestrator. Handlers only translate
between HTTP and orchestrator calls; no handler mutates a job.

    GET    {base}/$export                         → 202 + Content-Location
    GET    {base}/Patient/$export                 → 202 + Content-Location
    GET    {base}/$export-status/{job_id}         → 202 | 200 | 500 | 404
    DELETE {base}/$export-status/{job_id}         → 204 | 404
    GET    {base}/$export-download/{job_id}/{f}   → 200 ndjson | 404

Lookup misses raise NotFoundError subclasses; the application's exception
handlers turn them into ``404 {"error": ...}``.
"""

from __future__ import annotations

from typing import Callable

import structlog
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from fhirside.api.dependencies import get_orchestrator, request_base_url
from fhirside.core.enums import ExportScope
from fhirside.core.exceptions import ExportFileNotFoundError, ExportJobNotFoundError
from fhirside.orchestration.export_orchestrator import ExportOrchestrator
from fhirside.orchestration.status import (
    CompletedStatus,
    FailedStatus,
    RunningStatus,
    status_view,
)
from fhirside.resources.encoder import NDJSON_MEDIA_TYPE

logger = structlog.get_logger()

router = APIRouter(tags=["Bulk Export"])


def _status_url(request: Request, orchestrator: ExportOrchestrator, job_id: str) -> str:
    return f"{request_base_url(request)}{orchestrator.base_path}/$export-status/{job_id}"


async def _kick_off(
    request: Request, orchestrator: ExportOrchestrator, scope: ExportScope
) -> Response:
    job = await orchestrator.start_export(
        scope,
        base_url=request_base_url(request),
        request_url=str(request.url),
    )
    return Response(
        status_code=status.HTTP_202_ACCEPTED,
        headers={"Content-Location": _status_url(request, orchestrator, job.id)},
    )


# =============================================================================
# Kick-off
# =============================================================================
@router.get("/$export", status_code=status.HTTP_202_ACCEPTED)
async def start_system_export(
    request: Request,
    orchestrator: ExportOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Start a system-level export of every resource category."""
    logger.info("system_export_requested")
    return await _kick_off(request, orchestrator, ExportScope.SYSTEM)


@router.get("/Patient/$export", status_code=status.HTTP_202_ACCEPTED)
async def start_patient_export(
    request: Request,
    orchestrator: ExportOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Start a patient-compartment export."""
    logger.info("patient_export_requested")
    return await _kick_off(request, orchestrator, ExportScope.PATIENT)


# =============================================================================
# Status
# =============================================================================
def _render_running(view: RunningStatus) -> Response:
    return Response(
        status_code=status.HTTP_202_ACCEPTED,
        headers={"X-Progress": view.progress},
    )


def _render_completed(view: CompletedStatus) -> Response:
    return JSONResponse(view.manifest.to_response(), status_code=status.HTTP_200_OK)


def _render_failed(view: FailedStatus) -> Response:
    return JSONResponse(
        {"error": view.message},
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


_STATUS_RENDERERS: dict[str, Callable[..., Response]] = {
    "running": _render_running,
    "completed": _render_completed,
    "failed": _render_failed,
}


@router.get("/$export-status/{job_id}")
async def get_export_status(
    job_id: str,
    orchestrator: ExportOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Poll an export: 202 while running, 200 manifest, 500 on failure."""
    job = await orchestrator.get_status(job_id)
    if job is None:
        raise ExportJobNotFoundError(job_id)

    view = status_view(job)
    return _STATUS_RENDERERS[view.kind](view)


@router.delete("/$export-status/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_export(
    job_id: str,
    orchestrator: ExportOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Delete a job and its files; a running job is cancelled first."""
    logger.info("export_delete_requested", job_id=job_id)
    if not await orchestrator.delete_job(job_id):
        raise ExportJobNotFoundError(job_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Download
# =============================================================================
@router.get("/$export-download/{job_id}/{file_name}")
async def download_export_file(
    job_id: str,
    file_name: str,
    orchestrator: ExportOrchestrator = Depends(get_orchestrator),
) -> Response:
    content = await orchestrator.get_artifact(job_id, file_name)
    if content is None:
        raise ExportFileNotFoundError(job_id, file_name)
    return Response(content=content, media_type=NDJSON_MEDIA_TYPE)
