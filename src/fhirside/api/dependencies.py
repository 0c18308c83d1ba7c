"""Request-scoped accessors for the FhirSide instance held by the application."""

from __future__ import annotations

from fastapi import Request

from fhirside.facade import FhirSide
from fhirside.orchestration.export_orchestrator import ExportOrchestrator
from fhirside.resources.store import ResourceRepository


def get_fhir(request: Request) -> FhirSide:
    return request.app.state.fhir


def get_orchestrator(request: Request) -> ExportOrchestrator:
    return get_fhir(request).orchestrator


def get_resources(request: Request) -> ResourceRepository:
    return get_fhir(request).resources


def request_base_url(request: Request) -> str:
    """Scheme, host and root path of the incoming request, without a trailing slash."""
    return str(request.base_url).rstrip("/")
