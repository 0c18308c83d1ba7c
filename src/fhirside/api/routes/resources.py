"""
fhirside.api.routes.resources - FHIR Resource CRUD Endpoints
==============================================================

One set of handlers serves every registered resource category:

    GET    {base}/{type}                       → searchset Bundle
    GET    {base}/{type}/{id}                  → resource | 404
    GET    {base}/{type}/patient/{patient_id}  → searchset Bundle (not Patient)
    POST   {base}/{type}                       → 201 + Location
    PUT    {base}/{type}/{id}                  → resource | 404
    DELETE {base}/{type}/{id}                  → 204 | 404

Responses are served as ``application/fhir+json``. This router must be
included after the export router, whose literal ``$export`` paths would
otherwise be captured by ``{type}``.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from fhirside.api.dependencies import get_fhir, get_resources, request_base_url
from fhirside.core.enums import ResourceType
from fhirside.core.exceptions import InvalidResourceError, NotFoundError, ResourceNotFoundError
from fhirside.facade import FhirSide
from fhirside.resources.store import Record, ResourceRepository, ResourceStore

logger = structlog.get_logger()

FHIR_JSON_MEDIA_TYPE = "application/fhir+json"

router = APIRouter(tags=["Resources"])


class FhirJSONResponse(JSONResponse):
    media_type = FHIR_JSON_MEDIA_TYPE


# =============================================================================
# Helpers
# =============================================================================
def resolve_store(
    resource_type: str,
    resources: ResourceRepository = Depends(get_resources),
) -> ResourceStore:
    """Map the ``{type}`` path segment onto its registered store."""
    try:
        parsed = ResourceType(resource_type)
    except ValueError:
        parsed = None

    if parsed is None or parsed not in resources.resource_types:
        raise NotFoundError(
            message=f"Unknown resource type: {resource_type}",
            error_code="UNKNOWN_RESOURCE_TYPE",
            details={"resource_type": resource_type},
        )
    return resources.store_for(parsed)


def _resource_url(request: Request, fhir: FhirSide, resource_type: str, resource_id: str) -> str:
    base_path = fhir.config.export.base_path
    return f"{request_base_url(request)}{base_path}/{resource_type}/{resource_id}"


def _searchset(
    request: Request, fhir: FhirSide, store: ResourceStore, records: list[Record]
) -> dict[str, Any]:
    type_name = store.resource_type.value
    return {
        "resourceType": "Bundle",
        "type": "searchset",
        "total": len(records),
        "entry": [
            {
                "fullUrl": _resource_url(request, fhir, type_name, record["id"]),
                "resource": record,
            }
            for record in records
        ],
    }


async def _read_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as exc:
        raise InvalidResourceError(
            message="Request body is not valid JSON",
            error_code="INVALID_JSON",
        ) from exc


# =============================================================================
# Reads
# =============================================================================
@router.get("/{resource_type}")
async def list_resources(
    request: Request,
    store: ResourceStore = Depends(resolve_store),
    fhir: FhirSide = Depends(get_fhir),
) -> Response:
    records = await store.list_all()
    logger.info("resources_listed", resource_type=store.resource_type.value, total=len(records))
    return FhirJSONResponse(_searchset(request, fhir, store, records))


@router.get("/{resource_type}/patient/{patient_id}")
async def list_resources_by_patient(
    request: Request,
    patient_id: str,
    store: ResourceStore = Depends(resolve_store),
    fhir: FhirSide = Depends(get_fhir),
) -> Response:
    """Every record of a category in one patient's compartment."""
    if store.resource_type is ResourceType.PATIENT:
        raise NotFoundError(
            message="Patient records cannot be searched by patient",
            error_code="UNSUPPORTED_SEARCH",
        )

    records = await store.list_by_owner(patient_id)
    return FhirJSONResponse(_searchset(request, fhir, store, records))


@router.get("/{resource_type}/{resource_id}")
async def read_resource(
    resource_id: str,
    store: ResourceStore = Depends(resolve_store),
) -> Response:
    record = await store.get(resource_id)
    if record is None:
        raise ResourceNotFoundError(store.resource_type.value, resource_id)
    return FhirJSONResponse(record)


# =============================================================================
# Writes
# =============================================================================
@router.post("/{resource_type}", status_code=status.HTTP_201_CREATED)
async def create_resource(
    request: Request,
    store: ResourceStore = Depends(resolve_store),
    fhir: FhirSide = Depends(get_fhir),
) -> Response:
    created = await store.create(await _read_body(request))
    type_name = store.resource_type.value
    logger.info("resource_created", resource_type=type_name, resource_id=created["id"])
    return FhirJSONResponse(
        created,
        status_code=status.HTTP_201_CREATED,
        headers={"Location": _resource_url(request, fhir, type_name, created["id"])},
    )


@router.put("/{resource_type}/{resource_id}")
async def update_resource(
    request: Request,
    resource_id: str,
    store: ResourceStore = Depends(resolve_store),
) -> Response:
    updated = await store.update(resource_id, await _read_body(request))
    if updated is None:
        raise ResourceNotFoundError(store.resource_type.value, resource_id)
    return FhirJSONResponse(updated)


@router.delete("/{resource_type}/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_resource(
    resource_id: str,
    store: ResourceStore = Depends(resolve_store),
) -> Response:
    if not await store.delete(resource_id):
        raise ResourceNotFoundError(store.resource_type.value, resource_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
