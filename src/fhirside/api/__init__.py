"""
fhirside.api - HTTP Layer
===========================

FastAPI application factory and routers:

    create_app()     → FastAPI app bound to one FhirSide facade
    routes.export    → bulk data kick-off, status, download, delete
    routes.resources → FHIR CRUD over the resource stores
"""

from fhirside.api.app import create_app

__all__ = ["create_app"]
