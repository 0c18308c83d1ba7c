"""HTTP routers. The export router must be included before the resource router."""

from fhirside.api.routes.export import router as export_router
from fhirside.api.routes.resources import router as resources_router

__all__ = ["export_router", "resources_router"]
