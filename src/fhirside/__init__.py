"""
FhirSide - FHIR Sandbox Server with Bulk Data Export
======================================================

FhirSide serves FHIR resources over HTTP and implements the asynchronous
Bulk Data export flow:

    kick-off (202)  →  poll status (202 … 200)  →  download NDJSON files

Architecture Layers (top to bottom):
    1. API Layer            - FastAPI app, export and resource routers
    2. Orchestration Layer  - ExportOrchestrator, status views
    3. Infrastructure Layer - JobRegistry, ArtifactStore
    4. Resource Layer       - Resource stores, NDJSON encoder, sample data

Quick Start:
    >>> from fhirside import FhirSide
    >>> async with FhirSide() as fhir:
    ...     job = await fhir.start_export(ExportScope.SYSTEM, "http://localhost:8000")
    ...     final = await fhir.wait_for_export(job.id)

Run the server:
    $ python -m fhirside
"""

# =============================================================================
# Package Version
# =============================================================================
__version__ = "0.1.0"

# =============================================================================
# Package-Level Exports
# =============================================================================
# For specific components, import from submodules directly:
#   from fhirside.core.config import FhirSideConfig
#   from fhirside.core.enums import ExportScope
#   from fhirside.api import create_app
# =============================================================================
from fhirside.facade import FhirSide

__all__ = ["FhirSide", "__version__"]
