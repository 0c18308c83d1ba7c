"""
fhirside.api.app - FastAPI Application Factory
================================================

Builds the HTTP application around a single FhirSide instance:

    create_app(fhir)
        ├── lifespan          → fhir.initialize() / fhir.shutdown()
        ├── exception handlers → FhirSideError → {"error": message}
        ├── GET /health
        ├── export router     → {base_path}/$export...
        └── resources router  → {base_path}/{type}...

Status mapping of the exception handlers:
    NotFoundError         → 404
    InvalidResourceError  → 400
    other FhirSideError   → 500
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from fhirside import __version__
from fhirside.api.routes import export_router, resources_router
from fhirside.core.config import FhirSideConfig
from fhirside.core.exceptions import FhirSideError, InvalidResourceError, NotFoundError
from fhirside.facade import FhirSide

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    fhir: FhirSide = app.state.fhir
    await fhir.initialize()
    try:
        yield
    finally:
        await fhir.shutdown()


# =============================================================================
# Exception Handlers
# =============================================================================
def _error_response(exc: FhirSideError, status_code: int) -> JSONResponse:
    return JSONResponse({"error": exc.message}, status_code=status_code)


async def _handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error_response(exc, status.HTTP_404_NOT_FOUND)


async def _handle_invalid_resource(request: Request, exc: InvalidResourceError) -> JSONResponse:
    return _error_response(exc, status.HTTP_400_BAD_REQUEST)


async def _handle_fhirside_error(request: Request, exc: FhirSideError) -> JSONResponse:
    logger.error("request_failed", path=request.url.path, **exc.to_dict())
    return _error_response(exc, status.HTTP_500_INTERNAL_SERVER_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
    # Starlette resolves handlers along the exception's MRO, most specific first.
    app.add_exception_handler(NotFoundError, _handle_not_found)
    app.add_exception_handler(InvalidResourceError, _handle_invalid_resource)
    app.add_exception_handler(FhirSideError, _handle_fhirside_error)


# =============================================================================
# Application Factory
# =============================================================================
def create_app(
    fhir: Optional[FhirSide] = None,
    config: Optional[FhirSideConfig] = None,
) -> FastAPI:
    """Create the FhirSide FastAPI application.

    Args:
        fhir: An existing facade. Tests pass one they already initialized;
            the lifespan's initialize() is then a no-op.
        config: Configuration used to build a facade when ``fhir`` is None.

    Returns:
        The configured FastAPI application.
    """
    fhir = fhir or FhirSide(config)
    base_path = fhir.config.export.base_path

    app = FastAPI(
        title="FhirSide",
        description="FHIR sandbox server with asynchronous bulk data export",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.fhir = fhir

    register_exception_handlers(app)

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    app.include_router(export_router, prefix=base_path)
    app.include_router(resources_router, prefix=base_path)

    logger.debug("app_created", base_path=base_path, environment=fhir.config.environment)
    return app
