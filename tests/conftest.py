"""
Shared Test Fixtures for FhirSide
===================================

This module provides reusable pytest fixtures used across the entire
test suite. Fixtures are organized by layer:

    1. Configuration fixtures
    2. Resource fixtures (repository, encoder)
    3. Infrastructure fixtures (JobRegistry, ArtifactStore)
    4. Orchestration fixtures (ExportOrchestrator)
    5. Facade and HTTP fixtures (FhirSide, FastAPI app, httpx client)
"""

from __future__ import annotations

import httpx
import pytest

from fhirside.api.app import create_app
from fhirside.core.config import FhirSideConfig
from fhirside.facade import FhirSide
from fhirside.infrastructure.artifact_store import InMemoryArtifactStore
from fhirside.infrastructure.job_registry import InMemoryJobRegistry
from fhirside.orchestration.export_orchestrator import ExportOrchestrator
from fhirside.resources.encoder import NdjsonEncoder
from fhirside.resources.seed import SAMPLE_RECORDS
from fhirside.resources.store import ResourceRepository


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture
def config():
    """FhirSide configuration with sample data and defaults."""
    return FhirSideConfig(seed_sample_data=True)


# =============================================================================
# Resources
# =============================================================================

@pytest.fixture
def repository():
    """In-memory stores seeded with the sandbox sample records."""
    return ResourceRepository.in_memory(seed=SAMPLE_RECORDS)


@pytest.fixture
def encoder():
    return NdjsonEncoder()


# =============================================================================
# Infrastructure
# =============================================================================

@pytest.fixture
def job_registry():
    """Fresh InMemoryJobRegistry."""
    return InMemoryJobRegistry()


@pytest.fixture
def artifact_store():
    """Fresh InMemoryArtifactStore."""
    return InMemoryArtifactStore()


# =============================================================================
# Orchestration
# =============================================================================

@pytest.fixture
async def orchestrator(repository, job_registry, artifact_store, encoder):
    """ExportOrchestrator over the seeded repository.

    Any export still running when the test ends is cancelled.
    """
    orch = ExportOrchestrator(repository, job_registry, artifact_store, encoder)
    yield orch
    await orch.shutdown()


# =============================================================================
# Facade and HTTP
# =============================================================================

@pytest.fixture
async def fhir(config):
    """Initialized FhirSide facade."""
    async with FhirSide(config) as instance:
        yield instance


@pytest.fixture
async def client(fhir):
    """httpx client talking to the FastAPI app in-process.

    ASGITransport does not run the lifespan; the ``fhir`` fixture has already
    initialized the facade.
    """
    app = create_app(fhir)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
