"""
FhirSide Test Suite
===================

Test organization mirrors the source code structure:
    tests/
    ├── test_core/           → Tests for fhirside.core (config, models, exceptions)
    ├── test_resources/      → Tests for fhirside.resources (stores, encoder)
    ├── test_infrastructure/ → Tests for fhirside.infrastructure (registry, artifacts)
    ├── test_orchestration/  → Tests for fhirside.orchestration (orchestrator, status)
    ├── test_api/            → HTTP tests against the FastAPI app
    ├── test_integration/    → End-to-end bulk export flows
    ├── helpers.py           → Resource store doubles
    └── conftest.py          → Shared pytest fixtures

Running Tests:
    pytest                          # Run all tests
    pytest tests/test_api/          # Run only HTTP tests
"""
