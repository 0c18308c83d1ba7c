"""
Tests for fhirside.api.routes.export
======================================

HTTP-level tests of the Bulk Data flow against the FastAPI app, using
httpx with an in-process ASGI transport.

What's Being Tested:
    - Kick-off returns 202 with a Content-Location status URL
    - Status polling: 202 + X-Progress, 200 manifest, 500 error, 404 unknown
    - Download: NDJSON body, 404 for unknown job or file
    - Delete: 204, then 404
"""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx

from fhirside.api.app import create_app
from fhirside.core.config import FhirSideConfig
from fhirside.core.enums import ResourceType
from fhirside.facade import FhirSide
from fhirside.resources.seed import SAMPLE_RECORDS
from fhirside.resources.store import ResourceRepository
from tests.helpers import (
    FailingResourceStore,
    GatedResourceStore,
    patients_only_repository,
    repository_with,
)


# =============================================================================
# Helpers
# =============================================================================
@asynccontextmanager
async def _serve(resources: ResourceRepository) -> AsyncIterator[tuple[FhirSide, httpx.AsyncClient]]:
    async with FhirSide(FhirSideConfig(), resources=resources) as fhir:
        transport = httpx.ASGITransport(app=create_app(fhir))
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield fhir, client


async def _kick_off(client: httpx.AsyncClient, path: str = "/fhir/$export") -> str:
    response = await client.get(path)
    assert response.status_code == 202
    return response.headers["Content-Location"]


async def _poll(client: httpx.AsyncClient, status_url: str, attempts: int = 200) -> httpx.Response:
    for _ in range(attempts):
        response = await client.get(status_url)
        if response.status_code != 202:
            return response
        await asyncio.sleep(0.01)
    raise AssertionError(f"export did not finish: {status_url}")


def _job_id(status_url: str) -> str:
    return status_url.rsplit("/", 1)[-1]


# =============================================================================
# Tests: Kick-off
# =============================================================================
class TestKickOff:
    async def test_system_export_returns_status_url(self, client) -> None:
        response = await client.get("/fhir/$export")

        assert response.status_code == 202
        location = response.headers["Content-Location"]
        assert location.startswith("http://test/fhir/$export-status/")
        assert len(_job_id(location)) == 32
        assert response.content == b""

    async def test_patient_export_returns_status_url(self, client, fhir) -> None:
        location = await _kick_off(client, "/fhir/Patient/$export")

        job = await fhir.orchestrator.get_status(_job_id(location))
        assert job.kind.value == "patient"
        assert job.request_url == "http://test/fhir/Patient/$export"

    async def test_every_kick_off_is_a_new_job(self, client) -> None:
        first = await _kick_off(client)
        second = await _kick_off(client)
        assert first != second


# =============================================================================
# Tests: Status
# =============================================================================
class TestStatus:
    async def test_completed_manifest(self, client) -> None:
        status_url = await _kick_off(client)

        response = await _poll(client, status_url)

        assert response.status_code == 200
        body = response.json()
        job_id = _job_id(status_url)
        assert body["request"] == "http://test/fhir/$export"
        assert body["requiresAccessToken"] is False
        assert body["error"] == []
        assert body["transactionTime"]
        assert [(o["type"], o["count"]) for o in body["output"]] == [
            ("Patient", 2),
            ("Encounter", 2),
            ("Observation", 3),
            ("MedicationRequest", 2),
        ]
        assert body["output"][0]["url"] == (
            f"http://test/fhir/$export-download/{job_id}/Patient.ndjson"
        )

    async def test_two_patients_only(self) -> None:
        """Empty categories are absent from the manifest."""
        async with _serve(patients_only_repository()) as (_, client):
            status_url = await _kick_off(client)
            body = (await _poll(client, status_url)).json()

            assert body["output"] == [
                {
                    "type": "Patient",
                    "url": f"http://test/fhir/$export-download/{_job_id(status_url)}/Patient.ndjson",
                    "count": 2,
                }
            ]

            download = await client.get(body["output"][0]["url"])
            lines = [line for line in download.text.split("\n") if line]
            assert len(lines) == 2

    async def test_running_job_reports_progress(self) -> None:
        gated = GatedResourceStore(ResourceType.ENCOUNTER)
        async with _serve(repository_with(gated, seed=SAMPLE_RECORDS)) as (_, client):
            status_url = await _kick_off(client)
            await asyncio.wait_for(gated.entered.wait(), timeout=5)

            response = await client.get(status_url)

            assert response.status_code == 202
            assert response.headers["X-Progress"] == (
                "Export in progress (1/4 resource types processed)"
            )
            assert response.content == b""

            gated.release()
            assert (await _poll(client, status_url)).status_code == 200

    async def test_failed_job_returns_500(self) -> None:
        failing = FailingResourceStore(ResourceType.OBSERVATION)
        async with _serve(repository_with(failing, seed=SAMPLE_RECORDS)) as (_, client):
            status_url = await _kick_off(client)

            response = await _poll(client, status_url)

            assert response.status_code == 500
            assert response.json() == {"error": "Failed to export Observation: store unavailable"}

    async def test_failed_job_keeps_partial_downloads(self) -> None:
        failing = FailingResourceStore(ResourceType.OBSERVATION)
        async with _serve(repository_with(failing, seed=SAMPLE_RECORDS)) as (_, client):
            status_url = await _kick_off(client)
            await _poll(client, status_url)
            job_id = _job_id(status_url)

            patients = await client.get(f"/fhir/$export-download/{job_id}/Patient.ndjson")
            observations = await client.get(f"/fhir/$export-download/{job_id}/Observation.ndjson")

            assert patients.status_code == 200
            assert observations.status_code == 404

    async def test_unknown_job_returns_404(self, client) -> None:
        response = await client.get("/fhir/$export-status/never-created")

        assert response.status_code == 404
        assert response.json() == {"error": "Export job not found"}

    async def test_repeated_polls_return_same_body(self, client) -> None:
        status_url = await _kick_off(client)
        first = await _poll(client, status_url)
        second = await client.get(status_url)

        assert first.json() == second.json()


# =============================================================================
# Tests: Download
# =============================================================================
class TestDownload:
    async def test_download_ndjson(self, client) -> None:
        status_url = await _kick_off(client)
        body = (await _poll(client, status_url)).json()
        observation_url = body["output"][2]["url"]

        response = await client.get(observation_url)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/ndjson")
        records = [json.loads(line) for line in response.text.split("\n")]
        assert [r["resourceType"] for r in records] == ["Observation"] * 3

    async def test_unknown_file_returns_404(self, client) -> None:
        status_url = await _kick_off(client)
        await _poll(client, status_url)

        response = await client.get(
            f"/fhir/$export-download/{_job_id(status_url)}/Practitioner.ndjson"
        )

        assert response.status_code == 404
        assert response.json() == {"error": "Export file not found"}

    async def test_unknown_job_returns_404(self, client) -> None:
        response = await client.get("/fhir/$export-download/never-created/Patient.ndjson")
        assert response.status_code == 404

    async def test_running_job_file_returns_404(self) -> None:
        """Patient.ndjson is written, but the job has not finished yet."""
        gated = GatedResourceStore(ResourceType.ENCOUNTER)
        async with _serve(repository_with(gated, seed=SAMPLE_RECORDS)) as (_, client):
            status_url = await _kick_off(client)
            await asyncio.wait_for(gated.entered.wait(), timeout=5)
            download_url = f"/fhir/$export-download/{_job_id(status_url)}/Patient.ndjson"

            assert (await client.get(status_url)).status_code == 202
            response = await client.get(download_url)

            assert response.status_code == 404
            assert response.json() == {"error": "Export file not found"}

            gated.release()
            assert (await _poll(client, status_url)).status_code == 200
            assert (await client.get(download_url)).status_code == 200


# =============================================================================
# Tests: Delete
# =============================================================================
class TestDelete:
    async def test_delete_twice(self, client) -> None:
        status_url = await _kick_off(client)
        await _poll(client, status_url)

        first = await client.delete(status_url)
        second = await client.delete(status_url)

        assert first.status_code == 204
        assert second.status_code == 404
        assert second.json() == {"error": "Export job not found"}

    async def test_delete_removes_status_and_downloads(self, client) -> None:
        status_url = await _kick_off(client)
        body = (await _poll(client, status_url)).json()

        await client.delete(status_url)

        assert (await client.get(status_url)).status_code == 404
        assert (await client.get(body["output"][0]["url"])).status_code == 404

    async def test_delete_running_job(self) -> None:
        gated = GatedResourceStore(ResourceType.ENCOUNTER)
        async with _serve(repository_with(gated, seed=SAMPLE_RECORDS)) as (fhir, client):
            status_url = await _kick_off(client)
            await asyncio.wait_for(gated.entered.wait(), timeout=5)

            response = await client.delete(status_url)

            assert response.status_code == 204
            assert (await client.get(status_url)).status_code == 404
            assert fhir.orchestrator.running_count == 0
