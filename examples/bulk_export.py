"""
Bulk Export Example: Kick Off, Poll, Download
================================================

This example runs the complete Bulk Data flow against an in-process
FhirSide application, without starting a network server:

    1. GET /fhir/$export                 → 202 + Content-Location
    2. GET /fhir/$export-status/{id}     → 202 (X-Progress) … 200 manifest
    3. GET each output URL               → NDJSON body
    4. DELETE /fhir/$export-status/{id}  → 204

Usage:
    python examples/bulk_export.py
"""

from __future__ import annotations

import asyncio

import httpx

from fhirside.api import create_app
from fhirside.core.config import FhirSideConfig
from fhirside.core.observability import configure_logging
from fhirside.facade import FhirSide


async def main() -> None:
    """Export the sample records and print the manifest and file sizes."""
    config = FhirSideConfig(log_level="WARNING")
    configure_logging(config.log_level, config.log_format)

    async with FhirSide(config) as fhir:
        transport = httpx.ASGITransport(app=create_app(fhir))
        async with httpx.AsyncClient(transport=transport, base_url="http://localhost:8000") as client:
            kick_off = await client.get("/fhir/$export")
            status_url = kick_off.headers["Content-Location"]
            print(f"Kick-off  : {kick_off.status_code} → {status_url}")

            while True:
                status = await client.get(status_url)
                if status.status_code != 202:
                    break
                print(f"Polling   : {status.headers['X-Progress']}")
                await asyncio.sleep(0.05)

            manifest = status.json()
            print(f"Finished  : {status.status_code} at {manifest['transactionTime']}")
            print("-" * 60)
            for output in manifest["output"]:
                body = (await client.get(output["url"])).text
                print(f"{output['type']:<18} {output['count']:>3} records  {len(body):>6} bytes")

            deleted = await client.delete(status_url)
            print("-" * 60)
            print(f"Deleted   : {deleted.status_code}")


if __name__ == "__main__":
    asyncio.run(main())
