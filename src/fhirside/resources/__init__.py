"""
fhirside.resources - Resource Layer
=====================================

Record storage and encoding consumed by the export subsystem and the CRUD
routes:

    - ResourceStore (ABC) / InMemoryResourceStore: one store per category
    - ResourceRepository: all stores, keyed by ResourceType
    - NdjsonEncoder: record → NDJSON line
    - SAMPLE_RECORDS: sandbox seed data
"""

from fhirside.resources.encoder import NDJSON_MEDIA_TYPE, NdjsonEncoder
from fhirside.resources.seed import SAMPLE_RECORDS
from fhirside.resources.store import (
    InMemoryResourceStore,
    Record,
    ResourceRepository,
    ResourceStore,
    owner_reference,
)

__all__ = [
    "NDJSON_MEDIA_TYPE",
    "NdjsonEncoder",
    "SAMPLE_RECORDS",
    "InMemoryResourceStore",
    "Record",
    "ResourceRepository",
    "ResourceStore",
    "owner_reference",
]
