"""Resource store doubles and small builders shared by the test modules."""

from __future__ import annotations

import asyncio
from typing import Any, Iterable, Mapping, Optional

from fhirside.core.enums import ResourceType
from fhirside.resources.seed import PATIENTS
from fhirside.resources.store import InMemoryResourceStore, Record, ResourceRepository


class GatedResourceStore(InMemoryResourceStore):
    """Store whose ``list_all()`` blocks until ``release()`` is called.

    ``entered`` is set as soon as a caller is waiting at the gate.
    """

    def __init__(
        self,
        resource_type: ResourceType,
        records: Optional[Iterable[Mapping[str, Any]]] = None,
    ) -> None:
        super().__init__(resource_type, records)
        self.entered = asyncio.Event()
        self._gate = asyncio.Event()

    def release(self) -> None:
        self._gate.set()

    async def list_all(self) -> list[Record]:
        self.entered.set()
        await self._gate.wait()
        return await super().list_all()


class FailingResourceStore(InMemoryResourceStore):
    """Store whose ``list_all()`` always raises."""

    def __init__(self, resource_type: ResourceType, error: Optional[Exception] = None) -> None:
        super().__init__(resource_type)
        self._error = error or RuntimeError("store unavailable")

    async def list_all(self) -> list[Record]:
        raise self._error


def repository_with(*stores: InMemoryResourceStore, seed=None) -> ResourceRepository:
    """In-memory repository with the given stores swapped in."""
    repository = ResourceRepository.in_memory(seed=seed)
    for store in stores:
        repository.register(store)
    return repository


def patients_only_repository() -> ResourceRepository:
    """Two patients, every other category empty."""
    return ResourceRepository.in_memory(seed={ResourceType.PATIENT: PATIENTS})
