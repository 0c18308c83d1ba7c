"""
fhirside.resources.store - Resource Stores
============================================

This module provides the per-category record stores that back both the
FHIR CRUD endpoints and the bulk export subsystem.

Architecture Context:

    ┌──────────────────┐   create/update/delete   ┌──────────────────────┐
    │  CRUD routes      │ ───────────────────────→ │                      │
    └──────────────────┘                          │  ResourceRepository  │
    ┌──────────────────┐   list_all(type)          │   Patient store      │
    │  Export           │ ───────────────────────→ │   Encounter store    │
    │  Orchestrator     │      (read-only)         │   Observation store  │
    └──────────────────┘                          │   MedicationRequest  │
                                                  └──────────────────────┘

Records:
    A record is a FHIR-shaped JSON object (``dict[str, Any]``) carrying at
    least ``resourceType`` and ``id``. Stores hand out deep copies, so a
    caller can never mutate a stored record in place.

Ownership:
    ``list_by_owner(patient_id)`` returns the records in a patient's
    compartment: the Patient itself, or every record whose
    ``subject.reference`` is ``"Patient/{patient_id}"``.

Implementations:
    - ResourceStore (ABC):     Abstract interface
    - InMemoryResourceStore:   Dict-based, seeded for the sandbox
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping, Optional

import structlog

from fhirside.core.enums import ResourceType
from fhirside.core.exceptions import ConfigurationError, InvalidResourceError


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()

Record = dict[str, Any]


def owner_reference(patient_id: str) -> str:
    """Reference string that points at a patient: ``Patient/{id}``."""
    return f"{ResourceType.PATIENT.value}/{patient_id}"


# =============================================================================
# Abstract Base Class
# =============================================================================
class ResourceStore(ABC):
    """Abstract interface for one resource category's storage.

    Every method is a coroutine so that a database- or network-backed
    implementation can suspend on I/O without changing callers.
    """

    @property
    @abstractmethod
    def resource_type(self) -> ResourceType:
        """The category this store holds."""

    @abstractmethod
    async def list_all(self) -> list[Record]:
        """Return every record, in insertion order."""

    @abstractmethod
    async def list_by_owner(self, patient_id: str) -> list[Record]:
        """Return the records in ``patient_id``'s compartment."""

    @abstractmethod
    async def get(self, resource_id: str) -> Optional[Record]:
        """Return one record, or None if the id is unknown."""

    @abstractmethod
    async def create(self, record: Mapping[str, Any]) -> Record:
        """Store a new record under a freshly assigned id.

        Raises:
            InvalidResourceError: If ``resourceType`` names another category.
        """

    @abstractmethod
    async def update(self, resource_id: str, record: Mapping[str, Any]) -> Optional[Record]:
        """Replace an existing record. Returns None if the id is unknown."""

    @abstractmethod
    async def delete(self, resource_id: str) -> bool:
        """Remove a record. Returns True if it existed."""

    @abstractmethod
    async def count(self) -> int:
        """Number of stored records."""


# =============================================================================
# In-Memory Implementation
# =============================================================================
class InMemoryResourceStore(ResourceStore):
    """Dict-backed resource store for development, testing and the sandbox.

    Ids are sequential decimal strings. Seeded records keep their ids and
    the counter continues after the highest numeric one.

    Example:
        >>> store = InMemoryResourceStore(ResourceType.PATIENT)
        >>> created = await store.create({"name": [{"family": "Doe"}]})
        >>> created["id"], created["resourceType"]
        ('1', 'Patient')
    """

    def __init__(
        self,
        resource_type: ResourceType,
        records: Optional[Iterable[Mapping[str, Any]]] = None,
    ) -> None:
        self._resource_type = resource_type
        self._records: dict[str, Record] = {}
        self._next_id = 1
        self._logger = logger.bind(
            component="in_memory_resource_store",
            resource_type=resource_type.value,
        )

        for record in records or ():
            self._insert_seed(record)

    @property
    def resource_type(self) -> ResourceType:
        return self._resource_type

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------
    async def list_all(self) -> list[Record]:
        return [copy.deepcopy(r) for r in self._records.values()]

    async def list_by_owner(self, patient_id: str) -> list[Record]:
        if self._resource_type is ResourceType.PATIENT:
            record = self._records.get(patient_id)
            return [copy.deepcopy(record)] if record is not None else []

        reference = owner_reference(patient_id)
        return [
            copy.deepcopy(r)
            for r in self._records.values()
            if (r.get("subject") or {}).get("reference") == reference
        ]

    async def get(self, resource_id: str) -> Optional[Record]:
        record = self._records.get(resource_id)
        return copy.deepcopy(record) if record is not None else None

    async def count(self) -> int:
        return len(self._records)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------
    async def create(self, record: Mapping[str, Any]) -> Record:
        stored = self._normalize(record)
        resource_id = str(self._next_id)
        self._next_id += 1
        stored["id"] = resource_id
        self._records[resource_id] = stored

        self._logger.debug("resource_created", resource_id=resource_id)
        return copy.deepcopy(stored)

    async def update(self, resource_id: str, record: Mapping[str, Any]) -> Optional[Record]:
        if resource_id not in self._records:
            return None

        stored = self._normalize(record)
        stored["id"] = resource_id
        self._records[resource_id] = stored

        self._logger.debug("resource_updated", resource_id=resource_id)
        return copy.deepcopy(stored)

    async def delete(self, resource_id: str) -> bool:
        if self._records.pop(resource_id, None) is None:
            return False
        self._logger.debug("resource_deleted", resource_id=resource_id)
        return True

    # -------------------------------------------------------------------------
    # Internal Helpers
    # -------------------------------------------------------------------------
    def _normalize(self, record: Mapping[str, Any]) -> Record:
        """Deep-copy ``record`` and pin its ``resourceType``."""
        if not isinstance(record, Mapping):
            raise InvalidResourceError(
                message=f"{self._resource_type.value} body must be a JSON object",
                details={"resource_type": self._resource_type.value},
            )

        declared = record.get("resourceType")
        if declared is not None and declared != self._resource_type.value:
            raise InvalidResourceError(
                message=(
                    f"resourceType '{declared}' does not match "
                    f"endpoint type '{self._resource_type.value}'"
                ),
                error_code="RESOURCE_TYPE_MISMATCH",
                details={"expected": self._resource_type.value, "received": declared},
            )

        stored = copy.deepcopy(dict(record))
        stored["resourceType"] = self._resource_type.value
        return stored

    def _insert_seed(self, record: Mapping[str, Any]) -> None:
        stored = self._normalize(record)
        resource_id = str(stored.get("id") or self._next_id)
        stored["id"] = resource_id
        self._records[resource_id] = stored

        if resource_id.isdigit():
            self._next_id = max(self._next_id, int(resource_id) + 1)


# =============================================================================
# Resource Repository
# =============================================================================
# One store per category. The export orchestrator only ever calls
# list_all(); the CRUD routes use store_for() to reach the full interface.
# =============================================================================
class ResourceRepository:
    """Registry of resource stores keyed by ResourceType.

    Example:
        >>> repo = ResourceRepository.in_memory(seed=SAMPLE_RECORDS)
        >>> patients = await repo.list_all(ResourceType.PATIENT)
    """

    def __init__(self, stores: Optional[Iterable[ResourceStore]] = None) -> None:
        self._stores: dict[ResourceType, ResourceStore] = {}
        for store in stores or ():
            self.register(store)

    @classmethod
    def in_memory(
        cls,
        seed: Optional[Mapping[ResourceType, Iterable[Mapping[str, Any]]]] = None,
    ) -> ResourceRepository:
        """Build a repository with one InMemoryResourceStore per ResourceType."""
        seed = seed or {}
        return cls(
            InMemoryResourceStore(resource_type, seed.get(resource_type))
            for resource_type in ResourceType
        )

    def register(self, store: ResourceStore) -> None:
        """Add or replace the store for ``store.resource_type``."""
        self._stores[store.resource_type] = store

    @property
    def resource_types(self) -> list[ResourceType]:
        return list(self._stores)

    def store_for(self, resource_type: ResourceType) -> ResourceStore:
        """Return the store for a category.

        Raises:
            ConfigurationError: If no store is registered for it.
        """
        try:
            return self._stores[resource_type]
        except KeyError:
            raise ConfigurationError(
                message=f"No resource store registered for {resource_type.value}",
                error_code="MISSING_RESOURCE_STORE",
                details={"resource_type": resource_type.value},
            ) from None

    async def seed(
        self, records: Mapping[ResourceType, Iterable[Mapping[str, Any]]]
    ) -> int:
        """Create ``records`` through each store's public interface.

        Ids are assigned by the stores. Use ``in_memory(seed=...)`` to keep
        the ids carried by the records.

        Returns:
            Number of records created.
        """
        created = 0
        for resource_type, batch in records.items():
            store = self.store_for(resource_type)
            for record in batch:
                await store.create(record)
                created += 1
        return created

    async def list_all(self, resource_type: ResourceType) -> list[Record]:
        return await self.store_for(resource_type).list_all()

    async def list_by_owner(self, resource_type: ResourceType, patient_id: str) -> list[Record]:
        return await self.store_for(resource_type).list_by_owner(patient_id)
