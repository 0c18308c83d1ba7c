"""
fhirside.core.enums - Type-Safe Enumerations
==============================================

This module defines the enumeration types used throughout FhirSide.

All enums inherit from both `str` and `Enum`, which means:
    - They serialize to strings in JSON/YAML (Pydantic-friendly)
    - They can be compared with plain strings: ExportStatus.RUNNING == "running"
    - They render cleanly in structured log lines

Architecture Mapping:

    ┌─────────────────────────────────────────────────────────────────┐
    │  RESOURCE LAYER                                                 │
    │    ResourceType: The record categories backed by a store        │
    ├─────────────────────────────────────────────────────────────────┤
    │  EXPORT SUBSYSTEM                                               │
    │    ExportScope:  Which kick-off endpoint created the job        │
    │    ExportStatus: Job state machine (RUNNING → COMPLETED/FAILED) │
    └─────────────────────────────────────────────────────────────────┘
"""

from enum import Enum


# =============================================================================
# Resource Type Enumeration
# =============================================================================
# One member per resource category with its own backing store. The value is
# the FHIR resource type name, which is also used for the artifact file name
# ("Patient" → "Patient.ndjson") and the `type` field of the manifest.
# =============================================================================
class ResourceType(str, Enum):
    """FHIR resource categories served by FhirSide.

    Usage:
        >>> ResourceType.PATIENT.value
        'Patient'
        >>> ResourceType("Observation")
        <ResourceType.OBSERVATION: 'Observation'>
    """

    PATIENT = "Patient"
    ENCOUNTER = "Encounter"
    OBSERVATION = "Observation"
    MEDICATION_REQUEST = "MedicationRequest"


# =============================================================================
# Default Export Order
# =============================================================================
# Bulk exports walk the categories in this fixed order so that the `output`
# listing of a completed job is reproducible across runs.
# =============================================================================
DEFAULT_EXPORT_ORDER: tuple[ResourceType, ...] = (
    ResourceType.PATIENT,
    ResourceType.ENCOUNTER,
    ResourceType.OBSERVATION,
    ResourceType.MEDICATION_REQUEST,
)


class ExportScope(str, Enum):
    """Scope tag recorded on an export job.

    Both scopes currently run the same full aggregation; the tag is metadata
    that tells operators which kick-off endpoint was used.
    """

    SYSTEM = "system"      # GET /fhir/$export
    PATIENT = "patient"    # GET /fhir/Patient/$export


# =============================================================================
# Export Status Enumeration
# =============================================================================
# The export job state machine:
#
#   RUNNING ──(all categories exported)──→ COMPLETED
#   RUNNING ──(fetch/encode error, timeout, cancellation)──→ FAILED
#
# A job enters RUNNING at creation and leaves it exactly once.
# COMPLETED and FAILED are terminal.
# =============================================================================
class ExportStatus(str, Enum):
    """Lifecycle states of a bulk export job.

    Usage:
        >>> status = ExportStatus.RUNNING
        >>> status.is_terminal
        False
    """

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """True for states that admit no further transitions."""
        return self is not ExportStatus.RUNNING
