"""
fhirside.resources.seed - Sandbox Sample Records
==================================================

Sample FHIR R4 records loaded into the in-memory stores when
``FhirSideConfig.seed_sample_data`` is true. Two patients, each with an
encounter, vital-sign observations and an active medication order.
"""

from __future__ import annotations

from typing import Any

from fhirside.core.enums import ResourceType

_OBSERVATION_CATEGORY = {
    "coding": [
        {
            "system": "http://terminology.hl7.org/CodeSystem/observation-category",
            "code": "vital-signs",
            "display": "Vital Signs",
        }
    ]
}

_ENCOUNTER_CLASS_SYSTEM = "http://terminology.hl7.org/CodeSystem/v3-ActCode"
_LOINC = "http://loinc.org"
_RXNORM = "http://www.nlm.nih.gov/research/umls/rxnorm"
_SNOMED = "http://snomed.info/sct"
_UCUM = "http://unitsofmeasure.org"

PATIENTS: list[dict[str, Any]] = [
    {
        "resourceType": "Patient",
        "id": "1",
        "name": [{"given": ["John"], "family": "Doe"}],
        "gender": "male",
        "birthDate": "1980-01-15",
        "address": [
            {
                "line": ["123 Main Street"],
                "city": "Boston",
                "state": "MA",
                "postalCode": "02101",
                "country": "USA",
            }
        ],
    },
    {
        "resourceType": "Patient",
        "id": "2",
        "name": [{"given": ["Jane"], "family": "Smith"}],
        "gender": "female",
        "birthDate": "1985-07-22",
        "address": [
            {
                "line": ["456 Oak Avenue"],
                "city": "Cambridge",
                "state": "MA",
                "postalCode": "02139",
                "country": "USA",
            }
        ],
    },
]

ENCOUNTERS: list[dict[str, Any]] = [
    {
        "resourceType": "Encounter",
        "id": "1",
        "status": "finished",
        "class": {"system": _ENCOUNTER_CLASS_SYSTEM, "code": "AMB", "display": "ambulatory"},
        "subject": {"reference": "Patient/1"},
        "period": {"start": "2024-01-15T09:00:00Z", "end": "2024-01-15T10:00:00Z"},
        "reasonCode": [
            {"coding": [{"system": _SNOMED, "code": "185349003", "display": "Encounter for check up"}]}
        ],
    },
    {
        "resourceType": "Encounter",
        "id": "2",
        "status": "in-progress",
        "class": {"system": _ENCOUNTER_CLASS_SYSTEM, "code": "EMER", "display": "emergency"},
        "subject": {"reference": "Patient/2"},
        "period": {"start": "2024-02-10T14:30:00Z"},
    },
]

OBSERVATIONS: list[dict[str, Any]] = [
    {
        "resourceType": "Observation",
        "id": "1",
        "status": "final",
        "category": [_OBSERVATION_CATEGORY],
        "code": {
            "coding": [{"system": _LOINC, "code": "8867-4", "display": "Heart rate"}],
            "text": "Heart rate",
        },
        "subject": {"reference": "Patient/1"},
        "effectiveDateTime": "2024-01-15T09:30:00Z",
        "valueQuantity": {"value": 72, "unit": "beats/minute", "system": _UCUM, "code": "/min"},
    },
    {
        "resourceType": "Observation",
        "id": "2",
        "status": "final",
        "category": [_OBSERVATION_CATEGORY],
        "code": {
            "coding": [{"system": _LOINC, "code": "8310-5", "display": "Body temperature"}],
            "text": "Body temperature",
        },
        "subject": {"reference": "Patient/1"},
        "effectiveDateTime": "2024-01-15T09:30:00Z",
        "valueQuantity": {"value": 98.6, "unit": "°F", "system": _UCUM, "code": "[degF]"},
    },
    {
        "resourceType": "Observation",
        "id": "3",
        "status": "final",
        "category": [_OBSERVATION_CATEGORY],
        "code": {
            "coding": [{"system": _LOINC, "code": "85354-9", "display": "Blood pressure panel"}],
            "text": "Blood pressure",
        },
        "subject": {"reference": "Patient/2"},
        "effectiveDateTime": "2024-02-10T14:45:00Z",
        "component": [
            {
                "code": {"coding": [{"system": _LOINC, "code": "8480-6", "display": "Systolic blood pressure"}]},
                "valueQuantity": {"value": 120, "unit": "mmHg", "system": _UCUM, "code": "mm[Hg]"},
            },
            {
                "code": {"coding": [{"system": _LOINC, "code": "8462-4", "display": "Diastolic blood pressure"}]},
                "valueQuantity": {"value": 80, "unit": "mmHg", "system": _UCUM, "code": "mm[Hg]"},
            },
        ],
    },
]


def _oral_dosage(text: str, frequency: int) -> dict[str, Any]:
    return {
        "text": text,
        "timing": {"repeat": {"frequency": frequency, "period": 1, "periodUnit": "d"}},
        "route": {"coding": [{"system": _SNOMED, "code": "26643006", "display": "Oral route"}]},
        "doseAndRate": [{"doseQuantity": {"value": 1, "unit": "tablet"}}],
    }


MEDICATION_REQUESTS: list[dict[str, Any]] = [
    {
        "resourceType": "MedicationRequest",
        "id": "1",
        "status": "active",
        "intent": "order",
        "medicationCodeableConcept": {
            "coding": [{"system": _RXNORM, "code": "197361", "display": "Lisinopril 10 MG Oral Tablet"}],
            "text": "Lisinopril 10mg",
        },
        "subject": {"reference": "Patient/1"},
        "authoredOn": "2024-01-15",
        "requester": {"reference": "Practitioner/1"},
        "dosageInstruction": [_oral_dosage("Take one tablet by mouth once daily", 1)],
    },
    {
        "resourceType": "MedicationRequest",
        "id": "2",
        "status": "active",
        "intent": "order",
        "medicationCodeableConcept": {
            "coding": [
                {"system": _RXNORM, "code": "860975", "display": "Metformin hydrochloride 500 MG Oral Tablet"}
            ],
            "text": "Metformin 500mg",
        },
        "subject": {"reference": "Patient/2"},
        "authoredOn": "2024-02-10",
        "requester": {"reference": "Practitioner/1"},
        "dosageInstruction": [_oral_dosage("Take one tablet by mouth twice daily with meals", 2)],
    },
]

SAMPLE_RECORDS: dict[ResourceType, list[dict[str, Any]]] = {
    ResourceType.PATIENT: PATIENTS,
    ResourceType.ENCOUNTER: ENCOUNTERS,
    ResourceType.OBSERVATION: OBSERVATIONS,
    ResourceType.MEDICATION_REQUEST: MEDICATION_REQUESTS,
}
