"""Shared record factories for the TransFAIR test suite.

Every factory fixture returns a function building a parsed record in the
shape a FHIR server of the respective schema would deliver it. Keyword
arguments override top-level elements of the FHIR JSON.
"""

import json
from typing import Any, Callable

import pytest

from transfair.domain import profiles as p
from transfair.domain.concept_map import ConceptMap, TranslationTables
from transfair.domain.records import ClinicalRecord, parse_record


def _build(base: dict[str, Any], overrides: dict[str, Any]) -> ClinicalRecord:
    data = {**base, **overrides}
    return parse_record({k: v for k, v in data.items() if v is not None})


@pytest.fixture
def bbmri_patient() -> Callable[..., ClinicalRecord]:
    def make(**overrides):
        return _build({
            "resourceType": "Patient",
            "id": "p1",
            "meta": {"profile": [p.BBMRI_PATIENT]},
            "gender": "female",
            "birthDate": "1970-05-01",
        }, overrides)
    return make


@pytest.fixture
def bbmri_condition() -> Callable[..., ClinicalRecord]:
    def make(icd10: str = "C50.9", **overrides):
        return _build({
            "resourceType": "Condition",
            "id": "c1",
            "meta": {"profile": [p.BBMRI_CONDITION]},
            "subject": {"reference": "Patient/p1"},
            "onsetDateTime": "2020-01-15",
            "code": {"coding": [{"system": p.SYSTEM_ICD10, "code": icd10}]},
        }, overrides)
    return make


@pytest.fixture
def bbmri_cause_of_death() -> Callable[..., ClinicalRecord]:
    def make(icd10: str = "I21.9", **overrides):
        return _build({
            "resourceType": "Observation",
            "id": "o1",
            "meta": {"profile": [p.BBMRI_CAUSE_OF_DEATH]},
            "status": "final",
            "code": {"coding": [{"system": p.SYSTEM_LOINC, "code": p.CAUSE_OF_DEATH_OBSERVATION_LOINC}]},
            "subject": {"reference": "Patient/p1"},
            "effectiveDateTime": "2021-03-04",
            "valueCodeableConcept": {"coding": [{"system": p.SYSTEM_ICD10, "code": icd10}]},
        }, overrides)
    return make


@pytest.fixture
def bbmri_specimen() -> Callable[..., ClinicalRecord]:
    def make(material: str = "whole-blood", diagnosis: str = "C50.9", **overrides):
        extensions = [
            {
                "url": p.BBMRI_EXT_STORAGE_TEMPERATURE,
                "valueCodeableConcept": {"coding": [{
                    "system": p.BBMRI_SYSTEM_STORAGE_TEMPERATURE,
                    "code": "temperature-18to-35",
                }]},
            },
            {
                "url": p.BBMRI_EXT_CUSTODIAN,
                "valueReference": {"reference": "Organization/biobank-1"},
            },
        ]
        if diagnosis:
            extensions.append({
                "url": p.BBMRI_EXT_SAMPLE_DIAGNOSIS,
                "valueCodeableConcept": {"coding": [{"system": p.SYSTEM_ICD10, "code": diagnosis}]},
            })
        return _build({
            "resourceType": "Specimen",
            "id": "s1",
            "meta": {"profile": [p.BBMRI_SPECIMEN]},
            "extension": extensions,
            "type": {"coding": [{"system": p.BBMRI_SYSTEM_SAMPLE_MATERIAL_TYPE, "code": material}]},
            "subject": {"reference": "Patient/p1"},
            "collection": {
                "collectedDateTime": "2019-11-20",
                "bodySite": {"coding": [{"system": "urn:oid:2.16.840.1.113883.6.43.1", "code": "C50.9"}]},
            },
        }, overrides)
    return make


@pytest.fixture
def bbmri_organization() -> Callable[..., ClinicalRecord]:
    def make(**overrides):
        return _build({
            "resourceType": "Organization",
            "id": "biobank-1",
            "meta": {"profile": [p.BBMRI_BIOBANK]},
            "name": "Test Biobank",
            "extension": [{"url": p.BBMRI_EXT_ORGANIZATION_DESCRIPTION, "valueString": "Blood samples"}],
        }, overrides)
    return make


@pytest.fixture
def mii_diagnosis() -> Callable[..., ClinicalRecord]:
    def make(icd10_gm: str = "C50.9", **overrides):
        return _build({
            "resourceType": "Condition",
            "id": "d1",
            "meta": {"profile": [p.MII_DIAGNOSIS]},
            "subject": {"reference": "Patient/p1"},
            "recordedDate": "2020-01-15",
            "code": {"coding": [{"system": p.SYSTEM_ICD10_GM, "code": icd10_gm}]},
        }, overrides)
    return make


@pytest.fixture
def mii_cause_of_death() -> Callable[..., ClinicalRecord]:
    def make(icd10_gm: str = "I21.9", **overrides):
        return _build({
            "resourceType": "Condition",
            "id": "cod1",
            "meta": {"profile": [p.MII_CAUSE_OF_DEATH]},
            "subject": {"reference": "Patient/p1"},
            "recordedDate": "2021-03-04",
            "category": [{"coding": [{"system": p.SYSTEM_LOINC, "code": p.CAUSE_OF_DEATH_CATEGORY_LOINC}]}],
            "code": {"coding": [{"system": p.SYSTEM_ICD10_GM, "code": icd10_gm}]},
        }, overrides)
    return make


@pytest.fixture
def mii_specimen() -> Callable[..., ClinicalRecord]:
    def make(snomed: str = "119297000", **overrides):
        return _build({
            "resourceType": "Specimen",
            "id": "ms1",
            "meta": {"profile": [p.MII_SPECIMEN]},
            "extension": [{
                "url": p.MII_EXT_MANAGING_ORGANIZATION,
                "valueReference": {"reference": "Organization/biobank-1"},
            }],
            "type": {"coding": [{"system": p.SYSTEM_SNOMED, "code": snomed}]},
            "subject": {"reference": "Patient/p1"},
            "collection": {"collectedDateTime": "2019-11-20"},
            "processing": [{
                "extension": [{
                    "url": p.MII_EXT_TEMPERATURE_CONDITIONS,
                    "valueRange": {"low": {"value": -85}, "high": {"value": -60}},
                }],
            }],
        }, overrides)
    return make


@pytest.fixture
def body_weight() -> Callable[..., ClinicalRecord]:
    def make(value: float = 72.5, loinc: str = "29463-7", **overrides):
        return _build({
            "resourceType": "Observation",
            "id": "w1",
            "status": "final",
            "code": {"coding": [{"system": p.SYSTEM_LOINC, "code": loinc}]},
            "subject": {"reference": "Patient/p1"},
            "effectiveDateTime": "2022-06-01T10:15:00+02:00",
            "valueQuantity": {"value": value, "unit": "kg"},
        }, overrides)
    return make


@pytest.fixture
def tables() -> TranslationTables:
    """Translation tables with a handful of entries per direction."""
    return TranslationTables(
        diagnosis=ConceptMap({"C50.9": "C50.9", "E11": "E11.9"}, p.SYSTEM_ICD10, p.SYSTEM_ICD10_GM, "diagnosis"),
        diagnosis_reverse=ConceptMap({"C50.9": "C50.9", "E11.9": "E11"}, p.SYSTEM_ICD10_GM, p.SYSTEM_ICD10, "diagnosis_reverse"),
        cause_of_death=ConceptMap({"I21.9": "I21.9"}, p.SYSTEM_ICD10, p.SYSTEM_ICD10_GM, "cause_of_death"),
        cause_of_death_reverse=ConceptMap({"I21.9": "I21"}, p.SYSTEM_ICD10_GM, p.SYSTEM_ICD10, "cause_of_death_reverse"),
        sample_type=ConceptMap(
            {"whole-blood": "420135007", "blood-plasma": "119361006"},
            p.BBMRI_SYSTEM_SAMPLE_MATERIAL_TYPE, p.SYSTEM_SNOMED, "sample_type",
        ),
        sample_type_reverse=ConceptMap(
            {"420135007": "whole-blood", "119361006": "blood-plasma"},
            p.SYSTEM_SNOMED, p.BBMRI_SYSTEM_SAMPLE_MATERIAL_TYPE, "sample_type_reverse",
        ),
    )


@pytest.fixture
def write_json(tmp_path):
    """Write a JSON document below tmp_path and return its path as string."""
    def write(name: str, data: Any) -> str:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)
    return write
