"""Clinical Record Model.

This module defines the generic record representation the transformation
engine operates on. Records are parsed from FHIR JSON into immutable Pydantic
models; every record kind the rules inspect gets a typed variant, every other
kind is carried as a GenericRecord.

Security Impact:
    - Records are frozen after construction, rules can only produce new values
    - Unknown FHIR elements are preserved verbatim so no data is silently lost
    - References are kept as plain strings and never resolved

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Tagged union keyed by ``resourceType`` (see RECORD_TYPES)
    - FHIR JSON names are produced by a camel-case alias generator
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FhirElement(BaseModel):
    """Base class for all FHIR-shaped values.

    Unknown elements are allowed and round-trip unchanged through
    ``to_fhir()``.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
    )


def _prune(value: Any) -> Any:
    """Drop empty lists and empty objects, which FHIR JSON does not allow."""
    if isinstance(value, dict):
        pruned = {k: _prune(v) for k, v in value.items()}
        return {k: v for k, v in pruned.items() if v not in ([], {}, None)}
    if isinstance(value, list):
        pruned_items = [_prune(v) for v in value]
        return [v for v in pruned_items if v not in ([], {}, None)]
    return value


# ============================================================================
# Value Types
# ============================================================================

class Coding(FhirElement):
    """A coded value: (terminology system, code) with an optional display label.

    Equality is by value, so two codings with the same system and code and
    display compare equal.
    """

    system: Optional[str] = None
    code: Optional[str] = None
    display: Optional[str] = None


class CodeableConcept(FhirElement):
    """One concept expressed by zero or more codings."""

    coding: tuple[Coding, ...] = ()
    text: Optional[str] = None

    @property
    def first_coding(self) -> Optional[Coding]:
        return self.coding[0] if self.coding else None

    def coding_for_system(self, system: str) -> Optional[Coding]:
        """Return the first coding of the given terminology system, if any."""
        for coding in self.coding:
            if coding.system == system:
                return coding
        return None

    @classmethod
    def of(cls, system: str, code: str, display: Optional[str] = None) -> "CodeableConcept":
        return cls(coding=(Coding(system=system, code=code, display=display),))


class Reference(FhirElement):
    """A string-identity reference such as ``Patient/123``."""

    reference: Optional[str] = None
    display: Optional[str] = None

    @property
    def id_part(self) -> Optional[str]:
        """The identifier after the kind prefix, ignoring any version suffix."""
        if not self.reference:
            return None
        path = self.reference.split("/_history/")[0]
        return path.rsplit("/", 1)[-1]

    @property
    def kind_part(self) -> Optional[str]:
        if not self.reference or "/" not in self.reference:
            return None
        return self.reference.split("/_history/")[0].rsplit("/", 2)[-2]


class Quantity(FhirElement):
    value: Optional[float] = None
    unit: Optional[str] = None
    system: Optional[str] = None
    code: Optional[str] = None


class Range(FhirElement):
    low: Optional[Quantity] = None
    high: Optional[Quantity] = None


class Extension(FhirElement):
    """Side-channel key/value entry keyed by a URL.

    Only the value types the rules read or write are typed; any other
    ``value[x]`` element is kept as an extra field.
    """

    url: str
    value_codeable_concept: Optional[CodeableConcept] = None
    value_reference: Optional[Reference] = None
    value_string: Optional[str] = None
    value_range: Optional[Range] = None


class Meta(FhirElement):
    profile: tuple[str, ...] = ()


class Address(FhirElement):
    line: tuple[str, ...] = ()
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class SpecimenCollection(FhirElement):
    collected_date_time: Optional[str] = None
    body_site: Optional[CodeableConcept] = None
    extension: tuple[Extension, ...] = ()


class SpecimenProcessing(FhirElement):
    description: Optional[str] = None
    extension: tuple[Extension, ...] = ()


class OntologyTerm(FhirElement):
    """Catalog ontology term: a CURIE identifier and a label."""

    id: str
    label: Optional[str] = None


class MeasurementValue(FhirElement):
    value: Optional[float] = None
    units: Optional[OntologyTerm] = None


# ============================================================================
# Records
# ============================================================================

class ClinicalRecord(FhirElement):
    """Base of the record tagged union.

    Every record carries its kind tag (``resourceType``), a stable
    identifier, profile tags in ``meta.profile`` and extension entries.

    Parameters:
        resource_type: Record kind tag
        id: Stable identifier (string)
        meta: Metadata holding the profile tags
        extension: Extension entries keyed by URL
    """

    resource_type: str
    id: Optional[str] = None
    meta: Optional[Meta] = None
    extension: tuple[Extension, ...] = ()

    @property
    def kind(self) -> str:
        return self.resource_type

    @property
    def profiles(self) -> tuple[str, ...]:
        return self.meta.profile if self.meta else ()

    def has_profile(self, url: str) -> bool:
        return url in self.profiles

    def extensions_by_url(self, url: str) -> list[Extension]:
        return [ext for ext in self.extension if ext.url == url]

    def first_extension(self, url: str) -> Optional[Extension]:
        matches = self.extensions_by_url(url)
        return matches[0] if matches else None

    def with_profiles(self, *profiles: str, **updates: Any) -> "ClinicalRecord":
        """Copy this record replacing its profile tags (and optional fields).

        The whole ``meta`` element is replaced, so source-store metadata such
        as version ids does not leak into the target schema.
        """
        return self.model_copy(update={"meta": Meta(profile=tuple(profiles)), **updates})

    def to_fhir(self) -> dict[str, Any]:
        """Serialise to FHIR JSON (aliases, no nulls, no empty arrays)."""
        return _prune(self.model_dump(by_alias=True, exclude_none=True, mode="json"))


class Patient(ClinicalRecord):
    resource_type: Literal["Patient"] = "Patient"
    gender: Optional[str] = None
    birth_date: Optional[str] = None
    address: tuple[Address, ...] = ()


class Condition(ClinicalRecord):
    resource_type: Literal["Condition"] = "Condition"
    category: tuple[CodeableConcept, ...] = ()
    code: Optional[CodeableConcept] = None
    subject: Optional[Reference] = None
    recorded_date: Optional[str] = None


class Observation(ClinicalRecord):
    resource_type: Literal["Observation"] = "Observation"
    status: Optional[str] = None
    category: tuple[CodeableConcept, ...] = ()
    code: Optional[CodeableConcept] = None
    subject: Optional[Reference] = None
    effective_date_time: Optional[str] = None
    value_codeable_concept: Optional[CodeableConcept] = None
    value_quantity: Optional[Quantity] = None


class Specimen(ClinicalRecord):
    resource_type: Literal["Specimen"] = "Specimen"
    type: Optional[CodeableConcept] = None
    subject: Optional[Reference] = None
    collection: Optional[SpecimenCollection] = None
    processing: tuple[SpecimenProcessing, ...] = ()

    @property
    def collected_date_time(self) -> Optional[str]:
        return self.collection.collected_date_time if self.collection else None


class Organization(ClinicalRecord):
    resource_type: Literal["Organization"] = "Organization"
    name: Optional[str] = None


class GenericRecord(ClinicalRecord):
    """Any record kind without a typed variant (Encounter, ImagingStudy, ...)."""


class CatalogIndividual(ClinicalRecord):
    """Discovery-catalog individual (Beacon v2 ``individuals`` entry)."""

    resource_type: Literal["Individual"] = "Individual"
    sex: Optional[OntologyTerm] = None
    geographic_origin: Optional[OntologyTerm] = None
    measures: tuple["CatalogMeasurement", ...] = ()


class CatalogMeasurement(FhirElement):
    """One measurement attached to a catalog individual."""

    assay_code: OntologyTerm
    date: Optional[str] = None
    measurement_value: Optional[MeasurementValue] = None


class CatalogMeasure(ClinicalRecord):
    """A catalog measurement still detached from its individual.

    The catalog writer folds measures into the matching individual by
    ``individual_id``.
    """

    resource_type: Literal["Measure"] = "Measure"
    individual_id: Optional[str] = None
    measurement: CatalogMeasurement


class CatalogBiosample(ClinicalRecord):
    """Discovery-catalog biosample (Beacon v2 ``biosamples`` entry)."""

    resource_type: Literal["Biosample"] = "Biosample"
    individual_id: Optional[str] = None
    collection_date: Optional[str] = None
    info: dict[str, Any] = Field(default_factory=dict)
    sample_origin_type: Optional[OntologyTerm] = None


CatalogIndividual.model_rebuild()


def to_catalog(record: FhirElement) -> dict[str, Any]:
    """Serialise a catalog value in catalog JSON shape (no kind tag, no meta)."""
    data = record.model_dump(
        by_alias=True,
        exclude_none=True,
        mode="json",
        exclude={"resource_type", "meta", "extension"},
    )
    return _prune(data)


RECORD_TYPES: dict[str, type[ClinicalRecord]] = {
    "Patient": Patient,
    "Condition": Condition,
    "Observation": Observation,
    "Specimen": Specimen,
    "Organization": Organization,
    "Individual": CatalogIndividual,
    "Biosample": CatalogBiosample,
    "Measure": CatalogMeasure,
}


def parse_record(data: dict[str, Any]) -> ClinicalRecord:
    """Parse one FHIR JSON resource into its record variant.

    Parameters:
        data: Decoded FHIR JSON object

    Returns:
        ClinicalRecord: The typed variant for the kind, or GenericRecord

    Raises:
        ValueError: If ``resourceType`` is missing or the payload does not
            validate (pydantic's ValidationError is a ValueError)
    """
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    kind = data.get("resourceType")
    if not isinstance(kind, str) or not kind:
        raise ValueError("Record has no resourceType")
    model = RECORD_TYPES.get(kind, GenericRecord)
    return model.model_validate(data)
