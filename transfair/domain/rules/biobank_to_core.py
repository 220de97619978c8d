"""Rules for the biobank profile -> clinical-core profile direction.

Cardinality per input record:
    - Patient: 1
    - Condition: 0..1 (dropped when a configured diagnosis table misses the code)
    - Observation: 0..1 (only cause-of-death observations, promoted to Condition)
    - Specimen: 0..2 (rewritten specimen plus at most one synthesised diagnosis)
    - Organization: 1
"""

import enum
import logging
import uuid
from typing import Optional

from transfair.domain import profiles as p
from transfair.domain.records import (
    ClinicalRecord,
    CodeableConcept,
    Coding,
    Condition,
    Extension,
    Meta,
    Quantity,
    Range,
    Reference,
    Specimen,
    SpecimenProcessing,
)
from transfair.domain.rules.base import ProfiledRule

logger = logging.getLogger(__name__)


class BiobankInput(enum.Enum):
    """Recognised input profiles of biobank records."""

    PATIENT = "patient"
    CONDITION = "condition"
    CAUSE_OF_DEATH = "cause-of-death"
    SPECIMEN = "specimen"
    BIOBANK = "biobank"
    COLLECTION = "collection"
    UNTAGGED = "untagged"


def _copy_reference(reference: Optional[Reference]) -> Optional[Reference]:
    if reference is None or not reference.reference:
        return None
    return Reference(reference=reference.reference)


def _temperature_range(code: str) -> Optional[Range]:
    bounds = p.STORAGE_TEMPERATURE_RANGES.get(code)
    if bounds is None:
        return None
    low, high = bounds
    return Range(
        low=Quantity(value=low, unit=p.CELSIUS_UNIT, system=p.UCUM_SYSTEM, code="Cel"),
        high=Quantity(value=high, unit=p.CELSIUS_UNIT, system=p.UCUM_SYSTEM, code="Cel"),
    )


class PatientRule(ProfiledRule):
    kind = "Patient"
    profiles = {
        p.BBMRI_PATIENT: BiobankInput.PATIENT,
        p.BBMRI_PATIENT_SIMPLIFIER: BiobankInput.PATIENT,
    }
    accept_untagged = BiobankInput.UNTAGGED

    def apply_profile(self, record, profile):
        return [record.with_profiles(p.MII_PATIENT)]


class ConditionRule(ProfiledRule):
    """Biobank diagnosis -> core Diagnose.

    The ICD-10 (WHO) code is translated to ICD-10-GM through the
    ``diagnosis`` table. Without a table the code is kept and only the
    system is relabelled; with a table, a missing entry drops the record.
    """

    kind = "Condition"
    profiles = {p.BBMRI_CONDITION: BiobankInput.CONDITION}
    accept_untagged = BiobankInput.UNTAGGED

    def apply_profile(self, record, profile):
        source = None
        if record.code is not None:
            source = record.code.coding_for_system(p.SYSTEM_ICD10) or record.code.first_coding
        if source is None or not source.code:
            logger.debug(f"Condition/{record.id}: no diagnosis code, not representable")
            return []

        table = self.tables.diagnosis
        if table is None:
            target_code = source.code
        else:
            target_code = table.lookup(source.code)
            if target_code is None:
                logger.debug(f"Condition/{record.id}: no ICD-10-GM entry for '{source.code}'")
                return []

        code = CodeableConcept.of(p.SYSTEM_ICD10_GM, target_code, source.display)
        return [record.with_profiles(p.MII_DIAGNOSIS, code=code)]


class ObservationRule(ProfiledRule):
    """Cause-of-death observation -> core Todesursache condition.

    All other observations have no counterpart in the core schema.
    """

    kind = "Observation"
    profiles = {p.BBMRI_CAUSE_OF_DEATH: BiobankInput.CAUSE_OF_DEATH}

    def apply_profile(self, record, profile):
        value = record.value_codeable_concept.first_coding if record.value_codeable_concept else None
        if value is None or not value.code:
            return []

        coding = Coding(system=value.system, code=value.code)
        table = self.tables.cause_of_death
        if table is not None:
            mapped = table.lookup(value.code)
            if mapped is not None:
                coding = Coding(system=p.SYSTEM_ICD10_GM, code=mapped)

        condition = Condition(
            id=record.id,
            meta=Meta(profile=(p.MII_CAUSE_OF_DEATH,)),
            recorded_date=record.effective_date_time,
            subject=_copy_reference(record.subject),
            category=(
                CodeableConcept.of(p.SYSTEM_LOINC, p.CAUSE_OF_DEATH_CATEGORY_LOINC),
                CodeableConcept.of(p.SYSTEM_SNOMED, p.CAUSE_OF_DEATH_CATEGORY_SNOMED),
            ),
            code=CodeableConcept(coding=(coding,)),
        )
        return [condition]


class SpecimenRule(ProfiledRule):
    """Biobank specimen -> core biobank specimen (plus optional diagnosis).

    Preconditions: a collection date and a sample material type with an
    entry in the ``sample_type`` table. Biobank extensions are dropped and
    rebuilt in their core form; the first sample diagnosis becomes a
    separate Diagnose condition referenced from the specimen.
    """

    kind = "Specimen"
    max_outputs = 2
    profiles = {p.BBMRI_SPECIMEN: BiobankInput.SPECIMEN}
    accept_untagged = BiobankInput.UNTAGGED

    def apply_profile(self, record: Specimen, profile) -> list[ClinicalRecord]:
        collected = record.collected_date_time
        if not collected:
            logger.debug(f"Specimen/{record.id}: no collection date")
            return []

        material = record.type.coding_for_system(p.BBMRI_SYSTEM_SAMPLE_MATERIAL_TYPE) if record.type else None
        if material is None or not material.code:
            logger.debug(f"Specimen/{record.id}: no sample material type")
            return []
        table = self.tables.sample_type
        snomed = table.lookup(material.code) if table is not None else None
        if snomed is None:
            logger.debug(f"Specimen/{record.id}: no SNOMED entry for '{material.code}'")
            return []

        collection = record.collection.model_copy(update={
            "extension": (),
            "body_site": self._body_site(record.collection.body_site),
        })

        extensions: list[Extension] = []
        custodian = record.first_extension(p.BBMRI_EXT_CUSTODIAN)
        if custodian is not None and custodian.value_reference is not None:
            extensions.append(Extension(
                url=p.MII_EXT_MANAGING_ORGANIZATION,
                value_reference=_copy_reference(custodian.value_reference),
            ))

        processing = record.processing
        temperature = record.first_extension(p.BBMRI_EXT_STORAGE_TEMPERATURE)
        if temperature is not None and temperature.value_codeable_concept is not None:
            first = temperature.value_codeable_concept.first_coding
            temperature_range = _temperature_range(first.code) if first and first.code else None
            if temperature_range is not None:
                conditions = Extension(url=p.MII_EXT_TEMPERATURE_CONDITIONS, value_range=temperature_range)
                first_step = processing[0] if processing else SpecimenProcessing()
                first_step = first_step.model_copy(update={"extension": first_step.extension + (conditions,)})
                processing = (first_step,) + tuple(processing[1:])

        diagnosis = self._diagnosis(record, collected)
        if diagnosis is not None:
            extensions.append(Extension(
                url=p.MII_EXT_SPECIMEN_DIAGNOSIS,
                value_reference=Reference(reference=f"Condition/{diagnosis.id}"),
            ))

        specimen = record.with_profiles(
            p.MII_SPECIMEN,
            type=CodeableConcept.of(p.SYSTEM_SNOMED, snomed),
            collection=collection,
            processing=processing,
            extension=tuple(extensions),
        )
        return [diagnosis, specimen] if diagnosis is not None else [specimen]

    @staticmethod
    def _body_site(body_site: Optional[CodeableConcept]) -> Optional[CodeableConcept]:
        first = body_site.first_coding if body_site else None
        if first is None or not first.code:
            return None
        return CodeableConcept.of(p.SYSTEM_ICD_O_3, first.code, first.display)

    def _diagnosis(self, record: Specimen, collected: str) -> Optional[Condition]:
        for extension in record.extensions_by_url(p.BBMRI_EXT_SAMPLE_DIAGNOSIS):
            concept = extension.value_codeable_concept
            coding = concept.first_coding if concept else None
            if coding is not None and coding.code:
                break
        else:
            return None

        table = self.tables.diagnosis
        mapped = table.lookup(coding.code) if table is not None else None
        if record.id:
            condition_id = str(uuid.uuid5(uuid.NAMESPACE_URL, f"Specimen/{record.id}#{coding.code}"))
        else:
            condition_id = str(uuid.uuid4())

        return Condition(
            id=condition_id,
            meta=Meta(profile=(p.MII_DIAGNOSIS,)),
            subject=_copy_reference(record.subject),
            recorded_date=collected,
            code=CodeableConcept.of(p.SYSTEM_ICD10_GM, mapped or coding.code),
        )


class OrganizationRule(ProfiledRule):
    """Biobank/collection organization -> core biobank Organization."""

    kind = "Organization"
    profiles = {
        p.BBMRI_BIOBANK: BiobankInput.BIOBANK,
        p.BBMRI_COLLECTION: BiobankInput.COLLECTION,
    }
    accept_untagged = BiobankInput.UNTAGGED

    def apply_profile(self, record, profile):
        extensions = tuple(
            ext.model_copy(update={"url": p.MII_EXT_COLLECTION_DESCRIPTION})
            if ext.url == p.BBMRI_EXT_ORGANIZATION_DESCRIPTION else ext
            for ext in record.extension
        )
        return [record.with_profiles(p.MII_ORGANIZATION, extension=extensions)]


RULES = (PatientRule, ConditionRule, ObservationRule, SpecimenRule, OrganizationRule)
