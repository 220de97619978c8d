"""Rules for the clinical-core profile -> biobank profile direction.

Cardinality per input record:
    - Patient: 1
    - Condition: 0..1 (cause of death demoted to Observation, diagnoses copied)
    - Observation: 0 (the biobank schema has no counterpart)
    - Specimen: 0..1
    - Organization: 1
"""

import enum
import logging
from typing import Optional

from transfair.domain import profiles as p
from transfair.domain.records import (
    CodeableConcept,
    Coding,
    Extension,
    Meta,
    Observation,
    Range,
    Reference,
    Specimen,
)
from transfair.domain.rules.base import ProfiledRule, TransformRule

logger = logging.getLogger(__name__)


class CoreInput(enum.Enum):
    """Recognised input profiles of clinical-core records."""

    PATIENT = "patient"
    DIAGNOSIS = "diagnosis"
    CAUSE_OF_DEATH = "cause-of-death"
    SPECIMEN = "specimen"
    ORGANIZATION = "organization"
    UNTAGGED = "untagged"


def storage_temperature_code(temperature: Optional[Range]) -> Optional[str]:
    """Biobank storage temperature code for a (low, high) range, if one matches."""
    if temperature is None or temperature.low is None or temperature.high is None:
        return None
    bounds = (temperature.low.value, temperature.high.value)
    for code, (low, high) in p.STORAGE_TEMPERATURE_RANGES.items():
        if bounds == (low, high):
            return code
    return None


class PatientRule(ProfiledRule):
    kind = "Patient"
    profiles = {p.MII_PATIENT: CoreInput.PATIENT}
    accept_untagged = CoreInput.UNTAGGED

    def apply_profile(self, record, profile):
        return [record.with_profiles(p.BBMRI_PATIENT)]


class ConditionRule(ProfiledRule):
    """Core conditions, branched on profile.

    - Todesursache: demoted to a biobank CauseOfDeath Observation with the
      ICD-10 cause as value (``cause_of_death_reverse``, pass-through on miss)
    - Diagnose: copied as biobank Condition with an ICD-10 code
      (``diagnosis_reverse``; a configured table that misses drops the record)
    """

    kind = "Condition"
    profiles = {
        p.MII_CAUSE_OF_DEATH: CoreInput.CAUSE_OF_DEATH,
        p.MII_DIAGNOSIS: CoreInput.DIAGNOSIS,
    }

    def apply_profile(self, record, profile):
        source = record.code.first_coding if record.code else None
        if source is None or not source.code:
            logger.debug(f"Condition/{record.id}: no code, not representable")
            return []
        if profile is CoreInput.CAUSE_OF_DEATH:
            return [self._cause_of_death(record, source)]

        table = self.tables.diagnosis_reverse
        if table is None:
            target_code = source.code
        else:
            target_code = table.lookup(source.code)
            if target_code is None:
                logger.debug(f"Condition/{record.id}: no ICD-10 entry for '{source.code}'")
                return []
        code = CodeableConcept.of(p.SYSTEM_ICD10, target_code, source.display)
        return [record.with_profiles(p.BBMRI_CONDITION, code=code)]

    def _cause_of_death(self, record, source: Coding) -> Observation:
        table = self.tables.cause_of_death_reverse
        mapped = table.lookup(source.code) if table is not None else None
        subject = record.subject
        return Observation(
            id=record.id,
            meta=Meta(profile=(p.BBMRI_CAUSE_OF_DEATH,)),
            status="final",
            effective_date_time=record.recorded_date,
            subject=Reference(reference=subject.reference) if subject and subject.reference else None,
            code=CodeableConcept.of(p.SYSTEM_LOINC, p.CAUSE_OF_DEATH_OBSERVATION_LOINC),
            value_codeable_concept=CodeableConcept.of(p.SYSTEM_ICD10, mapped or source.code),
        )


class ObservationRule(TransformRule):
    """Registered so core observations are counted as unrepresentable, not unmappable."""

    kind = "Observation"
    max_outputs = 0

    def apply(self, record):
        return []


class SpecimenRule(ProfiledRule):
    """Core biobank specimen -> biobank specimen.

    A SNOMED sample type without an entry in ``sample_type_reverse`` falls
    back to ``derivative-other``; a specimen without any SNOMED type or
    without a collection date is not representable.
    """

    kind = "Specimen"
    profiles = {p.MII_SPECIMEN: CoreInput.SPECIMEN}
    accept_untagged = CoreInput.UNTAGGED

    def apply_profile(self, record: Specimen, profile):
        if not record.collected_date_time:
            logger.debug(f"Specimen/{record.id}: no collection date")
            return []
        snomed = record.type.coding_for_system(p.SYSTEM_SNOMED) if record.type else None
        if snomed is None or not snomed.code:
            logger.debug(f"Specimen/{record.id}: no SNOMED sample type")
            return []

        table = self.tables.sample_type_reverse
        material = table.lookup(snomed.code) if table is not None else None
        if material is None:
            material = p.DERIVATIVE_OTHER

        extensions: list[Extension] = []
        temperature_code = None
        for step in record.processing:
            for ext in step.extension:
                if ext.url == p.MII_EXT_TEMPERATURE_CONDITIONS:
                    temperature_code = temperature_code or storage_temperature_code(ext.value_range)
        if temperature_code is not None:
            extensions.append(Extension(
                url=p.BBMRI_EXT_STORAGE_TEMPERATURE,
                value_codeable_concept=CodeableConcept.of(
                    p.BBMRI_SYSTEM_STORAGE_TEMPERATURE, temperature_code
                ),
            ))

        managing = record.first_extension(p.MII_EXT_MANAGING_ORGANIZATION)
        if managing is not None and managing.value_reference is not None and managing.value_reference.reference:
            extensions.append(Extension(
                url=p.BBMRI_EXT_CUSTODIAN,
                value_reference=Reference(reference=managing.value_reference.reference),
            ))

        body_site = record.collection.body_site
        first_site = body_site.first_coding if body_site else None
        collection = record.collection.model_copy(update={
            "extension": (),
            "body_site": (
                CodeableConcept.of(p.SYSTEM_ICD_O_3, first_site.code, first_site.display)
                if first_site is not None and first_site.code else None
            ),
        })

        processing = tuple(
            step.model_copy(update={"extension": ()})
            for step in record.processing
            if step.description or step.model_extra
        )

        return [record.with_profiles(
            p.BBMRI_SPECIMEN,
            type=CodeableConcept.of(p.BBMRI_SYSTEM_SAMPLE_MATERIAL_TYPE, material),
            collection=collection,
            processing=processing,
            extension=tuple(extensions),
        )]


class OrganizationRule(ProfiledRule):
    kind = "Organization"
    profiles = {p.MII_ORGANIZATION: CoreInput.ORGANIZATION}
    accept_untagged = CoreInput.UNTAGGED

    def apply_profile(self, record, profile):
        extensions = tuple(
            ext.model_copy(update={"url": p.BBMRI_EXT_ORGANIZATION_DESCRIPTION})
            if ext.url == p.MII_EXT_COLLECTION_DESCRIPTION else ext
            for ext in record.extension
        )
        return [record.with_profiles(p.BBMRI_BIOBANK, extension=extensions)]


RULES = (PatientRule, ConditionRule, ObservationRule, SpecimenRule, OrganizationRule)
