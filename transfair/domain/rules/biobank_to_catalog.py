"""Rules for the biobank profile -> discovery-catalog direction.

Patients become catalog individuals, specimens become biosamples, and
BMI/weight/height observations become measures that the catalog writer
attaches to their individual. Every other observation is dropped.
"""

import enum
import logging

from transfair.domain import profiles as p
from transfair.domain.records import (
    CatalogBiosample,
    CatalogIndividual,
    CatalogMeasure,
    Meta,
)
from transfair.domain.rules import catalog_terms
from transfair.domain.rules.base import ProfiledRule, TransformRule

logger = logging.getLogger(__name__)


class CatalogInput(enum.Enum):
    PATIENT = "patient"
    SPECIMEN = "specimen"
    UNTAGGED = "untagged"


class IndividualRule(ProfiledRule):
    kind = "Patient"
    profiles = {
        p.BBMRI_PATIENT: CatalogInput.PATIENT,
        p.BBMRI_PATIENT_SIMPLIFIER: CatalogInput.PATIENT,
    }
    accept_untagged = CatalogInput.UNTAGGED

    def apply_profile(self, record, profile):
        if not record.id:
            return []
        return [CatalogIndividual(
            id=record.id,
            meta=Meta(profile=(p.BEACON_INDIVIDUAL,)),
            sex=catalog_terms.sex_term(record.gender),
            geographic_origin=catalog_terms.geographic_origin(record.address),
        )]


class BiosampleRule(ProfiledRule):
    """Specimen -> biosample. Requires a subject reference."""

    kind = "Specimen"
    profiles = {p.BBMRI_SPECIMEN: CatalogInput.SPECIMEN}
    accept_untagged = CatalogInput.UNTAGGED

    def apply_profile(self, record, profile):
        individual_id = record.subject.id_part if record.subject else None
        if not record.id or not individual_id:
            logger.debug(f"Specimen/{record.id}: no subject, not representable as biosample")
            return []
        material = record.type.first_coding if record.type else None
        return [CatalogBiosample(
            id=record.id,
            meta=Meta(profile=(p.BEACON_BIOSAMPLE,)),
            individual_id=individual_id,
            collection_date=record.collected_date_time,
            info=catalog_terms.HUMAN_SAMPLE_INFO,
            sample_origin_type=catalog_terms.sample_origin_term(material.code if material else None),
        )]


class MeasureRule(TransformRule):
    """BMI, weight and height observations -> catalog measures.

    The observation code, not a profile tag, selects the measure.
    """

    kind = "Observation"

    def apply(self, record):
        if not record.id:
            return []
        code = record.code.first_coding if record.code else None
        quantity = record.value_quantity
        if code is None or quantity is None or quantity.value is None:
            return []
        individual_id = record.subject.id_part if record.subject else None
        measurement = catalog_terms.measurement(code.code, quantity.value, record.effective_date_time)
        if measurement is None or not individual_id:
            logger.debug(f"Observation/{record.id}: not a catalog measure")
            return []
        return [CatalogMeasure(
            id=record.id,
            meta=Meta(profile=(p.BEACON_MEASURE,)),
            individual_id=individual_id,
            measurement=measurement,
        )]


RULES = (IndividualRule, BiosampleRule, MeasureRule)
