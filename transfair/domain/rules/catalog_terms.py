"""Biobank -> discovery-catalog terminology converters.

Lookup tables translating biobank values (gender, country names, sample
material types, LOINC observation codes) into the ontology terms the
catalog schema expects.
"""

import logging
from typing import Iterable, Optional

from transfair.domain.records import (
    Address,
    CatalogMeasurement,
    MeasurementValue,
    OntologyTerm,
)

logger = logging.getLogger(__name__)

GEOGRAPHIC_LOCATION = OntologyTerm(id="GAZ:00000448", label="geographic location")

_SEX_TERMS = {
    "male": OntologyTerm(id="NCIT:C20197", label="male"),
    "female": OntologyTerm(id="NCIT:C16576", label="female"),
}
UNKNOWN_SEX = OntologyTerm(id="NCIT:C1799", label="unknown")

_COUNTRY_TERMS = {
    "italy": OntologyTerm(id="GAZ:00002650", label="Italy"),
    "malta": OntologyTerm(id="GAZ:00004017", label="Malta"),
    "spain": OntologyTerm(id="GAZ:00000591", label="Spain"),
    "uk": OntologyTerm(id="GAZ:00002637", label="United Kingdom"),
    "usa": OntologyTerm(id="GAZ:00002459", label="United States of America"),
}

# Checked in order against the lowercased material type; first substring wins.
_SAMPLE_ORIGIN_TERMS: tuple[tuple[str, OntologyTerm], ...] = (
    ("ascites", OntologyTerm(id="UBERON:0007795", label="ascitic fluid")),
    ("bone marrow", OntologyTerm(id="UBERON:0002371", label="bone marrow")),
    ("csf", OntologyTerm(id="UBERON:0001359", label="cerebrospinal fluid")),
    ("saliva", OntologyTerm(id="UBERON:0001836", label="saliva")),
    ("stool", OntologyTerm(id="UBERON:0001988", label="feces")),
    ("faeces", OntologyTerm(id="UBERON:0001988", label="feces")),
    ("serum", OntologyTerm(id="OBI:0100017", label="blood serum")),
    ("plasma", OntologyTerm(id="UBERON:0001969", label="blood plasma")),
    ("blood", OntologyTerm(id="UBERON:0000178", label="blood")),
    ("urine", OntologyTerm(id="UBERON:0001088", label="Urine")),
    ("dna", OntologyTerm(id="OBI:0001051", label="DNA")),
    ("rna", OntologyTerm(id="OBI:0000880", label="Ribonucleic Acid")),
    ("swab", OntologyTerm(id="OBI:0002819", label="Swab")),
    ("tissue-formalin", OntologyTerm(id="OBI:1200000", label="Formalin-Fixed Paraffin-Embedded Tissue Sample")),
    ("tissue-frozen", OntologyTerm(id="OBI:0000922", label="Frozen Tissue")),
    ("tissue", OntologyTerm(id="UBERON:0000479", label="tissue")),
)
DEFAULT_SAMPLE_ORIGIN = OntologyTerm(id="UBERON:0000479", label="tissue")

# LOINC observation code -> (assay term, unit term)
MEASURE_TERMS: dict[str, tuple[OntologyTerm, OntologyTerm]] = {
    "39156-5": (
        OntologyTerm(id="LOINC:35925-4", label="BMI"),
        OntologyTerm(id="NCIT:C49671", label="Kilogram per Square Meter"),
    ),
    "29463-7": (
        OntologyTerm(id="LOINC:3141-9", label="Weight"),
        OntologyTerm(id="NCIT:C28252", label="Kilogram"),
    ),
    "8302-2": (
        OntologyTerm(id="LOINC:8308-9", label="Height-standing"),
        OntologyTerm(id="NCIT:C49668", label="Centimeter"),
    ),
}

HUMAN_SAMPLE_INFO = {
    "taxId": "9606",
    "characteristics": {
        "organism": [
            {
                "text": "Homo sapiens",
                "ontologyTerms": ["http://purl.obolibrary.org/obo/NCBITaxon_9606"],
            }
        ]
    },
}


def sex_term(gender: Optional[str]) -> OntologyTerm:
    if gender is None:
        return UNKNOWN_SEX
    return _SEX_TERMS.get(gender.lower(), UNKNOWN_SEX)


def country_term(country: Optional[str]) -> Optional[OntologyTerm]:
    """Catalog geographic origin of a country name.

    Returns None for no name and the generic geographic-location term for
    an unknown one.
    """
    if country is None:
        return None
    term = _COUNTRY_TERMS.get(country.strip().lower())
    if term is None:
        logger.warning(f"No catalog geographic origin found for: {country}")
        return GEOGRAPHIC_LOCATION
    return term


def is_country(candidate: Optional[str]) -> bool:
    return candidate is not None and candidate.strip().lower() in _COUNTRY_TERMS


def geographic_origin(addresses: Iterable[Address]) -> Optional[OntologyTerm]:
    """Derive the geographic origin from the first address.

    Uses the country element when present; otherwise scans the address
    lines from last to first for a known country name, ending on the first
    line when none matches.
    """
    for address in addresses:
        country = address.country
        if not country and address.line:
            for line in reversed(address.line):
                country = line
                if is_country(line):
                    break
        if country:
            return country_term(country)
    return None


def sample_origin_term(material_type: Optional[str]) -> Optional[OntologyTerm]:
    if material_type is None:
        return None
    lowered = material_type.lower()
    for fragment, term in _SAMPLE_ORIGIN_TERMS:
        if fragment in lowered:
            return term
    logger.warning(f"No catalog sample origin term found for sample type: {material_type}")
    return DEFAULT_SAMPLE_ORIGIN


def measurement(code: Optional[str], value: float, date: Optional[str]) -> Optional[CatalogMeasurement]:
    """Catalog measurement for a BMI, weight or height observation code."""
    terms = MEASURE_TERMS.get(code) if code else None
    if terms is None:
        return None
    assay, units = terms
    return CatalogMeasurement(
        assay_code=assay,
        date=date[:10] if date else None,
        measurement_value=MeasurementValue(value=value, units=units),
    )
