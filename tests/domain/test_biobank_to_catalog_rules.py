"""Tests for the biobank -> discovery-catalog rules and terminology converters."""

import pytest

from transfair.domain import profiles as p
from transfair.domain.records import Address, CatalogBiosample, CatalogIndividual, CatalogMeasure
from transfair.domain.rules import catalog_terms
from transfair.domain.rules.biobank_to_catalog import BiosampleRule, IndividualRule, MeasureRule


class TestIndividualRule:
    """Test patient -> individual."""

    def test_individual_created(self, bbmri_patient):
        record = bbmri_patient(address=[{"country": "Italy"}])

        output = IndividualRule().map(record)

        assert len(output) == 1
        individual = output[0]
        assert isinstance(individual, CatalogIndividual)
        assert individual.id == "p1"
        assert individual.profiles == (p.BEACON_INDIVIDUAL,)
        assert individual.sex.id == "NCIT:C16576"
        assert individual.geographic_origin.label == "Italy"

    def test_unknown_gender_maps_to_unknown(self, bbmri_patient):
        individual = IndividualRule().map(bbmri_patient(gender="other"))[0]

        assert individual.sex == catalog_terms.UNKNOWN_SEX
        assert individual.geographic_origin is None


class TestBiosampleRule:
    """Test specimen -> biosample."""

    def test_biosample_created(self, bbmri_specimen):
        output = BiosampleRule().map(bbmri_specimen(material="blood-plasma"))

        biosample = output[0]
        assert isinstance(biosample, CatalogBiosample)
        assert biosample.individual_id == "p1"
        assert biosample.collection_date == "2019-11-20"
        assert biosample.sample_origin_type.label == "blood plasma"
        assert biosample.info["taxId"] == "9606"
        assert biosample.profiles == (p.BEACON_BIOSAMPLE,)

    def test_missing_subject_not_representable(self, bbmri_specimen):
        """Test the subject precondition."""
        record = bbmri_specimen()
        record = record.model_copy(update={"subject": None})

        assert BiosampleRule().map(record) == []


class TestMeasureRule:
    """Test BMI, weight and height observations."""

    def test_weight_becomes_measure(self, body_weight):
        output = MeasureRule().map(body_weight())

        measure = output[0]
        assert isinstance(measure, CatalogMeasure)
        assert measure.individual_id == "p1"
        assert measure.measurement.assay_code.label == "Weight"
        assert measure.measurement.date == "2022-06-01"
        assert measure.measurement.measurement_value.value == 72.5
        assert measure.measurement.measurement_value.units.label == "Kilogram"

    @pytest.mark.parametrize("loinc,label", [("39156-5", "BMI"), ("8302-2", "Height-standing")])
    def test_other_measures(self, body_weight, loinc, label):
        measure = MeasureRule().map(body_weight(loinc=loinc))[0]

        assert measure.measurement.assay_code.label == label

    def test_unknown_code_dropped(self, body_weight):
        assert MeasureRule().map(body_weight(loinc="8867-4")) == []

    def test_missing_value_dropped(self, body_weight):
        """Test the valueQuantity precondition."""
        assert MeasureRule().map(body_weight(valueQuantity={"unit": "kg"})) == []

    def test_cause_of_death_dropped(self, bbmri_cause_of_death):
        assert MeasureRule().map(bbmri_cause_of_death()) == []


class TestCatalogTerms:
    """Test the terminology converters."""

    @pytest.mark.parametrize("gender,term_id", [
        ("male", "NCIT:C20197"),
        ("FEMALE", "NCIT:C16576"),
        ("unknown", "NCIT:C1799"),
        (None, "NCIT:C1799"),
    ])
    def test_sex_term(self, gender, term_id):
        assert catalog_terms.sex_term(gender).id == term_id

    def test_country_from_address_lines(self):
        """Test scanning address lines when no country element is present."""
        addresses = [Address(line=("Via Roma 1", "Malta", "Valletta"))]

        assert catalog_terms.geographic_origin(addresses).label == "Malta"

    def test_unknown_country_gives_generic_location(self):
        addresses = [Address(country="Atlantis")]

        assert catalog_terms.geographic_origin(addresses) == catalog_terms.GEOGRAPHIC_LOCATION

    def test_no_address(self):
        assert catalog_terms.geographic_origin([]) is None

    @pytest.mark.parametrize("material,label", [
        ("blood-serum", "blood serum"),
        ("whole-blood", "blood"),
        ("tissue-frozen", "Frozen Tissue"),
        ("tissue-ffpe", "tissue"),
        ("dna", "DNA"),
        ("something-else", "tissue"),
    ])
    def test_sample_origin_term(self, material, label):
        assert catalog_terms.sample_origin_term(material).label == label

    def test_sample_origin_term_none(self):
        assert catalog_terms.sample_origin_term(None) is None
