"""Profile, Extension and Terminology Constants.

Canonical URLs of the three schemas the engine translates between:

    - biobank profile (BBMRI.de)
    - clinical-core profile (Medizininformatik-Initiative core data set)
    - discovery-catalog profile (GA4GH Beacon v2 default schemas)

Architecture:
    - Plain module constants, no behaviour
    - Rules import the names they need; nothing else defines URLs
"""

# ============================================================================
# Biobank profile (BBMRI.de)
# ============================================================================

BBMRI_PATIENT = "https://fhir.bbmri.de/StructureDefinition/Patient"
BBMRI_PATIENT_SIMPLIFIER = "https://fhir.simplifier.net/bbmri.de/StructureDefinition/Patient"
BBMRI_CONDITION = "https://fhir.bbmri.de/StructureDefinition/Condition"
BBMRI_CAUSE_OF_DEATH = "https://fhir.bbmri.de/StructureDefinition/CauseOfDeath"
BBMRI_SPECIMEN = "https://fhir.bbmri.de/StructureDefinition/Specimen"
BBMRI_BIOBANK = "https://fhir.bbmri.de/StructureDefinition/Biobank"
BBMRI_COLLECTION = "https://fhir.bbmri.de/StructureDefinition/Collection"

BBMRI_EXT_STORAGE_TEMPERATURE = "https://fhir.bbmri.de/StructureDefinition/StorageTemperature"
BBMRI_EXT_CUSTODIAN = "https://fhir.bbmri.de/StructureDefinition/Custodian"
BBMRI_EXT_SAMPLE_DIAGNOSIS = "https://fhir.bbmri.de/StructureDefinition/SampleDiagnosis"
BBMRI_EXT_ORGANIZATION_DESCRIPTION = "https://fhir.bbmri.de/StructureDefinition/OrganizationDescription"

BBMRI_SYSTEM_SAMPLE_MATERIAL_TYPE = "https://fhir.bbmri.de/CodeSystem/SampleMaterialType"
BBMRI_SYSTEM_STORAGE_TEMPERATURE = "https://fhir.bbmri.de/CodeSystem/StorageTemperature"

# ============================================================================
# Clinical-core profile (MII)
# ============================================================================

_MII_CORE = "https://www.medizininformatik-initiative.de/fhir/core"
_MII_BIOBANK = "https://www.medizininformatik-initiative.de/fhir/ext/modul-biobank/StructureDefinition"

MII_PATIENT = f"{_MII_CORE}/modul-person/StructureDefinition/Patient"
MII_CAUSE_OF_DEATH = f"{_MII_CORE}/modul-person/StructureDefinition/Todesursache"
MII_DIAGNOSIS = f"{_MII_CORE}/modul-diagnose/StructureDefinition/Diagnose"
MII_SPECIMEN = f"{_MII_BIOBANK}/Specimen"
MII_ORGANIZATION = f"{_MII_BIOBANK}/Organization"

MII_EXT_TEMPERATURE_CONDITIONS = f"{_MII_BIOBANK}/Temperaturbedingungen"
MII_EXT_MANAGING_ORGANIZATION = f"{_MII_BIOBANK}/VerwaltendeOrganisation"
MII_EXT_SPECIMEN_DIAGNOSIS = f"{_MII_BIOBANK}/Diagnose"
MII_EXT_COLLECTION_DESCRIPTION = f"{_MII_BIOBANK}/BeschreibungSammlung"

# ============================================================================
# Discovery-catalog profile (Beacon v2)
# ============================================================================

_BEACON_SCHEMAS = "https://raw.githubusercontent.com/ga4gh-beacon/beacon-v2/main/models/json/beacon-v2-default-model"

BEACON_INDIVIDUAL = f"{_BEACON_SCHEMAS}/individuals/defaultSchema.json"
BEACON_BIOSAMPLE = f"{_BEACON_SCHEMAS}/biosamples/defaultSchema.json"
BEACON_MEASURE = f"{_BEACON_SCHEMAS}/common/measurement.json"

# ============================================================================
# Terminology systems
# ============================================================================

SYSTEM_SNOMED = "http://snomed.info/sct"
SYSTEM_ICD10 = "http://hl7.org/fhir/sid/icd-10"
SYSTEM_ICD10_GM = "http://fhir.de/CodeSystem/bfarm/icd-10-gm"
SYSTEM_ICD_O_3 = "http://terminology.hl7.org/CodeSystem/icd-o-3"
SYSTEM_LOINC = "http://loinc.org"

# Cause-of-death condition categories in the clinical-core schema
CAUSE_OF_DEATH_CATEGORY_LOINC = "79378-6"
CAUSE_OF_DEATH_CATEGORY_SNOMED = "16100001"

# Observation code of a biobank cause-of-death record
CAUSE_OF_DEATH_OBSERVATION_LOINC = "68343-3"

# Sample material type used when a core sample type has no biobank equivalent
DERIVATIVE_OTHER = "derivative-other"

# Biobank storage temperature code -> (low, high) in degrees Celsius
STORAGE_TEMPERATURE_RANGES: dict[str, tuple[int, int]] = {
    "temperature2to10": (2, 10),
    "temperature-18to-35": (-35, -18),
    "temperature-60to-85": (-85, -60),
    "temperatureGN": (-195, -160),
    "temperatureLN": (-209, -196),
    "temperatureRoom": (11, 30),
}

CELSIUS_UNIT = "°C"
UCUM_SYSTEM = "http://unitsofmeasure.org"
