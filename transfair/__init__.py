"""TransFAIR: transforms clinical and biobank records between FHIR profiles."""

__version__ = "1.0.0"
