"""Domain layer for TransFAIR.

This module contains the record model and the resource transformation
engine. Nothing in here performs I/O.
"""

from .records import ClinicalRecord, parse_record
from .concept_map import ConceptMap, TranslationTables
from .directions import MappingDirection, build_registry
from .router import ResourceRouter
from .bundle import Bundle, BundleAssembler

__all__ = [
    "ClinicalRecord",
    "parse_record",
    "ConceptMap",
    "TranslationTables",
    "MappingDirection",
    "build_registry",
    "ResourceRouter",
    "Bundle",
    "BundleAssembler",
]
