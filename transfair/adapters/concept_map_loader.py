"""Translation Table Loader.

Builds ConceptMaps from files supplied at startup:

    - FHIR ConceptMap resources (JSON): every ``group[].element[]`` maps its
      ``code`` to the first ``target[].code``
    - CSV files with ``source_code`` and ``target_code`` columns

A missing or malformed file is a fatal configuration error.

Security Impact:
    - Files are parsed as data only (json, pandas), never evaluated
    - Tables are validated before the first record is transformed
"""

import json
import logging
from pathlib import Path
from typing import Iterator, Mapping, Optional

import pandas as pd

from transfair.domain import profiles as p
from transfair.domain.concept_map import ConceptMap, TranslationTables
from transfair.domain.ports import ConceptMapLoadError

logger = logging.getLogger(__name__)

SOURCE_COLUMN = "source_code"
TARGET_COLUMN = "target_code"

# Table name -> (source system, target system)
TABLE_SYSTEMS: dict[str, tuple[str, str]] = {
    "diagnosis": (p.SYSTEM_ICD10, p.SYSTEM_ICD10_GM),
    "diagnosis_reverse": (p.SYSTEM_ICD10_GM, p.SYSTEM_ICD10),
    "cause_of_death": (p.SYSTEM_ICD10, p.SYSTEM_ICD10_GM),
    "cause_of_death_reverse": (p.SYSTEM_ICD10_GM, p.SYSTEM_ICD10),
    "sample_type": (p.BBMRI_SYSTEM_SAMPLE_MATERIAL_TYPE, p.SYSTEM_SNOMED),
    "sample_type_reverse": (p.SYSTEM_SNOMED, p.BBMRI_SYSTEM_SAMPLE_MATERIAL_TYPE),
}


def _fhir_pairs(path: Path) -> Iterator[tuple[str, str]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        raise ConceptMapLoadError(f"Cannot read concept map {path}: {e}", source=str(path)) from e

    if not isinstance(data, dict) or data.get("resourceType") != "ConceptMap":
        raise ConceptMapLoadError(f"{path} is not a FHIR ConceptMap resource", source=str(path))
    groups = data.get("group")
    if not isinstance(groups, list) or not groups:
        raise ConceptMapLoadError(f"Concept map {path} has no groups", source=str(path))

    for group in groups:
        elements = group.get("element", []) if isinstance(group, dict) else None
        if not isinstance(elements, list):
            raise ConceptMapLoadError(f"Concept map {path} has a malformed group", source=str(path))
        for element in elements:
            targets = (element.get("target") or []) if isinstance(element, dict) else None
            if not isinstance(targets, list) or not all(isinstance(t, dict) for t in targets):
                raise ConceptMapLoadError(f"Concept map {path} has a malformed element", source=str(path))
            if element.get("code") and targets and targets[0].get("code"):
                yield element["code"], targets[0]["code"]


def _csv_pairs(path: Path) -> Iterator[tuple[str, str]]:
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError, OSError) as e:
        raise ConceptMapLoadError(f"Cannot parse concept map {path}: {e}", source=str(path)) from e

    missing = {SOURCE_COLUMN, TARGET_COLUMN} - set(df.columns)
    if missing:
        raise ConceptMapLoadError(
            f"Concept map {path} lacks column(s) {sorted(missing)}",
            source=str(path),
        )
    yield from zip(df[SOURCE_COLUMN], df[TARGET_COLUMN])


def load_concept_map(
    path: str,
    source_system: Optional[str] = None,
    target_system: Optional[str] = None,
    name: Optional[str] = None,
) -> ConceptMap:
    """Load one translation table from a JSON ConceptMap or a CSV file.

    Raises:
        ConceptMapLoadError: If the file is missing, unreadable or malformed
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise ConceptMapLoadError(f"Concept map not found: {path}", source=path)

    suffix = file_path.suffix.lower()
    if suffix == ".json":
        pairs = list(_fhir_pairs(file_path))
    elif suffix == ".csv":
        pairs = list(_csv_pairs(file_path))
    else:
        raise ConceptMapLoadError(f"Unsupported concept map format: {file_path.suffix}", source=path)

    concept_map = ConceptMap.from_pairs(
        pairs,
        source_system=source_system,
        target_system=target_system,
        name=name or file_path.stem,
    )
    if not len(concept_map):
        raise ConceptMapLoadError(f"Concept map {path} contains no mappings", source=path)
    logger.info(f"Loaded concept map '{concept_map.name}' with {len(concept_map)} entries from {path}")
    return concept_map


def load_translation_tables(paths: Mapping[str, Optional[str]]) -> TranslationTables:
    """Load every configured table into a TranslationTables set.

    Parameters:
        paths: Table name (see TABLE_SYSTEMS) -> file path or None

    Raises:
        ConceptMapLoadError: For an unknown table name or a bad file
    """
    tables = {}
    for table_name, path in paths.items():
        if not path:
            continue
        if table_name not in TABLE_SYSTEMS:
            raise ConceptMapLoadError(f"Unknown translation table: {table_name}", source=table_name)
        source_system, target_system = TABLE_SYSTEMS[table_name]
        tables[table_name] = load_concept_map(path, source_system, target_system, name=table_name)

    translation_tables = TranslationTables(**tables)
    translation_tables.log_divergences()
    return translation_tables
