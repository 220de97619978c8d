"""Discovery-Catalog File Writer.

Writes catalog records as the JSON collections a catalog instance imports:
``individuals.json`` and ``biosamples.json``. Existing files are merged,
entries being replaced by id. Measures are attached to their individual,
replacing an earlier measure of the same assay and date;
measures whose individual has not been written yet are held back and
attached by a later bundle, and whatever is still unmatched on ``close()``
goes to ``measures.json``.
"""

import json
import logging
from pathlib import Path
from typing import Any

from transfair.adapters.writers.base import RetryingWriter
from transfair.domain.bundle import Bundle
from transfair.domain.ports import WriterError
from transfair.domain.records import CatalogMeasure, to_catalog

logger = logging.getLogger(__name__)

INDIVIDUALS_FILE = "individuals.json"
BIOSAMPLES_FILE = "biosamples.json"
MEASURES_FILE = "measures.json"

_COLLECTIONS = {"Individual": INDIVIDUALS_FILE, "Biosample": BIOSAMPLES_FILE}


def _merge_by_id(existing: list[dict], new: list[dict]) -> list[dict]:
    positions = {item.get("id"): index for index, item in enumerate(existing)}
    merged = list(existing)
    for item in new:
        index = positions.get(item.get("id"))
        if index is None:
            positions[item.get("id")] = len(merged)
            merged.append(item)
        else:
            previous_measures = merged[index].get("measures", [])
            if previous_measures and not item.get("measures"):
                item = {**item, "measures": previous_measures}
            merged[index] = item
    return merged


def _measure_key(measure: dict) -> tuple:
    return (measure.get("assayCode", {}).get("id"), measure.get("date"))


def _upsert_measure(individual: dict, measure: dict) -> None:
    """Replace the measure with the same assay and date, or append it."""
    measures = individual.setdefault("measures", [])
    key = _measure_key(measure)
    for index, existing in enumerate(measures):
        if _measure_key(existing) == key:
            measures[index] = measure
            return
    measures.append(measure)


class CatalogFileWriter(RetryingWriter):
    """Persists catalog records into JSON collection files.

    Parameters:
        output_dir: Directory of the collection files (created if missing)
    """

    def __init__(self, output_dir: str, max_attempts: int = 3, backoff_seconds: float = 1.0):
        super().__init__(max_attempts=max_attempts, backoff_seconds=backoff_seconds)
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self._pending: list[CatalogMeasure] = []

    @property
    def target(self) -> str:
        return str(self.output_dir)

    def _load(self, filename: str) -> list[dict[str, Any]]:
        path = self.output_dir / filename
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise WriterError(f"Cannot merge into {path}: {e}", target=str(path)) from e
        if not isinstance(data, list):
            raise WriterError(f"{path} does not hold a JSON array", target=str(path))
        return data

    def _save(self, filename: str, items: list[dict[str, Any]]) -> None:
        with open(self.output_dir / filename, "w", encoding="utf-8") as f:
            json.dump(items, f, indent=2, ensure_ascii=False)

    def _persist(self, bundle: Bundle) -> int:
        grouped: dict[str, list[dict]] = {filename: [] for filename in _COLLECTIONS.values()}
        measures: list[CatalogMeasure] = []
        for record in bundle.records:
            if isinstance(record, CatalogMeasure):
                measures.append(record)
            elif record.kind in _COLLECTIONS:
                grouped[_COLLECTIONS[record.kind]].append(to_catalog(record))
            else:
                logger.warning(f"Skipping {record.kind}/{record.id}: not a catalog record")

        for filename, items in grouped.items():
            if items:
                self._save(filename, _merge_by_id(self._load(filename), items))

        self._pending = self._attach(self._pending + measures)
        return len(bundle)

    def _attach(self, measures: list[CatalogMeasure]) -> list[CatalogMeasure]:
        """Attach measures to written individuals; return the unmatched ones."""
        if not measures:
            return []
        individuals = self._load(INDIVIDUALS_FILE)
        by_id = {item.get("id"): item for item in individuals}
        unmatched = []
        attached = 0
        for measure in measures:
            individual = by_id.get(measure.individual_id)
            if individual is None:
                unmatched.append(measure)
                continue
            _upsert_measure(individual, to_catalog(measure.measurement))
            attached += 1
        if attached:
            self._save(INDIVIDUALS_FILE, individuals)
            logger.info(f"Attached {attached} measures to individuals")
        return unmatched

    @property
    def pending_measures(self) -> int:
        return len(self._pending)

    def close(self) -> None:
        """Write measures without a matching individual to ``measures.json``."""
        if not self._pending:
            return
        leftovers = [to_catalog(measure) for measure in self._pending]
        self._save(MEASURES_FILE, _merge_by_id(self._load(MEASURES_FILE), leftovers))
        logger.warning(f"{len(leftovers)} measures had no matching individual, see {MEASURES_FILE}")
        self._pending = []
