"""JSON File Reader.

Reads FHIR records from local files: a Bundle (``entry[].resource``), a
single resource, a JSON array of resources, or NDJSON with one resource per
line. A directory is read file by file in name order.

Security Impact:
    - Records are parsed into validated Pydantic models before they reach
      the engine; an unparseable record aborts the read with its location

Architecture:
    - Implements ReaderPort (Hexagonal Architecture)
    - Streams files one at a time and yields fixed-size batches
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from transfair.domain.ports import ReaderError, ReaderPort
from transfair.domain.records import ClinicalRecord, parse_record

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".json", ".ndjson")


class JsonBundleReader(ReaderPort):
    """Reads FHIR JSON/NDJSON files in batches.

    Parameters:
        source: File or directory path
        batch_size: Records per batch
        resource_types: Optional set of kinds to keep; others are skipped

    Example Usage:
        ```python
        reader = JsonBundleReader("exports/", batch_size=500)
        for batch in reader.batches():
            ...
        ```
    """

    def __init__(
        self,
        source: str,
        batch_size: int = 100,
        resource_types: Optional[Iterable[str]] = None,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.source = Path(source)
        self.batch_size = batch_size
        self.resource_types = set(resource_types) if resource_types else None
        if not self.source.exists():
            raise ReaderError(f"Input not found: {source}", source=str(source))

    @staticmethod
    def can_read(source: str) -> bool:
        path = Path(source)
        return path.is_dir() or path.suffix.lower() in SUPPORTED_SUFFIXES

    def describe(self) -> str:
        return f"files at {self.source}"

    def _files(self) -> list[Path]:
        if self.source.is_dir():
            return sorted(
                path for path in self.source.iterdir()
                if path.is_file() and path.suffix.lower() in SUPPORTED_SUFFIXES
            )
        return [self.source]

    def _raw_resources(self, path: Path) -> Iterator[tuple[str, Any]]:
        """Yield (location, raw resource) pairs of one file."""
        try:
            if path.suffix.lower() == ".ndjson":
                with open(path, "r", encoding="utf-8") as f:
                    for line_number, line in enumerate(f, start=1):
                        if line.strip():
                            yield f"{path}:{line_number}", json.loads(line)
                return

            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ReaderError(f"Invalid JSON in {path}: {e}", source=str(path)) from e
        except OSError as e:
            raise ReaderError(f"Cannot read {path}: {e}", source=str(path)) from e

        if isinstance(data, list):
            for index, item in enumerate(data):
                yield f"{path}[{index}]", item
        elif isinstance(data, dict) and data.get("resourceType") == "Bundle":
            for index, entry in enumerate(data.get("entry", [])):
                resource = entry.get("resource") if isinstance(entry, dict) else None
                if resource is not None:
                    yield f"{path}#entry[{index}]", resource
        else:
            yield str(path), data

    def records(self) -> Iterator[ClinicalRecord]:
        """Yield every record of the source in file order.

        Raises:
            ReaderError: On unreadable files or invalid records
        """
        for path in self._files():
            count = 0
            for location, raw in self._raw_resources(path):
                try:
                    record = parse_record(raw)
                except ValueError as e:
                    raise ReaderError(
                        f"Invalid record at {location}: {e}",
                        source=str(path),
                        details={"location": location},
                    ) from e
                if self.resource_types and record.kind not in self.resource_types:
                    continue
                count += 1
                yield record
            logger.info(f"Read {count} records from {path}")

    def batches(self) -> Iterator[list[ClinicalRecord]]:
        batch: list[ClinicalRecord] = []
        for record in self.records():
            batch.append(record)
            if len(batch) >= self.batch_size:
                yield batch
                batch = []
        if batch:
            yield batch
