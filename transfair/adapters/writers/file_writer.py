"""File Bundle Writer.

Writes each transaction bundle as pretty-printed FHIR JSON to
``<output_dir>/bundle_<n>.json``, numbering bundles in write order.
"""

import json
import logging
from pathlib import Path

from transfair.adapters.writers.base import RetryingWriter
from transfair.domain.bundle import Bundle

logger = logging.getLogger(__name__)


class FileBundleWriter(RetryingWriter):
    """Persists bundles as JSON files.

    Parameters:
        output_dir: Directory for the bundle files (created if missing)
        prefix: File name prefix
        start_index: Number of the first bundle file
    """

    def __init__(
        self,
        output_dir: str,
        prefix: str = "bundle",
        start_index: int = 1,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
    ):
        super().__init__(max_attempts=max_attempts, backoff_seconds=backoff_seconds)
        self.output_dir = Path(output_dir)
        self.prefix = prefix
        self._next_index = start_index
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.written_files: list[Path] = []

    @property
    def target(self) -> str:
        return str(self.output_dir)

    def _persist(self, bundle: Bundle) -> int:
        path = self.output_dir / f"{self.prefix}_{self._next_index}.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(bundle.to_fhir(), f, indent=2, ensure_ascii=False)
        self._next_index += 1
        self.written_files.append(path)
        logger.debug(f"Bundle {bundle.id} written to {path}")
        return len(bundle)
