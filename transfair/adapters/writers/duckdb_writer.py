"""DuckDB Document Writer.

Bulk-inserts transformed records into a DuckDB document table, one row per
record with the FHIR JSON payload. The record address (``Kind/id``) is the
primary key, so re-writing a bundle replaces rows instead of duplicating
them.

Security Impact:
    - Only records that passed through the transformation engine are stored
    - Rows are replaced per address, a re-run never duplicates records

Architecture:
    - Implements WriterPort through RetryingWriter
    - Rows are staged in a pandas DataFrame and inserted in one statement
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import duckdb
import pandas as pd

from transfair.adapters.writers.base import RetryingWriter
from transfair.domain.bundle import Bundle
from transfair.domain.ports import WriterError

logger = logging.getLogger(__name__)

TABLE_NAME = "resources"
COLUMNS = ["address", "kind", "id", "bundle_id", "profiles", "payload", "written_at"]


class DuckDBDocumentWriter(RetryingWriter):
    """Stores records of each bundle in a DuckDB table.

    Parameters:
        db_path: Database file path or ``:memory:``

    Example Usage:
        ```python
        with DuckDBDocumentWriter("out/transfer.duckdb") as writer:
            writer.write(bundle)
        ```
    """

    failure_types = (WriterError, duckdb.Error)

    def __init__(self, db_path: str = ":memory:", max_attempts: int = 1, backoff_seconds: float = 0.0):
        super().__init__(max_attempts=max_attempts, backoff_seconds=backoff_seconds)
        self.db_path = db_path
        if db_path != ":memory:" and not Path(db_path).parent.exists():
            raise WriterError(f"Database directory does not exist: {Path(db_path).parent}", target=db_path)
        self._connection: Optional[duckdb.DuckDBPyConnection] = None

    @property
    def target(self) -> str:
        return self.db_path

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            self._connection = duckdb.connect(self.db_path)
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
                    address VARCHAR PRIMARY KEY,
                    kind VARCHAR NOT NULL,
                    id VARCHAR NOT NULL,
                    bundle_id VARCHAR NOT NULL,
                    profiles VARCHAR,
                    payload VARCHAR NOT NULL,
                    written_at TIMESTAMP NOT NULL
                )
            """)
            logger.info(f"Connected to DuckDB database: {self.db_path}")
        return self._connection

    def _persist(self, bundle: Bundle) -> int:
        if not bundle.entries:
            return 0
        written_at = datetime.now(timezone.utc).replace(tzinfo=None)
        rows = [
            {
                "address": entry.request.url,
                "kind": entry.resource.kind,
                "id": entry.resource.id,
                "bundle_id": bundle.id,
                "profiles": json.dumps(list(entry.resource.profiles)),
                "payload": json.dumps(entry.resource.to_fhir()),
                "written_at": written_at,
            }
            for entry in bundle.entries
        ]
        # Later entries win when a bundle addresses the same record twice.
        df = pd.DataFrame(rows, columns=COLUMNS).drop_duplicates(subset="address", keep="last")

        conn = self._get_connection()
        conn.begin()
        try:
            conn.register("bundle_rows", df)
            conn.execute(
                f"INSERT OR REPLACE INTO {TABLE_NAME} ({', '.join(COLUMNS)}) "
                f"SELECT {', '.join(COLUMNS)} FROM bundle_rows"
            )
            conn.unregister("bundle_rows")
            conn.commit()
        except duckdb.Error:
            conn.rollback()
            raise
        return len(df)

    def count(self, kind: Optional[str] = None) -> int:
        """Number of stored records, optionally of one kind."""
        conn = self._get_connection()
        if kind is None:
            return conn.execute(f"SELECT COUNT(*) FROM {TABLE_NAME}").fetchone()[0]
        return conn.execute(f"SELECT COUNT(*) FROM {TABLE_NAME} WHERE kind = ?", [kind]).fetchone()[0]

    def fetch(self, address: str) -> Optional[dict]:
        """Stored FHIR JSON of one record, or None."""
        row = self._get_connection().execute(
            f"SELECT payload FROM {TABLE_NAME} WHERE address = ?", [address]
        ).fetchone()
        return json.loads(row[0]) if row else None

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            logger.info("Closed DuckDB connection")
