"""Writer adapters for TransFAIR.

This module contains the WriterPort implementations (bundle files, FHIR
servers, DuckDB, catalog JSON collections) and the factory selecting one.
"""

from typing import Optional

from transfair.adapters.writers.base import RetryingWriter
from transfair.adapters.writers.catalog_writer import CatalogFileWriter
from transfair.adapters.writers.duckdb_writer import DuckDBDocumentWriter
from transfair.adapters.writers.fhir_server_writer import FhirServerWriter
from transfair.adapters.writers.file_writer import FileBundleWriter
from transfair.domain.ports import ConfigurationError, WriterPort

__all__ = [
    "RetryingWriter",
    "CatalogFileWriter",
    "DuckDBDocumentWriter",
    "FhirServerWriter",
    "FileBundleWriter",
    "get_writer",
    "WRITER_KINDS",
]

WRITER_KINDS = ("fhir", "file", "duckdb", "catalog")


def get_writer(
    kind: str,
    target: str,
    api_key: Optional[str] = None,
    max_attempts: Optional[int] = None,
    backoff_seconds: Optional[float] = None,
) -> WriterPort:
    """Factory function returning the writer adapter of a kind.

    Parameters:
        kind: One of ``fhir``, ``file``, ``duckdb``, ``catalog``
        target: FHIR base URL, output directory or database path
        api_key: Bearer token for FHIR servers
        max_attempts: Override of the writer's attempt count
        backoff_seconds: Override of the writer's fixed backoff

    Raises:
        ConfigurationError: For an unknown writer kind
    """
    retry = {}
    if max_attempts is not None:
        retry["max_attempts"] = max_attempts
    if backoff_seconds is not None:
        retry["backoff_seconds"] = backoff_seconds

    kind = kind.lower()
    if kind == "fhir":
        return FhirServerWriter(target, api_key=api_key, **retry)
    if kind == "file":
        return FileBundleWriter(target, **retry)
    if kind == "duckdb":
        return DuckDBDocumentWriter(target, **retry)
    if kind == "catalog":
        return CatalogFileWriter(target, **retry)
    raise ConfigurationError(f"Unknown writer kind: {kind}. Supported: {list(WRITER_KINDS)}", source="writer")
