"""Reader adapters for TransFAIR.

This module contains the ReaderPort implementations (local JSON files and
FHIR servers) and the factory selecting one for a source.
"""

from typing import Optional

from transfair.adapters.readers.fhir_server_reader import FhirServerReader
from transfair.adapters.readers.json_reader import JsonBundleReader
from transfair.domain.ports import ReaderError, ReaderPort

__all__ = ["FhirServerReader", "JsonBundleReader", "get_reader"]


def get_reader(source: str, batch_size: int = 100, api_key: Optional[str] = None, **kwargs) -> ReaderPort:
    """Factory function returning the reader adapter for a source.

    Parameters:
        source: ``http(s)://`` FHIR base URL, or a file/directory path
        batch_size: Records per batch
        api_key: Bearer token for FHIR servers
        **kwargs: Passed to the adapter constructor

    Returns:
        ReaderPort: Reader instance

    Raises:
        ReaderError: If no reader can handle the source

    Example Usage:
        ```python
        reader = get_reader("http://localhost:8080/fhir", batch_size=200)
        reader = get_reader("export.ndjson")
        ```
    """
    if source.startswith(("http://", "https://")):
        return FhirServerReader(source, batch_size=batch_size, api_key=api_key, **kwargs)
    if JsonBundleReader.can_read(source):
        return JsonBundleReader(source, batch_size=batch_size, **kwargs)
    raise ReaderError(f"No reader available for source: {source}", source=source)
