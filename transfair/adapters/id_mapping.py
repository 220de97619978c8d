"""Identifier Mapping Adapters.

Implementations of IdMappingPort:

    - IdentityIdMapping: returns every identifier unchanged
    - CsvIdMapping: reads a CSV whose header names the id domains (e.g.
      ``bbmri,mii``); each row lists the identifiers of one patient in
      every domain

Security Impact:
    - Mapping files hold pseudonym links and are only read, never logged
    - Unknown domains and unknown identifiers raise IdMappingError so no
      unmapped identifier can leave the source domain
"""

import logging
from pathlib import Path

import pandas as pd

from transfair.domain.ports import ConfigurationError, IdMappingError, IdMappingPort

logger = logging.getLogger(__name__)


class IdentityIdMapping(IdMappingPort):
    """Maps every identifier onto itself."""

    def map_id(self, identifier: str, source_domain: str, target_domain: str) -> str:
        return identifier


class CsvIdMapping(IdMappingPort):
    """Identifier mapping backed by a CSV file.

    Parameters:
        path: CSV file with one column per id domain

    Raises:
        ConfigurationError: If the file is missing or unreadable
    """

    def __init__(self, path: str):
        csv_path = Path(path)
        if not csv_path.is_file():
            raise ConfigurationError(f"Id mapping file not found: {path}", source=path)
        try:
            self._df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, OSError) as e:
            raise ConfigurationError(f"Cannot read id mapping file {path}: {e}", source=path) from e
        self._lookups: dict[tuple[str, str], dict[str, str]] = {}
        logger.info(f"Loaded id mapping with {len(self._df)} rows and domains {list(self._df.columns)}")

    @property
    def domains(self) -> list[str]:
        return list(self._df.columns)

    def _lookup(self, source_domain: str, target_domain: str) -> dict[str, str]:
        key = (source_domain, target_domain)
        if key not in self._lookups:
            for domain in key:
                if domain not in self._df.columns:
                    raise IdMappingError(
                        f"Id domain '{domain}' not found in mapping file",
                        source_domain=source_domain,
                        target_domain=target_domain,
                    )
            pairs = self._df[[source_domain, target_domain]]
            pairs = pairs[(pairs[source_domain] != "") & (pairs[target_domain] != "")]
            self._lookups[key] = dict(zip(pairs[source_domain], pairs[target_domain]))
        return self._lookups[key]

    def map_id(self, identifier: str, source_domain: str, target_domain: str) -> str:
        mapped = self._lookup(source_domain, target_domain).get(identifier)
        if mapped is None:
            raise IdMappingError(
                f"No mapping for id '{identifier}' from {source_domain} to {target_domain}",
                identifier=identifier,
                source_domain=source_domain,
                target_domain=target_domain,
            )
        return mapped
