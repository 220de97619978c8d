"""FHIR Server Reader.

Reads input records from a FHIR REST server by paginated search, one
resource type after another, following the ``next`` links of each
searchset Bundle.

Security Impact:
    - API keys are sent as bearer tokens and never logged
    - Requests use explicit timeouts

Architecture:
    - Implements ReaderPort (Hexagonal Architecture)
    - Transient HTTP failures are retried with exponential backoff (tenacity)
"""

import logging
from typing import Any, Iterable, Iterator, Optional

import requests
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from transfair.domain.ports import ReaderError, ReaderPort
from transfair.domain.records import ClinicalRecord, parse_record

logger = logging.getLogger(__name__)

DEFAULT_RESOURCE_TYPES = ("Organization", "Patient", "Condition", "Observation", "Specimen")


class FhirServerReader(ReaderPort):
    """Paginated FHIR search reader.

    Parameters:
        base_url: FHIR base URL (e.g. ``http://localhost:8080/fhir``)
        resource_types: Kinds to read, in order
        batch_size: Records per yielded batch
        page_size: ``_count`` search parameter
        timeout: Per-request timeout in seconds
        api_key: Optional bearer token
        max_attempts: Attempts per page request
        backoff_seconds: Initial exponential backoff between attempts
        session: Optional requests session (tests inject a mock)
    """

    def __init__(
        self,
        base_url: str,
        resource_types: Iterable[str] = DEFAULT_RESOURCE_TYPES,
        batch_size: int = 100,
        page_size: int = 100,
        timeout: float = 30.0,
        api_key: Optional[str] = None,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.resource_types = tuple(resource_types)
        self.batch_size = batch_size
        self.page_size = page_size
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/fhir+json"})
        if api_key:
            self.session.headers.update({"Authorization": f"Bearer {api_key}"})
        self._retrying = Retrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=backoff_seconds, max=30),
            retry=retry_if_exception_type(requests.RequestException),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def describe(self) -> str:
        return f"FHIR server {self.base_url}"

    def _get(self, url: str, params: Optional[dict]) -> dict[str, Any]:
        response = self.session.get(url, params=params, timeout=self.timeout)
        if not response.ok:
            logger.error(f"FHIR search failed with HTTP {response.status_code}: {response.text[:500]}")
            response.raise_for_status()
        return response.json()

    def search(self, resource_type: str) -> Iterator[dict[str, Any]]:
        """Yield the raw resources of one type across all result pages.

        Raises:
            ReaderError: If a page cannot be fetched after all retries
        """
        url: Optional[str] = f"{self.base_url}/{resource_type}"
        params: Optional[dict] = {"_count": self.page_size}
        pages = 0
        while url:
            try:
                page = self._retrying(self._get, url, params)
            except requests.RequestException as e:
                raise ReaderError(f"Failed to search {resource_type}: {e}", source=url) from e
            pages += 1
            for entry in page.get("entry", []):
                resource = entry.get("resource")
                if resource:
                    yield resource
            url = next(
                (link.get("url") for link in page.get("link", []) if link.get("relation") == "next"),
                None,
            )
            # The next link already carries the search parameters.
            params = None
        logger.info(f"Read {pages} page(s) of {resource_type} from {self.base_url}")

    def batches(self) -> Iterator[list[ClinicalRecord]]:
        batch: list[ClinicalRecord] = []
        for resource_type in self.resource_types:
            for raw in self.search(resource_type):
                try:
                    batch.append(parse_record(raw))
                except ValueError as e:
                    raise ReaderError(
                        f"Invalid {resource_type} record {raw.get('id')}: {e}",
                        source=self.base_url,
                    ) from e
                if len(batch) >= self.batch_size:
                    yield batch
                    batch = []
        if batch:
            yield batch
