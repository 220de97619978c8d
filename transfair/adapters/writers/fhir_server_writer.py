"""FHIR Server Writer.

Posts each transaction bundle to a FHIR server's base endpoint. Every entry
is a ``PUT Kind/id`` request, so re-sending a bundle after a transient
failure is an idempotent upsert.

Security Impact:
    - API keys are sent as bearer tokens and never logged
    - Response bodies are truncated in log messages

Architecture:
    - Implements WriterPort through RetryingWriter (fixed backoff, bounded attempts)
    - Connection errors, timeouts, 5xx, 408 and 429 responses are retried;
      any other 4xx fails the batch immediately
"""

import logging
from typing import Optional

import requests

from transfair.adapters.writers.base import (
    DEFAULT_BACKOFF_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    RetryingWriter,
)
from transfair.domain.bundle import Bundle
from transfair.domain.ports import WriterError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {408, 429}


class FhirServerWriter(RetryingWriter):
    """Upserts bundles into a FHIR server.

    Parameters:
        base_url: FHIR base URL the transaction is posted to
        timeout: Per-request timeout in seconds
        api_key: Optional bearer token
        session: Optional requests session (tests inject a mock)
    """

    failure_types = (WriterError, requests.RequestException)

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        api_key: Optional[str] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(max_attempts=max_attempts, backoff_seconds=backoff_seconds)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/fhir+json",
            "Accept": "application/fhir+json",
        })
        if api_key:
            self.session.headers.update({"Authorization": f"Bearer {api_key}"})

    @property
    def target(self) -> str:
        return self.base_url

    def is_transient(self, exc: BaseException) -> bool:
        if isinstance(exc, WriterError):
            return exc.status_code is None or exc.status_code >= 500 or exc.status_code in RETRYABLE_STATUS_CODES
        return isinstance(exc, requests.RequestException)

    def _persist(self, bundle: Bundle) -> int:
        response = self.session.post(self.base_url, json=bundle.to_fhir(), timeout=self.timeout)
        if not response.ok:
            raise WriterError(
                f"Transaction rejected with HTTP {response.status_code}: {response.text[:500]}",
                target=self.base_url,
                status_code=response.status_code,
            )
        return len(bundle)

    def close(self) -> None:
        self.session.close()
