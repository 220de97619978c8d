"""Shared retry behaviour of writer adapters.

Every writer persists a bundle through ``_persist`` and lets this base class
retry transient failures with a fixed backoff and a bounded attempt count.
When the attempts are exhausted the failure is returned as a Result, so the
run aborts that batch only.
"""

import logging
from abc import abstractmethod
from typing import ClassVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from transfair.domain.bundle import Bundle
from transfair.domain.ports import Result, WriterError, WriterPort

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_BACKOFF_SECONDS = 10.0


class RetryingWriter(WriterPort):
    """WriterPort base with fixed-backoff retries.

    Subclasses implement ``_persist`` and may widen ``failure_types`` (the
    exceptions that turn into a failed Result) or override
    ``is_transient`` (which of them are worth another attempt).

    Parameters:
        max_attempts: Attempts per bundle, including the first
        backoff_seconds: Fixed wait between attempts
    """

    failure_types: ClassVar[tuple[type[BaseException], ...]] = (WriterError, OSError)

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds

    @property
    def target(self) -> str:
        return type(self).__name__

    def is_transient(self, exc: BaseException) -> bool:
        return isinstance(exc, self.failure_types)

    @abstractmethod
    def _persist(self, bundle: Bundle) -> int:
        """Persist the bundle once; return the number of records written."""

    def write(self, bundle: Bundle) -> Result[int]:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.backoff_seconds),
            retry=retry_if_exception(self.is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            count = retrying(self._persist, bundle)
        except self.failure_types as e:
            attempts = retrying.statistics.get("attempt_number", 1)
            logger.error(f"Writing bundle {bundle.id} to {self.target} failed after {attempts} attempt(s): {e}")
            return Result.failure_result(
                e,
                error_details={"bundle_id": bundle.id, "target": self.target, "attempts": attempts},
            )
        logger.info(f"Wrote bundle {bundle.id} ({count} records) to {self.target}")
        return Result.success_result(count)
