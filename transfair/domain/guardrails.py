"""Domain Guardrails - Circuit Breaker over Batch Write Outcomes.

The CircuitBreaker watches the results writers return per bundle. When too
many recent batches fail (for instance because the target server is down)
the run is aborted instead of retrying batch after batch.

Security Impact:
    - Stops a run that would otherwise leave the target store with a
      patchwork of partially transferred batches
    - Reduces log noise from repeated failures

Architecture:
    - Pure domain logic with no infrastructure dependencies
    - Works with the Result type from ports
    - Thread-safe design for concurrent writers
"""

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Optional

from transfair.domain.ports import Result, TransferError

logger = logging.getLogger(__name__)


@dataclass
class CircuitBreakerConfig:
    """Configuration for CircuitBreaker behavior.

    Attributes:
        failure_threshold_percent: Failed-batch percentage that opens the circuit (0-100)
        window_size: Number of recent batches evaluated
        min_batches_before_check: Batches written before the threshold is checked
        abort_on_open: Raise CircuitBreakerOpenError when opening; otherwise only log
    """
    failure_threshold_percent: float = 50.0
    window_size: int = 20
    min_batches_before_check: int = 5
    abort_on_open: bool = True


class CircuitBreakerOpenError(TransferError):
    """Raised when the CircuitBreaker opens due to excessive batch failures.

    Attributes:
        failure_rate: Failure rate percentage in the window
        threshold: Configured threshold
        batches_processed: Batches seen when the circuit opened
        failures: Failed batches seen when the circuit opened
    """

    def __init__(
        self,
        message: str,
        failure_rate: float,
        threshold: float,
        batches_processed: int,
        failures: int
    ):
        super().__init__(message)
        self.failure_rate = failure_rate
        self.threshold = threshold
        self.batches_processed = batches_processed
        self.failures = failures


class CircuitBreaker:
    """Sliding-window failure monitor for bundle writes.

    Example Usage:
        ```python
        breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold_percent=50.0))
        for bundle in bundles:
            breaker.record_result(writer.write(bundle))
        ```
    """

    def __init__(self, config: Optional[CircuitBreakerConfig] = None):
        self.config = config or CircuitBreakerConfig()
        self._window: list[bool] = []
        self._lock = Lock()
        self._is_open = False
        self._total_processed = 0
        self._total_failures = 0

    def record_result(self, result: Result) -> None:
        """Record one batch outcome and re-evaluate the threshold.

        Raises:
            CircuitBreakerOpenError: If abort_on_open is set and the threshold is exceeded
        """
        with self._lock:
            success = result.is_success()
            self._window.append(success)
            self._total_processed += 1
            if not success:
                self._total_failures += 1
            while len(self._window) > self.config.window_size:
                self._window.pop(0)
            if self._total_processed >= self.config.min_batches_before_check:
                self._check_threshold()

    def _failure_rate(self) -> float:
        if not self._window:
            return 0.0
        failures = sum(1 for ok in self._window if not ok)
        return failures / len(self._window) * 100.0

    def _check_threshold(self) -> None:
        failure_rate = self._failure_rate()
        threshold = self.config.failure_threshold_percent
        if failure_rate >= threshold:
            if not self._is_open:
                self._is_open = True
                logger.error(
                    f"CircuitBreaker OPEN: batch failure rate {failure_rate:.1f}% "
                    f"exceeds threshold {threshold}% "
                    f"(total: {self._total_failures}/{self._total_processed})"
                )
                if self.config.abort_on_open:
                    raise CircuitBreakerOpenError(
                        f"CircuitBreaker opened: {failure_rate:.1f}% batch failure rate "
                        f"exceeds threshold {threshold}%",
                        failure_rate=failure_rate,
                        threshold=threshold,
                        batches_processed=self._total_processed,
                        failures=self._total_failures
                    )
        elif self._is_open:
            self._is_open = False
            logger.info(f"CircuitBreaker CLOSED: batch failure rate {failure_rate:.1f}% below threshold")

    def is_open(self) -> bool:
        with self._lock:
            return self._is_open

    def reset(self) -> None:
        with self._lock:
            self._window.clear()
            self._is_open = False
            self._total_processed = 0
            self._total_failures = 0
            logger.info("CircuitBreaker reset")

    def get_statistics(self) -> dict:
        """Current counters and failure rate of the sliding window."""
        with self._lock:
            return {
                'is_open': self._is_open,
                'total_processed': self._total_processed,
                'total_failures': self._total_failures,
                'batches_in_window': len(self._window),
                'failure_rate': self._failure_rate(),
                'threshold': self.config.failure_threshold_percent,
            }
