"""Domain Ports - Abstract Contracts for Reading, Writing and Id Mapping.

This module defines the Port interfaces the transformation engine depends on,
the Result type used to report batch outcomes, and the exception hierarchy.
Following Hexagonal Architecture, the Domain Core defines what it needs, not
how it's provided.

Security Impact:
    - Writers report failed batches through Result, never by crashing the run
    - Identifier pseudonymisation is an opaque port, the engine never sees
      the mapping table
    - Configuration defects are raised, so a broken run cannot produce
      partially translated output silently

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Adapters (JSON files, FHIR servers, DuckDB, ...) implement these ports
    - Iterator pattern for batched reading
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, Iterator, Optional, TypeVar, Union

from transfair.domain.records import ClinicalRecord

if TYPE_CHECKING:
    from transfair.domain.bundle import Bundle

T = TypeVar('T')


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of an operation that may fail without aborting the run.

    Writers return a Result per bundle so the pipeline and the
    CircuitBreaker can count failed batches without exception handling.

    Attributes:
        success: True if the operation succeeded
        value: Result value (only present if success=True)
        error: Error message (only present if success=False)
        error_type: Name of the error class
        error_details: Additional context (bundle id, attempts, target)

    Example:
        ```python
        result = writer.write(bundle)
        if result.is_failure():
            logger.error(f"Batch {result.error_details['bundle_id']} failed: {result.error}")
        ```
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        return cls(success=True, value=value)

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception
            error_type: Name of the error; derived from the exception if omitted
            error_details: Additional context

        Returns:
            Result: Failure result with error information
        """
        if isinstance(error, Exception):
            message = str(error)
            type_name = error_type or type(error).__name__
        else:
            message = error
            type_name = error_type or "UnknownError"
        return cls(
            success=False,
            error=message,
            error_type=type_name,
            error_details=error_details or {}
        )

    def is_success(self) -> bool:
        return self.success

    def is_failure(self) -> bool:
        return not self.success


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class TransferError(Exception):
    """Base exception for all transfer-related errors."""


class ContractViolationError(TransferError):
    """Raised when a rule is invoked with a record kind it does not handle.

    This is a programming defect, never a data-quality condition.

    Attributes:
        expected: Kind the rule handles
        actual: Kind it was given
    """

    def __init__(self, message: str, expected: Optional[str] = None, actual: Optional[str] = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class ConfigurationError(TransferError):
    """Raised when the run configuration is unusable.

    Attributes:
        source: The configuration source or key at fault
    """

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class ConceptMapLoadError(ConfigurationError):
    """Raised when a translation table source is missing or malformed."""


class BundleAssemblyError(TransferError):
    """Raised when a bundle cannot be finalized (no identifier, unaddressable record)."""


class ReaderError(TransferError):
    """Raised when input records cannot be read or parsed.

    Attributes:
        source: File path or URL being read
        details: Additional error details
    """

    def __init__(self, message: str, source: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.source = source
        self.details = details or {}


class WriterError(TransferError):
    """Raised inside writers when persisting a bundle fails.

    Writers convert it into a failed Result once retries are exhausted.

    Attributes:
        target: Output target (URL, directory, database)
        status_code: HTTP status code, when the target is a server
    """

    def __init__(self, message: str, target: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.target = target
        self.status_code = status_code


class IdMappingError(TransferError):
    """Raised when an identifier cannot be mapped between two id domains.

    Attributes:
        identifier: The identifier that could not be mapped
        source_domain: Domain the identifier belongs to
        target_domain: Domain it was to be mapped into
    """

    def __init__(
        self,
        message: str,
        identifier: Optional[str] = None,
        source_domain: Optional[str] = None,
        target_domain: Optional[str] = None
    ):
        super().__init__(message)
        self.identifier = identifier
        self.source_domain = source_domain
        self.target_domain = target_domain


# ============================================================================
# Ports
# ============================================================================

class ReaderPort(ABC):
    """Abstract contract for input record sources.

    Key Principles:
        - Batched: yields lists of records, never the whole source at once
        - End of input is the end of iteration
        - Parse failures raise ReaderError; the run cannot continue on a
          source it cannot read

    Example Usage:
        ```python
        reader = JsonBundleReader("export.ndjson", batch_size=100)
        for batch in reader.batches():
            bundle = assembler.assemble(router.transform(batch))
        ```
    """

    @abstractmethod
    def batches(self) -> Iterator[list[ClinicalRecord]]:
        """Yield successive non-empty batches of input records.

        Raises:
            ReaderError: If the source cannot be read or a record cannot be parsed
        """

    def describe(self) -> str:
        """Human readable description of the source for logs."""
        return type(self).__name__


class WriterPort(ABC):
    """Abstract contract for bundle persistence.

    Writers must be idempotent per record address (``Kind/id``) so that a
    retried batch does not duplicate records.
    """

    @abstractmethod
    def write(self, bundle: "Bundle") -> Result[int]:
        """Persist one bundle.

        Parameters:
            bundle: The assembled transaction unit

        Returns:
            Result[int]: Number of records persisted, or the failure after
            retries were exhausted. A failure aborts this batch only.
        """

    def close(self) -> None:
        """Release resources held by the writer (default: nothing)."""

    def __enter__(self) -> "WriterPort":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class IdMappingPort(ABC):
    """Abstract contract for identifier pseudonymisation."""

    @abstractmethod
    def map_id(self, identifier: str, source_domain: str, target_domain: str) -> str:
        """Map ``identifier`` from one id domain into another.

        Raises:
            IdMappingError: If no mapping exists
        """
