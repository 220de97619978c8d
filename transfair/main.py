"""Transfer orchestration for TransFAIR.

Wires one run together from its configuration: translation tables, rule
registry, router, optional identifier relabelling, bundle assembly, the
writer and the circuit breaker.

Security Impact:
    - Translation tables and the id mapping are validated before the first
      record is read
    - API keys are unwrapped from SecretStr only when handed to an adapter

Architecture:
    - Sequential batch loop: read, route, relabel, assemble, write
    - A failed batch is counted and the run continues; configuration and
      contract errors propagate and abort the run
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from transfair.adapters.concept_map_loader import load_translation_tables
from transfair.adapters.id_mapping import CsvIdMapping, IdentityIdMapping
from transfair.adapters.readers import get_reader
from transfair.adapters.writers import get_writer
from transfair.domain.bundle import BundleAssembler
from transfair.domain.directions import build_registry
from transfair.domain.guardrails import CircuitBreaker, CircuitBreakerConfig
from transfair.domain.ports import ReaderPort, WriterPort
from transfair.domain.router import ResourceRouter, RoutingStats
from transfair.domain.services.identifier_relabeler import IdentifierRelabeler, RecordCache
from transfair.infrastructure.config_manager import (
    IdMappingConfig,
    ReaderConfig,
    TransferConfig,
    WriterConfig,
)

logger = logging.getLogger(__name__)


@dataclass
class TransferSummary:
    """Outcome of one transfer run."""

    direction: str
    batches_written: int = 0
    batches_failed: int = 0
    batches_empty: int = 0
    records_written: int = 0
    records_unrelabelled: int = 0
    failed_bundles: list[str] = field(default_factory=list)
    routing: RoutingStats = field(default_factory=RoutingStats)

    @property
    def batches_total(self) -> int:
        return self.batches_written + self.batches_failed + self.batches_empty

    @property
    def has_failures(self) -> bool:
        return self.batches_failed > 0


def _secret(value) -> Optional[str]:
    return value.get_secret_value() if value is not None else None


def create_reader(config: ReaderConfig) -> ReaderPort:
    """Create the reader adapter for the configured source."""
    kwargs = {}
    if config.resource_types:
        kwargs["resource_types"] = config.resource_types
    if config.source.startswith(("http://", "https://")):
        kwargs["page_size"] = config.page_size
    reader = get_reader(config.source, batch_size=config.batch_size, api_key=_secret(config.api_key), **kwargs)
    logger.info(f"Reading from {reader.describe()}")
    return reader


def create_writer(config: WriterConfig) -> WriterPort:
    """Create the writer adapter for the configured target."""
    logger.info(f"Writing to {config.kind} target {config.target}")
    return get_writer(
        config.kind,
        config.target,
        api_key=_secret(config.api_key),
        max_attempts=config.max_attempts,
        backoff_seconds=config.backoff_seconds,
    )


def create_relabeler(config: IdMappingConfig) -> Optional[IdentifierRelabeler]:
    """Create the identifier relabeler, or None when ids are kept as they are."""
    if config.mode == "none":
        return None
    mapping = CsvIdMapping(config.file) if config.mode == "csvmapping" else IdentityIdMapping()
    logger.info(f"Relabelling ids from {config.source_domain} to {config.target_domain} ({config.mode})")
    return IdentifierRelabeler(mapping, config.source_domain, config.target_domain, cache=RecordCache())


def run_transfer(
    config: TransferConfig,
    circuit_breaker_config: Optional[CircuitBreakerConfig] = None,
    reader: Optional[ReaderPort] = None,
    writer: Optional[WriterPort] = None,
) -> TransferSummary:
    """Run one transfer from the configured source to the configured target.

    Parameters:
        config: Validated transfer configuration
        circuit_breaker_config: Enables the circuit breaker when given
        reader: Reader to use instead of the configured one
        writer: Writer to use instead of the configured one

    Returns:
        TransferSummary: Counts of written, failed and empty batches

    Raises:
        ConfigurationError: If a translation table or the id mapping is invalid
        ContractViolationError: If a rule receives a record of the wrong kind
        ReaderError: If the source cannot be read
        CircuitBreakerOpenError: If too many batches fail
    """
    tables = load_translation_tables(config.concept_maps.model_dump())
    router = ResourceRouter(build_registry(config.direction, tables))
    relabeler = create_relabeler(config.id_mapping)
    assembler = BundleAssembler()
    breaker = CircuitBreaker(circuit_breaker_config) if circuit_breaker_config else None

    reader = reader or create_reader(config.reader)
    writer = writer or create_writer(config.writer)
    summary = TransferSummary(direction=config.direction.value)

    try:
        for batch in reader.batches():
            routed = router.transform_batch(batch)
            summary.routing.merge(routed.stats)
            records = routed.records

            if relabeler is not None:
                records, dropped = relabeler.relabel(records)
                summary.records_unrelabelled += dropped

            if not records:
                summary.batches_empty += 1
                logger.info(f"Batch of {routed.stats.received} records produced no output, skipping")
                continue

            bundle = assembler.assemble(records)
            result = writer.write(bundle)
            if result.is_success():
                summary.batches_written += 1
                summary.records_written += result.value
            else:
                summary.batches_failed += 1
                summary.failed_bundles.append(bundle.id)

            if breaker is not None:
                breaker.record_result(result)
    finally:
        writer.close()

    logger.info(
        f"Transfer {summary.direction} finished: {summary.batches_written} batches written, "
        f"{summary.batches_failed} failed, {summary.records_written} records written"
    )
    return summary
