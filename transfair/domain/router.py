"""Resource Router.

Dispatches every input record to the rule registered for its kind,
flattens the outputs in input order and drops null entries.

Security Impact:
    - Unmappable kinds are dropped and logged, never passed through
      unconverted into the target schema

Architecture:
    - Stateless: per-call statistics are returned, not accumulated on the
      router, so batches can be re-chunked freely
    - Contract violations raised by rules propagate and abort the run
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from transfair.domain.directions import RuleRegistry
from transfair.domain.records import ClinicalRecord

logger = logging.getLogger(__name__)


@dataclass
class RoutingStats:
    """Counters for one routed batch.

    Attributes:
        received: Input records
        emitted: Output records
        unmappable: Records dropped because no rule handles their kind
        unrepresentable: Records without an id or whose rule returned no output
        by_kind: Input records per kind
    """

    received: int = 0
    emitted: int = 0
    unmappable: int = 0
    unrepresentable: int = 0
    by_kind: Counter = field(default_factory=Counter)

    def merge(self, other: "RoutingStats") -> None:
        self.received += other.received
        self.emitted += other.emitted
        self.unmappable += other.unmappable
        self.unrepresentable += other.unrepresentable
        self.by_kind.update(other.by_kind)

    @property
    def dropped(self) -> int:
        return self.unmappable + self.unrepresentable


@dataclass
class RoutingResult:
    records: list[ClinicalRecord]
    stats: RoutingStats


class ResourceRouter:
    """Routes records through the rules of one direction.

    Example Usage:
        ```python
        router = ResourceRouter(build_registry(MappingDirection.BIOBANK_TO_CORE, tables))
        output = router.transform(batch)
        ```
    """

    def __init__(self, registry: RuleRegistry):
        self.registry = registry

    def transform(self, records: Iterable[ClinicalRecord]) -> list[ClinicalRecord]:
        return self.transform_batch(records).records

    def transform_batch(self, records: Iterable[ClinicalRecord]) -> RoutingResult:
        """Transform one batch and report what happened to it.

        Raises:
            ContractViolationError: If a rule is registered under the wrong kind
        """
        stats = RoutingStats()
        output: list[ClinicalRecord] = []
        for record in records:
            stats.received += 1
            stats.by_kind[record.kind] += 1
            rule = self.registry.get(record.kind)
            if rule is None:
                stats.unmappable += 1
                logger.warning(f"Unmappable kind: {record.kind} ({record.kind}/{record.id})")
                continue
            if not record.id:
                stats.unrepresentable += 1
                logger.warning(f"Skipping {record.kind} record without an id: it cannot be addressed in a bundle")
                continue
            produced = [r for r in rule.map(record) if r is not None]
            if not produced:
                stats.unrepresentable += 1
            output.extend(produced)
        stats.emitted = len(output)

        if stats.dropped:
            logger.info(
                f"Routed {stats.received} records -> {stats.emitted} "
                f"({stats.unmappable} unmappable, {stats.unrepresentable} unrepresentable)"
            )
        return RoutingResult(records=output, stats=stats)
