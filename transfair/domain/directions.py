"""Mapping Direction Selector and explicit rule registry.

A run selects exactly one MappingDirection. ``build_registry()`` wires the
rules of that direction into a RuleRegistry at startup; the router never
looks rules up anywhere else.

Architecture:
    - Registry is built explicitly per direction, no implicit discovery
    - Rules share the run's TranslationTables, which must be fully loaded
      before the registry is built
"""

import logging
from enum import Enum
from typing import Iterable, Optional

from transfair.domain.concept_map import TranslationTables
from transfair.domain.ports import ConfigurationError
from transfair.domain.rules import biobank_to_catalog, biobank_to_core, core_to_biobank
from transfair.domain.rules.base import TransformRule
from transfair.domain.rules.copy import CopyRule

logger = logging.getLogger(__name__)


class MappingDirection(str, Enum):
    """The fixed transformation configurations a run can select."""

    BIOBANK_TO_CORE = "bbmri2mii"
    CORE_TO_BIOBANK = "mii2bbmri"
    BIOBANK_TO_CATALOG = "bbmri2beacon"
    COPY = "copy"

    @classmethod
    def parse(cls, value: str) -> "MappingDirection":
        """Parse a direction id case-insensitively.

        Raises:
            ConfigurationError: For an unknown direction id
        """
        normalized = value.strip().lower()
        for direction in cls:
            if direction.value == normalized or direction.name.lower() == normalized:
                return direction
        raise ConfigurationError(
            f"Unknown mapping direction: {value}. Supported: {[d.value for d in cls]}",
            source="direction",
        )


class RuleRegistry:
    """Mapping from record kind to the rule handling it.

    Parameters:
        direction: Direction the rules belong to
        rules: Rules keyed by their kind
        default: Rule used for kinds without a dedicated rule (copy only)
    """

    def __init__(
        self,
        direction: MappingDirection,
        rules: Iterable[TransformRule] = (),
        default: Optional[TransformRule] = None,
    ):
        self.direction = direction
        self._rules: dict[str, TransformRule] = {}
        self.default = default
        for rule in rules:
            self.register(rule)

    def register(self, rule: TransformRule) -> None:
        if rule.kind in self._rules:
            raise ConfigurationError(
                f"Duplicate rule for {rule.kind} in direction {self.direction.value}",
                source="registry",
            )
        self._rules[rule.kind] = rule

    def get(self, kind: str) -> Optional[TransformRule]:
        return self._rules.get(kind, self.default)

    @property
    def kinds(self) -> list[str]:
        return sorted(self._rules)

    def __contains__(self, kind: str) -> bool:
        return self.get(kind) is not None

    def __repr__(self) -> str:
        return f"RuleRegistry(direction={self.direction.value!r}, kinds={self.kinds})"


_DIRECTION_RULES = {
    MappingDirection.BIOBANK_TO_CORE: biobank_to_core.RULES,
    MappingDirection.CORE_TO_BIOBANK: core_to_biobank.RULES,
    MappingDirection.BIOBANK_TO_CATALOG: biobank_to_catalog.RULES,
}


def build_registry(
    direction: MappingDirection,
    tables: Optional[TranslationTables] = None,
) -> RuleRegistry:
    """Wire the rules of one direction.

    Parameters:
        direction: Selected mapping direction
        tables: Translation tables for the run (empty set if None)

    Returns:
        RuleRegistry: Registry for the router
    """
    tables = tables or TranslationTables()
    if direction is MappingDirection.COPY:
        registry = RuleRegistry(direction, default=CopyRule())
    else:
        registry = RuleRegistry(
            direction,
            rules=[rule_class(tables) for rule_class in _DIRECTION_RULES[direction]],
        )
    logger.info(f"Rule registry for {direction.value}: {registry.kinds or ['*']}")
    return registry
