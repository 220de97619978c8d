"""Per-Type Transform Rule contract.

Every rule handles exactly one record kind for one mapping direction and
follows the same steps: profile gate, precondition check, shape rewrite,
code translation and, where needed, type promotion or record
multiplication.

Architecture:
    - ``map()`` enforces the kind contract, then delegates to ``apply()``
    - ``classify()`` maps profile tags onto a per-rule ``enum.Enum`` of
      recognised input profiles; ``None`` is the explicit no-match arm
    - Rules hold only read-only translation tables
"""

import enum
import logging
from abc import ABC, abstractmethod
from typing import ClassVar, Optional

from transfair.domain.concept_map import TranslationTables
from transfair.domain.ports import ContractViolationError
from transfair.domain.records import ClinicalRecord

logger = logging.getLogger(__name__)


class TransformRule(ABC):
    """Maps one input record of ``kind`` to 0..N output records.

    Attributes:
        kind: Record kind this rule accepts
        max_outputs: Upper bound of output records per input record
    """

    kind: ClassVar[str]
    max_outputs: ClassVar[int] = 1

    def __init__(self, tables: Optional[TranslationTables] = None):
        self.tables = tables or TranslationTables()

    def map(self, record: ClinicalRecord) -> list[ClinicalRecord]:
        """Transform one record.

        Returns:
            list: Output records, empty when the record is not representable
            in the target schema

        Raises:
            ContractViolationError: If ``record`` is not of this rule's kind
        """
        if record.kind != self.kind:
            raise ContractViolationError(
                f"{type(self).__name__} handles {self.kind} records, got {record.kind}",
                expected=self.kind,
                actual=record.kind,
            )
        return self.apply(record)

    @abstractmethod
    def apply(self, record: ClinicalRecord) -> list[ClinicalRecord]:
        """Kind-checked transformation, implemented per rule."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind!r})"


class ProfiledRule(TransformRule):
    """Rule whose behaviour branches on a finite set of input profiles.

    Subclasses declare ``profiles``, an ordered mapping of profile URL to a
    member of their input-profile enum, and optionally ``accept_untagged``
    (the enum member used for records that carry no profile tag at all).
    """

    profiles: ClassVar[dict[str, enum.Enum]] = {}
    accept_untagged: ClassVar[Optional[enum.Enum]] = None

    def classify(self, record: ClinicalRecord) -> Optional[enum.Enum]:
        tags = record.profiles
        if not tags:
            return self.accept_untagged
        for url, profile in self.profiles.items():
            if url in tags:
                return profile
        return None

    def apply(self, record: ClinicalRecord) -> list[ClinicalRecord]:
        profile = self.classify(record)
        if profile is None:
            logger.debug(
                f"{type(self).__name__}: {record.kind}/{record.id} with profiles "
                f"{list(record.profiles)} not handled"
            )
            return []
        return self.apply_profile(record, profile)

    @abstractmethod
    def apply_profile(self, record: ClinicalRecord, profile: enum.Enum) -> list[ClinicalRecord]:
        """Transform a record whose input profile was recognised."""
