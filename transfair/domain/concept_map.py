"""Code Translation Tables.

A ConceptMap translates codes of one fixed source terminology into codes of
one fixed target terminology. Tables are built once from (source code,
target code) pairs before the first record is transformed and are read-only
afterwards.

Security Impact:
    - Tables are immutable, so concurrent batches can share them safely
    - Conflicting duplicate entries are reported, never silently overwritten

Architecture:
    - Pure domain logic, loading from files lives in adapters/concept_map_loader
    - Forward and reverse tables are independent values, never inverted
      from one another
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

logger = logging.getLogger(__name__)


class ConceptMap:
    """Immutable code-to-code lookup between two terminology systems.

    A missing entry is not an error; each rule decides its own fallback.

    Parameters:
        entries: Mapping of source code to target code
        source_system: Terminology system of the source codes
        target_system: Terminology system of the target codes
        name: Name used in log messages

    Example Usage:
        ```python
        icd10_to_gm = ConceptMap.from_pairs(
            [("C50.9", "C50.9")],
            source_system=SYSTEM_ICD10,
            target_system=SYSTEM_ICD10_GM,
        )
        icd10_to_gm.lookup("C50.9")  # "C50.9"
        icd10_to_gm.lookup("X99")    # None
        ```
    """

    __slots__ = ("_entries", "source_system", "target_system", "name")

    def __init__(
        self,
        entries: Mapping[str, str],
        source_system: Optional[str] = None,
        target_system: Optional[str] = None,
        name: str = "concept-map",
    ):
        self._entries = MappingProxyType(dict(entries))
        self.source_system = source_system
        self.target_system = target_system
        self.name = name

    @classmethod
    def from_pairs(
        cls,
        pairs: Iterable[tuple[str, str]],
        source_system: Optional[str] = None,
        target_system: Optional[str] = None,
        name: str = "concept-map",
    ) -> "ConceptMap":
        """Build a table from (source code, target code) pairs.

        The first pair for a source code wins. A later pair with a different
        target is logged as a conflict.
        """
        entries: dict[str, str] = {}
        conflicts = 0
        for source_code, target_code in pairs:
            if source_code is None or target_code is None:
                continue
            source_code = str(source_code).strip()
            target_code = str(target_code).strip()
            if not source_code or not target_code:
                continue
            existing = entries.get(source_code)
            if existing is None:
                entries[source_code] = target_code
            elif existing != target_code:
                conflicts += 1
                logger.warning(
                    f"ConceptMap '{name}': conflicting targets for '{source_code}' "
                    f"('{existing}' kept, '{target_code}' ignored)"
                )
        if conflicts:
            logger.warning(f"ConceptMap '{name}': {conflicts} conflicting entries ignored")
        return cls(entries, source_system=source_system, target_system=target_system, name=name)

    def lookup(self, code: Optional[str]) -> Optional[str]:
        if code is None:
            return None
        return self._entries.get(code)

    def items(self):
        return self._entries.items()

    def __contains__(self, code: object) -> bool:
        return code in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ConceptMap(name={self.name!r}, entries={len(self)})"


@dataclass(frozen=True)
class TranslationTables:
    """The set of translation tables one run uses.

    Diagnosis coding and cause-of-death coding are configured separately
    even where they share a terminology pair, and each direction has its
    own table. Any table may be absent; rules then apply their
    no-table behaviour.

    Attributes:
        diagnosis: ICD-10 -> ICD-10-GM (biobank to core)
        diagnosis_reverse: ICD-10-GM -> ICD-10 (core to biobank)
        cause_of_death: ICD-10 -> ICD-10-GM for causes of death
        cause_of_death_reverse: ICD-10-GM -> ICD-10 for causes of death
        sample_type: biobank sample material type -> SNOMED
        sample_type_reverse: SNOMED -> biobank sample material type
    """

    diagnosis: Optional[ConceptMap] = None
    diagnosis_reverse: Optional[ConceptMap] = None
    cause_of_death: Optional[ConceptMap] = None
    cause_of_death_reverse: Optional[ConceptMap] = None
    sample_type: Optional[ConceptMap] = None
    sample_type_reverse: Optional[ConceptMap] = None

    def divergences(self) -> dict[str, list[tuple[str, str, str]]]:
        """Find codes the diagnosis and cause-of-death tables map differently.

        Returns:
            dict: ``{"forward": [...], "reverse": [...]}`` with
            (source code, diagnosis target, cause-of-death target) triples
        """
        return {
            "forward": _diverging(self.diagnosis, self.cause_of_death),
            "reverse": _diverging(self.diagnosis_reverse, self.cause_of_death_reverse),
        }

    def log_divergences(self) -> int:
        """Log every divergence found by ``divergences()``; return the count."""
        total = 0
        for direction, triples in self.divergences().items():
            for code, diagnosis_target, death_target in triples:
                logger.warning(
                    f"Translation divergence ({direction}): '{code}' maps to "
                    f"'{diagnosis_target}' as diagnosis but '{death_target}' as cause of death"
                )
            total += len(triples)
        return total


def _diverging(
    first: Optional[ConceptMap], second: Optional[ConceptMap]
) -> list[tuple[str, str, str]]:
    if first is None or second is None:
        return []
    result = []
    for code, target in first.items():
        other = second.lookup(code)
        if other is not None and other != target:
            result.append((code, target, other))
    return sorted(result)
