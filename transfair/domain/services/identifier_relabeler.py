"""Identifier relabelling for directions that cross id domains.

Output records can be moved from one identifier domain (e.g. the biobank's
local patient ids) into another (e.g. pseudonyms issued by a trust centre).
The mapping itself is an opaque IdMappingPort; this service only knows
which fields carry patient identifiers.

Security Impact:
    - A record whose patient id cannot be mapped is dropped, so no
      unmapped identifier reaches the target store
"""

import logging
from typing import Callable, Generic, Hashable, Iterable, Optional, TypeVar

from transfair.domain.ports import IdMappingError, IdMappingPort
from transfair.domain.records import ClinicalRecord, Reference

logger = logging.getLogger(__name__)

V = TypeVar("V")

# Records whose own id is a patient id
_PATIENT_KINDS = {"Patient", "Individual"}
# Catalog records referring to their individual by bare id
_INDIVIDUAL_ID_KINDS = {"Biosample", "Measure"}


class RecordCache(Generic[V]):
    """Caller-owned keyed cache scoped to one batch or one run.

    Maps a derived key to an already built value so repeated work is done
    once. Nothing inside the engine holds one implicitly; the caller
    creates it and decides its lifetime.
    """

    def __init__(self) -> None:
        self._values: dict[Hashable, V] = {}

    def get_or_build(self, key: Hashable, build: Callable[[], V]) -> V:
        if key not in self._values:
            self._values[key] = build()
        return self._values[key]

    def __contains__(self, key: Hashable) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def clear(self) -> None:
        self._values.clear()


class IdentifierRelabeler:
    """Rewrites patient identifiers and patient references of records.

    Parameters:
        mapping: Port performing the actual id mapping
        source_domain: Id domain of the input identifiers
        target_domain: Id domain of the output identifiers
        cache: Optional caller-owned cache of already mapped ids
    """

    def __init__(
        self,
        mapping: IdMappingPort,
        source_domain: str,
        target_domain: str,
        cache: Optional[RecordCache[str]] = None,
    ):
        self.mapping = mapping
        self.source_domain = source_domain
        self.target_domain = target_domain
        self.cache = cache if cache is not None else RecordCache()

    def _map(self, identifier: str) -> str:
        return self.cache.get_or_build(
            (self.source_domain, self.target_domain, identifier),
            lambda: self.mapping.map_id(identifier, self.source_domain, self.target_domain),
        )

    def relabel_record(self, record: ClinicalRecord) -> ClinicalRecord:
        """Return the record with its patient identifiers mapped.

        Raises:
            IdMappingError: If any patient identifier has no mapping
        """
        updates = {}
        if record.kind in _PATIENT_KINDS and record.id:
            updates["id"] = self._map(record.id)
        if record.kind in _INDIVIDUAL_ID_KINDS and getattr(record, "individual_id", None):
            updates["individual_id"] = self._map(record.individual_id)
        subject = getattr(record, "subject", None)
        if isinstance(subject, Reference) and subject.kind_part == "Patient" and subject.id_part:
            updates["subject"] = subject.model_copy(
                update={"reference": f"Patient/{self._map(subject.id_part)}"}
            )
        return record.model_copy(update=updates) if updates else record

    def relabel(self, records: Iterable[ClinicalRecord]) -> tuple[list[ClinicalRecord], int]:
        """Relabel a batch, dropping records that cannot be mapped.

        Returns:
            tuple: (relabelled records, number of dropped records)
        """
        output = []
        dropped = 0
        for record in records:
            try:
                output.append(self.relabel_record(record))
            except IdMappingError as e:
                dropped += 1
                logger.warning(f"Dropping {record.kind}/{record.id}: {e}")
        return output, dropped
