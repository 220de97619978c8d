"""Bundle Assembler.

Packages the router's flat output into one transaction bundle: a fresh random
identifier plus one upsert entry per record, addressed by ``Kind/id``.

Architecture:
    - Bundles are frozen Pydantic models, created once per batch
    - BundleBuilder is the only way to finalize a bundle; it refuses to
      build without an identifier
"""

import logging
import uuid
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict

from transfair.domain.ports import BundleAssemblyError
from transfair.domain.records import ClinicalRecord

logger = logging.getLogger(__name__)


def address_of(record: ClinicalRecord) -> str:
    """Deterministic upsert address ``Kind/id`` of a record.

    Raises:
        BundleAssemblyError: If the record has no identifier
    """
    if not record.id:
        raise BundleAssemblyError(f"Cannot address {record.kind} record without an id")
    return f"{record.kind}/{record.id}"


class BundleRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: str = "PUT"
    url: str


class BundleEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    full_url: str
    resource: ClinicalRecord
    request: BundleRequest


class Bundle(BaseModel):
    """One atomic transfer unit.

    Parameters:
        id: Random bundle identifier
        type: Always ``transaction``
        entries: Ordered upsert entries
    """

    model_config = ConfigDict(frozen=True)

    id: str
    type: str = "transaction"
    entries: tuple[BundleEntry, ...] = ()

    @property
    def records(self) -> list[ClinicalRecord]:
        return [entry.resource for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

    def to_fhir(self) -> dict[str, Any]:
        """Serialise as a FHIR transaction Bundle."""
        return {
            "resourceType": "Bundle",
            "id": self.id,
            "type": self.type,
            "entry": [
                {
                    "fullUrl": entry.full_url,
                    "resource": entry.resource.to_fhir(),
                    "request": {"method": entry.request.method, "url": entry.request.url},
                }
                for entry in self.entries
            ],
        }


class BundleBuilder:
    """Fluent builder for bundles.

    Example Usage:
        ```python
        bundle = BundleBuilder().with_id("b1").add(patient).add(specimen).build()
        ```
    """

    def __init__(self) -> None:
        self._id: Optional[str] = None
        self._entries: list[BundleEntry] = []

    def with_id(self, bundle_id: str) -> "BundleBuilder":
        self._id = bundle_id
        return self

    def add(self, record: ClinicalRecord) -> "BundleBuilder":
        address = address_of(record)
        self._entries.append(
            BundleEntry(
                full_url=address,
                resource=record,
                request=BundleRequest(method="PUT", url=address),
            )
        )
        return self

    def add_all(self, records: Iterable[ClinicalRecord]) -> "BundleBuilder":
        for record in records:
            self.add(record)
        return self

    def build(self) -> Bundle:
        """Finalize the bundle.

        Raises:
            BundleAssemblyError: If no identifier was set
        """
        if not self._id:
            raise BundleAssemblyError("Attempt creating bundle without an ID")
        return Bundle(id=self._id, entries=tuple(self._entries))


class BundleAssembler:
    """Assembles one bundle per batch with a fresh uuid4 identifier."""

    def assemble(self, records: Iterable[ClinicalRecord]) -> Bundle:
        bundle = BundleBuilder().with_id(str(uuid.uuid4())).add_all(records).build()
        logger.debug(f"Assembled bundle {bundle.id} with {len(bundle)} entries")
        return bundle
