"""Identity rule for the copy direction."""

from typing import Optional

from transfair.domain.records import ClinicalRecord
from transfair.domain.rules.base import TransformRule


class CopyRule(TransformRule):
    """Returns every record unchanged: ``map(r) == [r]``.

    One CopyRule is registered as the default rule of the copy direction,
    so it accepts any kind unless bound to a single one.
    """

    kind = "*"

    def __init__(self, kind: Optional[str] = None):
        super().__init__()
        if kind is not None:
            self.kind = kind

    def map(self, record: ClinicalRecord) -> list[ClinicalRecord]:
        if self.kind == "*":
            return [record]
        return super().map(record)

    def apply(self, record: ClinicalRecord) -> list[ClinicalRecord]:
        return [record]
