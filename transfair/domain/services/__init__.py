"""Domain services that operate on transformed records."""

from transfair.domain.services.identifier_relabeler import IdentifierRelabeler, RecordCache

__all__ = ["IdentifierRelabeler", "RecordCache"]
