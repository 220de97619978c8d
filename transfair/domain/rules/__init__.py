"""Per-Type Transform Rules, one module per mapping direction."""

from transfair.domain.rules.base import ProfiledRule, TransformRule
from transfair.domain.rules.copy import CopyRule

__all__ = ["TransformRule", "ProfiledRule", "CopyRule"]
