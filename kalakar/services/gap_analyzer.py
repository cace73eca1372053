"""Missing-field analysis over a partial product record."""

from dataclasses import dataclass, field
from typing import Any

from kalakar.schemas.product import ProductInfo
from kalakar.services.field_schema import (
    CRITICAL_FIELDS,
    IMPORTANT_FIELDS,
    NICE_TO_HAVE_FIELDS,
    field_value,
    has_meaningful_value,
)


@dataclass
class InformationGaps:
    """Missing field names per priority tier, in registry declaration order."""

    critical: list[str] = field(default_factory=list)
    important: list[str] = field(default_factory=list)
    nice_to_have: list[str] = field(default_factory=list)

    def all_missing(self) -> list[str]:
        return [*self.critical, *self.important, *self.nice_to_have]

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "critical": list(self.critical),
            "important": list(self.important),
            "nice_to_have": list(self.nice_to_have),
        }


def is_missing(info: ProductInfo | dict[str, Any], name: str) -> bool:
    """A field is missing when absent, None, blank, or an empty collection."""
    return not has_meaningful_value(field_value(info, name))


def analyze_gaps(info: ProductInfo | dict[str, Any] | None) -> InformationGaps:
    """Compute which critical, important and nice-to-have fields are still missing."""
    info = info if info is not None else {}
    return InformationGaps(
        critical=[f for f in CRITICAL_FIELDS if is_missing(info, f)],
        important=[f for f in IMPORTANT_FIELDS if is_missing(info, f)],
        nice_to_have=[f for f in NICE_TO_HAVE_FIELDS if is_missing(info, f)],
    )
