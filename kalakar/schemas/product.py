"""Pydantic schemas for the structured product record and its confidence map."""

import math
import re
from collections.abc import Callable
from typing import Any

from pydantic import Field, field_validator, model_validator

from kalakar.schemas.common import CamelSchema

_NUMBER_RE = re.compile(r"-?\d+(?:[.,]\d+)?")


def _clean_text(value: Any) -> Any:
    """Strip strings and turn blank ones into None; stringify bare numbers."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return str(value)
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def dedupe_strings(values: list[str]) -> list[str]:
    """Drop blanks and case-insensitive duplicates, keeping first-seen order and spelling."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        cleaned = value.strip()
        key = cleaned.casefold()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        result.append(cleaned)
    return result


def _clean_string_list(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list | tuple):
        return value
    return dedupe_strings(
        [str(v) for v in value if isinstance(v, str | int | float) and not isinstance(v, bool)]
    )


def _parse_number(value: Any) -> float | None:
    """Read a finite number from a number or a string like "Rs. 1,500"; else None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        match = _NUMBER_RE.search(value.replace(",", ""))
        if match is None:
            return None
        value = match.group()
    elif not isinstance(value, int | float):
        return None
    try:
        number = float(value)
    except (OverflowError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _drop_unknown(data: Any, checks: dict[str, Callable[[Any], Any]]) -> Any:
    """Remove keys whose values cannot be read, so they stay unset rather than defaulted."""
    if not isinstance(data, dict):
        return data
    return {k: v for k, v in data.items() if k not in checks or checks[k](v) not in (None, [])}


class Dimensions(CamelSchema):
    """Physical measurements of a product."""

    length: float | None = None
    width: float | None = None
    height: float | None = None
    weight: float | None = None
    unit: str = "cm"

    @model_validator(mode="before")
    @classmethod
    def _drop_unknown_unit(cls, data: Any) -> Any:
        return _drop_unknown(data, {"unit": _clean_text})

    @field_validator("length", "width", "height", "weight", mode="before")
    @classmethod
    def _parse_measure(cls, value: Any) -> float | None:
        # Zero means the artisan did not say
        return _parse_number(value) or None

    @field_validator("unit", mode="before")
    @classmethod
    def _default_unit(cls, value: Any) -> Any:
        return _clean_text(value) or "cm"


class Pricing(CamelSchema):
    """Price the artisan has in mind and what drives it."""

    cost: float = 0
    currency: str = "INR"
    factors: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _drop_unknown_values(cls, data: Any) -> Any:
        return _drop_unknown(
            data,
            {"cost": _parse_number, "currency": _clean_text, "factors": _clean_string_list},
        )

    @field_validator("cost", mode="before")
    @classmethod
    def _parse_cost(cls, value: Any) -> float:
        return _parse_number(value) or 0

    @field_validator("currency", mode="before")
    @classmethod
    def _default_currency(cls, value: Any) -> Any:
        return _clean_text(value) or "INR"

    @field_validator("factors", mode="before")
    @classmethod
    def _clean_factors(cls, value: Any) -> Any:
        return _clean_string_list(value) or []


class ProductInfo(CamelSchema):
    """Accumulating structured record of one artisan's product.

    Every field is optional: a partial record is the normal state while the
    conversation is in progress. Blank strings and empty lists are normalized
    to None so "missing" has a single representation.
    """

    product_type: str | None = None
    materials: list[str] | None = None
    colors: list[str] | None = None
    crafting_process: str | None = None
    dimensions: Dimensions | None = None
    cultural_significance: str | None = None
    time_to_make: str | None = None
    pricing: Pricing | None = None
    target_market: str | None = None
    unique_features: list[str] | None = None
    care_instructions: str | None = None
    customization_options: list[str] | None = None

    @field_validator(
        "product_type",
        "crafting_process",
        "cultural_significance",
        "time_to_make",
        "target_market",
        "care_instructions",
        mode="before",
    )
    @classmethod
    def _clean_scalars(cls, value: Any) -> Any:
        return _clean_text(value)

    @field_validator(
        "materials", "colors", "unique_features", "customization_options", mode="before"
    )
    @classmethod
    def _clean_lists(cls, value: Any) -> Any:
        cleaned = _clean_string_list(value)
        if isinstance(cleaned, list) and not cleaned:
            return None
        return cleaned

    @field_validator("dimensions", mode="after")
    @classmethod
    def _drop_empty_dimensions(cls, value: Dimensions | None) -> Dimensions | None:
        if value is None:
            return None
        if all(v is None for v in (value.length, value.width, value.height, value.weight)):
            return None
        return value

    @field_validator("pricing", mode="after")
    @classmethod
    def _drop_empty_pricing(cls, value: Pricing | None) -> Pricing | None:
        if value is None or not value.model_fields_set:
            return None
        return value

    def to_record(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape stored on the conversation."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ConfidenceMap(CamelSchema):
    """Per-field extraction confidence plus an overall score, all in [0, 1]."""

    overall: float = 0.0
    fields: dict[str, float] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _clamp(self) -> "ConfidenceMap":
        self.overall = min(1.0, max(0.0, self.overall))
        self.fields = {k: min(1.0, max(0.0, v)) for k, v in self.fields.items()}
        return self
