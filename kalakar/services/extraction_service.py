"""Product-information extraction and merge engine.

Turns a free-text artisan reply into structured ``ProductInfo`` fields via the
language model, validates the reply field by field, merges it into what the
conversation already knows and scores how complete and certain the result is.

The engine never raises: any gateway failure or unusable reply degrades to a
keyword scan over everything the artisan has said so far.
"""

import json
import logging
import math
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from kalakar.core.config import settings
from kalakar.core.exceptions import GenerationError, ValidationError
from kalakar.schemas.product import ConfidenceMap, ProductInfo, dedupe_strings
from kalakar.services.field_schema import (
    ALL_FIELDS,
    ARRAY_FIELDS,
    CRITICAL_FIELDS,
    FIELD_ATTRIBUTES,
    field_value,
    has_meaningful_value,
)
from kalakar.services.graph.prompts import EXTRACTION_PROMPT
from kalakar.services.llm_gateway import LanguageModelGateway, get_language_model_gateway

logger = logging.getLogger(__name__)

# Keyword lists for the degraded path (whole words, lower-cased)
PRODUCT_TYPE_KEYWORDS = ("pottery", "jewelry", "textile", "painting", "sculpture", "craft")
MATERIAL_KEYWORDS = ("clay", "wood", "metal", "fabric", "cotton", "silk", "silver", "gold")
COLOR_KEYWORDS = ("red", "blue", "green", "yellow", "white", "black", "brown", "orange")

FALLBACK_MISSING_FIELDS = (
    "craftingProcess",
    "dimensions",
    "culturalSignificance",
    "timeToMake",
    "pricing",
)

_ATTRIBUTE_FIELDS = {attr: name for name, attr in FIELD_ATTRIBUTES.items()}
_FENCE_START_RE = re.compile(r"^```(?:json)?\s*\n?")
_FENCE_END_RE = re.compile(r"\n?```\s*$")
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


@dataclass
class ExtractionResult:
    """Outcome of one extraction pass over a reply."""

    info: ProductInfo
    confidence: ConfidenceMap
    missing_fields: list[str]
    required_complete: bool
    degraded: bool = False
    invalid_fields: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Find the JSON object in a model reply, tolerating code fences and prose."""
    content = _FENCE_START_RE.sub("", text.strip())
    content = _FENCE_END_RE.sub("", content.strip())

    candidates = [content]
    match = _JSON_OBJECT_RE.search(content)
    if match and match.group() != content:
        candidates.append(match.group())

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except (json.JSONDecodeError, ValueError, RecursionError):
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _canonical_field(key: str) -> str | None:
    if key in FIELD_ATTRIBUTES:
        return key
    return _ATTRIBUTE_FIELDS.get(key)


def split_payload(parsed: dict[str, Any]) -> tuple[dict[str, Any], Any]:
    """Separate the product fields from the confidence block.

    Accepts ``{"productInfo": {...}, "confidence": {...}}`` as well as a flat
    object with product fields at the top level.
    """
    raw_info = parsed.get("productInfo", parsed.get("product_info"))
    if not isinstance(raw_info, dict):
        raw_info = {k: v for k, v in parsed.items() if _canonical_field(k) is not None}
    return raw_info, parsed.get("confidence")


def _validate_field(name: str, value: Any) -> Any:
    try:
        validated = ProductInfo.model_validate({name: value})
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid value for {name}: {value!r}") from e
    return getattr(validated, FIELD_ATTRIBUTES[name])


def validate_product_patch(raw: dict[str, Any]) -> tuple[ProductInfo, list[str]]:
    """Validate each field of a raw patch against the ProductInfo shape.

    Fields with the wrong shape are dropped, not fatal; their names are
    returned so callers can log them.
    """
    values: dict[str, Any] = {}
    invalid: list[str] = []

    for key, value in raw.items():
        name = _canonical_field(key)
        if name is None or value is None:
            continue
        try:
            validated = _validate_field(name, value)
        except ValidationError as e:
            logger.warning("Dropping extracted field: %s", e)
            invalid.append(name)
            continue
        if has_meaningful_value(validated):
            values[FIELD_ATTRIBUTES[name]] = validated

    return ProductInfo(**values), invalid


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


M = TypeVar("M", bound=BaseModel)


def _merge_nested(prior: M | None, new: M) -> M:
    """Override only the sub-fields the new object explicitly carries."""
    if prior is None:
        return new
    update: dict[str, Any] = {}
    for name in new.model_fields_set:
        value = getattr(new, name)
        if isinstance(value, list):
            update[name] = dedupe_strings([*getattr(prior, name), *value])
        elif has_meaningful_value(value):
            update[name] = value
    return prior.model_copy(update=update)


def merge_product_info(prior: ProductInfo, patch: ProductInfo) -> ProductInfo:
    """Merge a patch into the running record.

    Array fields take the union in first-seen order; every other field is
    replaced only when the patch has a meaningful value. Nothing is ever
    unset, and merging the same patch twice is a no-op the second time.
    """
    merged: dict[str, Any] = {}
    for name, attr in FIELD_ATTRIBUTES.items():
        old = getattr(prior, attr)
        new = getattr(patch, attr)
        if not has_meaningful_value(new):
            merged[attr] = old
        elif name in ARRAY_FIELDS:
            merged[attr] = dedupe_strings([*(old or []), *new])
        elif isinstance(new, BaseModel):
            merged[attr] = _merge_nested(old, new)
        else:
            merged[attr] = new
    return ProductInfo(**merged)


# ---------------------------------------------------------------------------
# Confidence scoring
# ---------------------------------------------------------------------------


def _as_score(value: Any) -> float | None:
    """Clamp a finite number into [0, 1]; None for anything else."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    try:
        number = float(value)
    except OverflowError:
        # Integers too large for a float
        return None
    if not math.isfinite(number):
        return None
    return min(1.0, max(0.0, number))


def _score(value: Any) -> float:
    """Numeric scores clamped into [0, 1]; anything non-numeric scores 0."""
    score = _as_score(value)
    return 0.0 if score is None else score


def validate_confidence(raw: Any, prior: ConfidenceMap | None = None) -> ConfidenceMap:
    """Build a ConfidenceMap covering all twelve fields from a raw payload.

    With a prior map, each field keeps the higher of the old and new score so
    confidence never drops for information that was not re-mentioned.
    ``overall`` is the supplied value when numeric, else the field mean.
    """
    raw = raw if isinstance(raw, dict) else {}
    raw_fields = raw.get("fields")
    if not isinstance(raw_fields, dict):
        raw_fields = {k: v for k, v in raw.items() if _canonical_field(k) is not None}

    scores: dict[str, float] = {}
    for key, value in raw_fields.items():
        name = _canonical_field(key)
        if name is not None:
            scores[name] = _score(value)

    fields = {name: scores.get(name, 0.0) for name in ALL_FIELDS}
    if prior is not None:
        fields = {name: max(prior.fields.get(name, 0.0), score) for name, score in fields.items()}

    overall = _as_score(raw.get("overall"))
    if overall is None:
        overall = sum(fields.values()) / len(fields)

    return ConfidenceMap(overall=overall, fields=fields)


def identify_missing_fields(confidence: ConfidenceMap, threshold: float) -> list[str]:
    return [name for name in ALL_FIELDS if confidence.fields.get(name, 0.0) < threshold]


def check_required_fields(info: ProductInfo, confidence: ConfidenceMap, threshold: float) -> bool:
    """All critical fields must be both confidently extracted and actually present."""
    return all(
        confidence.fields.get(name, 0.0) >= threshold
        and has_meaningful_value(field_value(info, name))
        for name in CRITICAL_FIELDS
    )


def _find_keywords(text: str, keywords: Sequence[str]) -> list[str]:
    lowered = text.lower()
    return [k for k in keywords if re.search(rf"\b{re.escape(k)}\b", lowered)]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class ProductExtractionService:
    """Extract and merge product fields from artisan replies."""

    def __init__(
        self,
        gateway: LanguageModelGateway | None = None,
        *,
        missing_threshold: float | None = None,
        required_threshold: float | None = None,
    ) -> None:
        self.gateway = gateway or get_language_model_gateway()
        self.missing_threshold = (
            settings.missing_field_threshold if missing_threshold is None else missing_threshold
        )
        self.required_threshold = (
            settings.required_field_threshold if required_threshold is None else required_threshold
        )

    async def extract(
        self,
        prior_info: ProductInfo | None,
        utterance: str,
        language: str,
        previous_utterances: Sequence[str] = (),
        prior_confidence: ConfidenceMap | None = None,
    ) -> ExtractionResult:
        """Extract new fields from ``utterance`` and merge them into ``prior_info``.

        Args:
            prior_info: What the conversation knows so far
            utterance: The artisan's latest reply
            language: Conversation language code
            previous_utterances: Earlier replies, used by the keyword fallback
            prior_confidence: Confidence accumulated over earlier turns

        Returns:
            Merged info with confidence, missing fields and the required-fields
            verdict. ``degraded`` is set when the keyword fallback was used.
        """
        prior_info = prior_info or ProductInfo()
        prompt = EXTRACTION_PROMPT.format(
            current_info=json.dumps(prior_info.to_record(), ensure_ascii=False, indent=2),
            utterance=utterance,
            language=language,
        )

        try:
            response_text = await self.gateway.generate(prompt, temperature=0.0)
        except GenerationError as e:
            logger.warning("Extraction fell back to keywords: %s", e)
            return self.keyword_fallback(prior_info, [*previous_utterances, utterance])

        parsed = extract_json_object(response_text)
        if parsed is None:
            logger.warning("No JSON found in extraction response: %.200s", response_text)
            return self.keyword_fallback(prior_info, [*previous_utterances, utterance])

        try:
            raw_info, raw_confidence = split_payload(parsed)
            patch, invalid_fields = validate_product_patch(raw_info)
            merged = merge_product_info(prior_info, patch)
            confidence = validate_confidence(raw_confidence, prior_confidence)
        except Exception:
            logger.exception("Unusable extraction response, falling back to keywords")
            return self.keyword_fallback(prior_info, [*previous_utterances, utterance])

        result = ExtractionResult(
            info=merged,
            confidence=confidence,
            missing_fields=identify_missing_fields(confidence, self.missing_threshold),
            required_complete=check_required_fields(merged, confidence, self.required_threshold),
            invalid_fields=invalid_fields,
        )
        logger.info(
            "Extracted fields=%s overall=%.2f required_complete=%s",
            sorted(patch.model_dump(exclude_none=True, by_alias=True)),
            confidence.overall,
            result.required_complete,
        )
        return result

    def keyword_fallback(
        self, prior_info: ProductInfo, utterances: Sequence[str]
    ) -> ExtractionResult:
        """Best-effort extraction by keyword scan when the model is unusable.

        Only product type, materials and colors can be found this way; the
        result is deliberately never considered complete.
        """
        text = " ".join(utterances)
        product_types = _find_keywords(text, PRODUCT_TYPE_KEYWORDS)
        materials = _find_keywords(text, MATERIAL_KEYWORDS)
        colors = _find_keywords(text, COLOR_KEYWORDS)

        patch = ProductInfo(
            product_type=product_types[0] if product_types else None,
            materials=materials or None,
            colors=colors or None,
        )
        found = settings.fallback_field_confidence
        fields = {name: 0.0 for name in ALL_FIELDS}
        fields["productType"] = found if product_types else 0.0
        fields["materials"] = found if materials else 0.0
        fields["colors"] = found if colors else 0.0

        return ExtractionResult(
            info=merge_product_info(prior_info, patch),
            confidence=ConfidenceMap(
                overall=settings.fallback_overall_confidence,
                fields=fields,
            ),
            missing_fields=list(FALLBACK_MISSING_FIELDS),
            required_complete=False,
            degraded=True,
        )
