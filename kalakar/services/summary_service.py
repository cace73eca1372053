"""Conversation summary generation."""

import json
import logging

from kalakar.core.exceptions import GenerationError
from kalakar.schemas.product import ProductInfo
from kalakar.services.graph.prompts import SUMMARY_PROMPT
from kalakar.services.llm_gateway import LanguageModelGateway, get_language_model_gateway

logger = logging.getLogger(__name__)


def fallback_summary(info: ProductInfo) -> str:
    """Deterministic summary used when the language model is unavailable."""
    product = info.product_type or "product"
    details = []
    if info.materials:
        details.append(f"made from {', '.join(info.materials)}")
    if info.colors:
        details.append(f"in {', '.join(info.colors)}")
    detail_text = f" {' '.join(details)}" if details else ""
    return (
        f"Thank you for sharing the details about your beautiful {product}{detail_text}. "
        "I've gathered information about the materials, crafting process, and unique "
        "features that make this special."
    )


class SummaryService:
    """Write a short, warm summary of what was learned about the product."""

    def __init__(self, gateway: LanguageModelGateway | None = None) -> None:
        self.gateway = gateway or get_language_model_gateway()

    async def generate_summary(self, info: ProductInfo, language: str) -> str:
        prompt = SUMMARY_PROMPT.format(
            product_info=json.dumps(info.to_record(), ensure_ascii=False, indent=2),
            language=language,
        )
        try:
            return await self.gateway.generate(prompt, temperature=0.7)
        except GenerationError as e:
            logger.warning("Summary generation failed, using fallback: %s", e)
            return fallback_summary(info)
