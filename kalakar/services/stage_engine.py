"""Finite state machine deciding the next onboarding stage."""

from typing import Any

from kalakar.models.conversation import ConversationStage
from kalakar.schemas.product import ProductInfo
from kalakar.services.gap_analyzer import InformationGaps, is_missing

INITIAL_STAGE = ConversationStage.INTRODUCTION
TERMINAL_STAGE = ConversationStage.SUMMARY

# Unconditional transitions once no critical field is missing
_LINEAR_TRANSITIONS: dict[ConversationStage, ConversationStage] = {
    ConversationStage.INTRODUCTION: ConversationStage.BASIC_INFO,
    ConversationStage.MATERIALS_CRAFTING: ConversationStage.CULTURAL_SIGNIFICANCE,
    ConversationStage.PRICING_MARKET: ConversationStage.FINAL_DETAILS,
    ConversationStage.FINAL_DETAILS: ConversationStage.SUMMARY,
}


def next_stage(
    current_stage: ConversationStage,
    gaps: InformationGaps,
    info: ProductInfo | dict[str, Any],
) -> ConversationStage:
    """Decide where the conversation goes after the latest reply.

    Missing critical fields pin the conversation to BASIC_INFO from any stage,
    SUMMARY included. Otherwise SUMMARY stays put and stages advance in order,
    skipping MATERIALS_CRAFTING and PRICING_MARKET when what they would ask
    about is already known.
    """
    if gaps.critical:
        return ConversationStage.BASIC_INFO

    if current_stage == TERMINAL_STAGE:
        return TERMINAL_STAGE

    if current_stage == ConversationStage.BASIC_INFO:
        if "timeToMake" in gaps.important or is_missing(info, "craftingProcess"):
            return ConversationStage.MATERIALS_CRAFTING
        return ConversationStage.CULTURAL_SIGNIFICANCE

    if current_stage == ConversationStage.CULTURAL_SIGNIFICANCE:
        if is_missing(info, "pricing"):
            return ConversationStage.PRICING_MARKET
        return ConversationStage.FINAL_DETAILS

    return _LINEAR_TRANSITIONS.get(current_stage, TERMINAL_STAGE)
