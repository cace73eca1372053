"""Completion and quality scores for onboarding conversations."""

from kalakar.core.config import Settings, settings
from kalakar.models.conversation import ConversationStatus
from kalakar.models.turn import TurnType
from kalakar.schemas.conversation import ConversationRecord
from kalakar.schemas.product import ProductInfo
from kalakar.services.field_schema import CRITICAL_FIELDS, IMPORTANT_FIELDS, NICE_TO_HAVE_FIELDS
from kalakar.services.gap_analyzer import analyze_gaps

# Share of the completion score carried by each tier
TIER_WEIGHTS = {"critical": 60, "important": 25, "nice_to_have": 15}


def completion_score(info: ProductInfo) -> int:
    """Weighted share (0-100) of product fields gathered so far."""
    gaps = analyze_gaps(info)
    tiers = (
        ("critical", CRITICAL_FIELDS, gaps.critical),
        ("important", IMPORTANT_FIELDS, gaps.important),
        ("nice_to_have", NICE_TO_HAVE_FIELDS, gaps.nice_to_have),
    )
    score = 0.0
    for tier, fields, missing in tiers:
        score += TIER_WEIGHTS[tier] * (len(fields) - len(missing)) / len(fields)
    return round(score)


def quality_score(record: ConversationRecord, config: Settings = settings) -> int:
    """Score (0-100) how well the conversation went.

    Starts from a base score, penalizes AI turns produced while the model was
    failing, rewards completion and fast responses, and rewards or penalizes
    engagement by turn count.
    """
    score = config.quality_base_score

    ai_turns = [t for t in record.turns if t.type == TurnType.AI_QUESTION]
    degraded = sum(1 for t in ai_turns if t.extra_data.get("degraded"))
    score -= degraded * config.quality_degraded_turn_penalty

    if record.status == ConversationStatus.COMPLETED:
        score += config.quality_completion_bonus

    response_times = [t.processing_time for t in ai_turns if t.processing_time is not None]
    if response_times:
        average = sum(response_times) / len(response_times)
        if average > config.quality_slow_response_ms:
            score -= config.quality_slow_response_penalty
        elif average < config.quality_fast_response_ms:
            score += config.quality_fast_response_bonus

    turn_count = len(record.turns)
    if turn_count > config.quality_long_conversation_turns:
        score += config.quality_engagement_bonus
    elif turn_count < config.quality_short_conversation_turns:
        score -= config.quality_short_conversation_penalty

    return max(0, min(100, round(score)))
