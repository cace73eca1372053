"""LangGraph onboarding state definition."""

from typing_extensions import TypedDict

from kalakar.models.conversation import ConversationStage
from kalakar.schemas.product import ConfidenceMap, ProductInfo
from kalakar.services.gap_analyzer import InformationGaps


class OnboardingState(TypedDict):
    """State that flows through one pass of the onboarding workflow.

    Attributes:
        conversation_id: Conversation being advanced (for logging)
        language: Conversation language code
        current_stage: Stage the conversation was in when the reply arrived
        utterance: The artisan's latest reply
        previous_utterances: Earlier replies, oldest first
        question_history: Questions already asked, oldest first
        info: Product record, merged with the latest extraction after ``extract``
        confidence: Confidence map, updated by ``extract``
        missing_fields: Fields still below the missing-confidence threshold
        required_complete: Whether every critical field is confidently known
        degraded: Whether any step fell back because the model failed
        gaps: Missing fields per tier, set by ``analyze_gaps``
        next_stage: Stage chosen by ``transition``
        next_question: Text of the next AI turn (a question, or the summary)
        summary: Conversation summary, set only when the workflow summarizes
    """

    conversation_id: str
    language: str
    current_stage: ConversationStage
    utterance: str
    previous_utterances: list[str]
    question_history: list[str]
    info: ProductInfo
    confidence: ConfidenceMap
    missing_fields: list[str]
    required_complete: bool
    degraded: bool
    gaps: InformationGaps | None
    next_stage: ConversationStage
    next_question: str
    summary: str | None
