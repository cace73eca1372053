"""LangGraph conditional routing logic."""

from kalakar.models.conversation import ConversationStage
from kalakar.services.graph.state import OnboardingState


def route_after_transition(state: OnboardingState) -> str:
    """Summarize once the stage machine reaches SUMMARY, otherwise ask the next question.

    Returns:
        The name of the next node to execute.
    """
    if state.get("next_stage") == ConversationStage.SUMMARY:
        return "summarize"
    return "ask"
