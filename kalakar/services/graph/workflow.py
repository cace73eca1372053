"""LangGraph workflow definition for the onboarding conversation."""

import logging
from typing import Any

from langgraph.graph import END, StateGraph

from kalakar.services.extraction_service import ProductExtractionService
from kalakar.services.graph.nodes import (
    analyze_gaps_node,
    extract_node,
    question_node,
    summarize_node,
    transition_node,
)
from kalakar.services.graph.router import route_after_transition
from kalakar.services.graph.state import OnboardingState
from kalakar.services.question_service import QuestionSelector
from kalakar.services.summary_service import SummaryService

logger = logging.getLogger(__name__)


def create_onboarding_graph(
    extraction_service: ProductExtractionService,
    question_selector: QuestionSelector,
    summary_service: SummaryService,
) -> Any:
    """Build and compile the onboarding workflow.

    extract -> analyze_gaps -> transition -> (ask | summarize) -> END

    Args:
        extraction_service: Extracts and merges product fields from the reply
        question_selector: Picks the next question when the conversation continues
        summary_service: Writes the closing summary when it ends

    Returns:
        Compiled LangGraph workflow
    """

    # Create node functions with bound services
    async def _extract_node(state: OnboardingState) -> dict[str, Any]:
        return await extract_node(state, extraction_service=extraction_service)

    async def _question_node(state: OnboardingState) -> dict[str, Any]:
        return await question_node(state, question_selector=question_selector)

    async def _summarize_node(state: OnboardingState) -> dict[str, Any]:
        return await summarize_node(state, summary_service=summary_service)

    graph = StateGraph(OnboardingState)

    graph.add_node("extract", _extract_node)
    graph.add_node("analyze_gaps", analyze_gaps_node)
    graph.add_node("transition", transition_node)
    graph.add_node("ask", _question_node)
    graph.add_node("summarize", _summarize_node)

    graph.set_entry_point("extract")
    graph.add_edge("extract", "analyze_gaps")
    graph.add_edge("analyze_gaps", "transition")

    graph.add_conditional_edges(
        "transition",
        route_after_transition,
        {
            "ask": "ask",
            "summarize": "summarize",
        },
    )

    graph.add_edge("ask", END)
    graph.add_edge("summarize", END)

    return graph.compile()
