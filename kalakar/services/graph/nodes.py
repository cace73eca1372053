"""LangGraph node functions for the onboarding workflow."""

import logging
from typing import Any

from kalakar.services.extraction_service import ProductExtractionService, validate_confidence
from kalakar.services.gap_analyzer import analyze_gaps
from kalakar.services.graph.state import OnboardingState
from kalakar.services.question_service import QuestionContext, QuestionSelector
from kalakar.services.stage_engine import next_stage
from kalakar.services.summary_service import SummaryService

logger = logging.getLogger(__name__)


async def extract_node(
    state: OnboardingState,
    extraction_service: ProductExtractionService,
) -> dict[str, Any]:
    """Merge whatever the latest reply adds into the product record."""
    result = await extraction_service.extract(
        state["info"],
        state["utterance"],
        state["language"],
        previous_utterances=state.get("previous_utterances", []),
        prior_confidence=state.get("confidence"),
    )

    confidence = result.confidence
    if result.degraded and state.get("confidence") is not None:
        # Keep what earlier turns established; only overall reflects the fallback
        confidence = validate_confidence(
            confidence.model_dump(by_alias=True), state["confidence"]
        )

    return {
        "info": result.info,
        "confidence": confidence,
        "missing_fields": result.missing_fields,
        "required_complete": result.required_complete,
        "degraded": result.degraded,
    }


async def analyze_gaps_node(state: OnboardingState) -> dict[str, Any]:
    """Recompute missing fields per tier from the merged record."""
    return {"gaps": analyze_gaps(state["info"])}


async def transition_node(state: OnboardingState) -> dict[str, Any]:
    """Pick the stage the conversation moves to."""
    gaps = state.get("gaps") or analyze_gaps(state["info"])
    stage = next_stage(state["current_stage"], gaps, state["info"])
    logger.info(
        "Stage transition: conversation=%s %s -> %s critical_gaps=%s",
        state.get("conversation_id"),
        state["current_stage"].value,
        stage.value,
        gaps.critical,
    )
    return {"next_stage": stage}


async def question_node(
    state: OnboardingState,
    question_selector: QuestionSelector,
) -> dict[str, Any]:
    """Choose the next question for the target stage."""
    context = QuestionContext(
        current_info=state["info"],
        current_stage=state["current_stage"],
        target_stage=state["next_stage"],
        language=state["language"],
        last_user_response=state["utterance"],
        question_history=list(state.get("question_history", [])),
        gaps=state.get("gaps"),
    )
    question = await question_selector.select_question(context)
    return {"next_question": question}


async def summarize_node(
    state: OnboardingState,
    summary_service: SummaryService,
) -> dict[str, Any]:
    """Write the closing summary; it is also the final AI turn."""
    summary = await summary_service.generate_summary(state["info"], state["language"])
    return {"summary": summary, "next_question": summary}
