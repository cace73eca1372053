"""Next-question selection: LLM-written when possible, templated otherwise."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from kalakar.core.config import settings
from kalakar.core.exceptions import GenerationError
from kalakar.models.conversation import ConversationStage
from kalakar.schemas.product import ProductInfo
from kalakar.services.field_schema import (
    DEFAULT_QUESTION,
    QUESTION_TEMPLATES,
    STAGE_FIELD_PRIORITY,
    QuestionTemplate,
)
from kalakar.services.gap_analyzer import InformationGaps, analyze_gaps
from kalakar.services.graph.prompts import CONTEXTUAL_QUESTION_PROMPT
from kalakar.services.llm_gateway import LanguageModelGateway, get_language_model_gateway

logger = logging.getLogger(__name__)


@dataclass
class QuestionContext:
    """Everything the selector needs to pick the next question."""

    current_info: ProductInfo
    current_stage: ConversationStage
    target_stage: ConversationStage
    language: str = "en"
    last_user_response: str = ""
    question_history: list[str] = field(default_factory=list)
    gaps: InformationGaps | None = None


def render_template(template: QuestionTemplate, info: ProductInfo) -> str:
    """Substitute known product values into a template's placeholders."""
    product_type = info.product_type or "product"
    materials = ", ".join(info.materials) if info.materials else "materials"
    return template.text.replace("{productType}", product_type).replace("{materials}", materials)


def _leading_clause(text: str) -> str:
    return text.split("?")[0].strip().casefold()


def _was_asked(template: QuestionTemplate, info: ProductInfo, history: Sequence[str]) -> bool:
    """True when the template's leading clause already appears in an asked question."""
    clauses = {_leading_clause(template.text), _leading_clause(render_template(template, info))}
    asked = [question.casefold() for question in history]
    return any(clause and clause in question for clause in clauses for question in asked)


def select_template_question(
    stage: ConversationStage,
    info: ProductInfo,
    question_history: Sequence[str] = (),
    gaps: InformationGaps | None = None,
) -> str:
    """Pick a templated question for ``stage`` without repeating earlier ones.

    Preference order: a template aimed at the stage's highest-priority missing
    field, then one aimed at any missing field, then the first unused one.
    When every template has been used the first is reused.
    """
    templates = QUESTION_TEMPLATES.get(stage, ())
    if not templates:
        return DEFAULT_QUESTION

    available = [t for t in templates if not _was_asked(t, info, question_history)]
    if not available:
        return render_template(templates[0], info)

    gaps = gaps or analyze_gaps(info)
    missing = gaps.all_missing()

    for priority_field in STAGE_FIELD_PRIORITY.get(stage, ()):
        if priority_field not in missing:
            continue
        for template in available:
            if priority_field in template.targets:
                return render_template(template, info)

    for missing_field in missing:
        for template in available:
            if missing_field in template.targets:
                return render_template(template, info)

    return render_template(available[0], info)


def _describe(values: list[str] | None, empty: str) -> str:
    return ", ".join(values) if values else empty


class QuestionSelector:
    """Choose the next question to ask the artisan.

    Tries a contextual question from the language model first and falls back
    to the deterministic templates on any generation failure. Never raises.
    """

    def __init__(
        self,
        gateway: LanguageModelGateway | None = None,
        *,
        use_contextual: bool | None = None,
    ) -> None:
        self.gateway = gateway or get_language_model_gateway()
        self.use_contextual = (
            settings.use_contextual_questions if use_contextual is None else use_contextual
        )

    async def select_question(self, context: QuestionContext) -> str:
        """Return a non-empty question for ``context.target_stage``."""
        gaps = context.gaps or analyze_gaps(context.current_info)

        if self.use_contextual and context.last_user_response:
            try:
                question = await self.generate_contextual_question(context, gaps)
            except GenerationError as e:
                logger.warning("Contextual question failed, using template: %s", e)
            else:
                if question:
                    return question

        return select_template_question(
            context.target_stage,
            context.current_info,
            context.question_history,
            gaps,
        )

    async def generate_contextual_question(
        self, context: QuestionContext, gaps: InformationGaps
    ) -> str:
        """Ask the language model for a follow-up question.

        Raises:
            GenerationError: the gateway failed
        """
        info = context.current_info
        prompt = CONTEXTUAL_QUESTION_PROMPT.format(
            product_type=info.product_type or "unknown",
            materials=_describe(info.materials, "none"),
            colors=_describe(info.colors, "none"),
            crafting_process=info.crafting_process or "not described",
            cultural_significance=info.cultural_significance or "not mentioned",
            pricing="provided" if info.pricing else "not provided",
            last_user_response=context.last_user_response,
            current_stage=context.current_stage.value,
            target_stage=context.target_stage.value,
            language=context.language,
            critical_gaps=", ".join(gaps.critical) or "none",
            important_gaps=", ".join(gaps.important) or "none",
            question_history="; ".join(context.question_history) or "none",
        )
        question = await self.gateway.generate(prompt, temperature=0.7)
        return question.strip().strip('"').strip()
