"""Conversation service orchestrating the onboarding workflow."""

import logging
import time
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from kalakar.core.exceptions import InvalidInputError, NotFoundError
from kalakar.core.logging_config import bind_conversation
from kalakar.models.conversation import ConversationStage, ConversationStatus
from kalakar.models.turn import TurnType
from kalakar.schemas.conversation import (
    ConversationListItem,
    ConversationRecord,
    NewTurn,
    StartConversationResponse,
    SubmitResponseResponse,
    SummaryResponse,
)
from kalakar.services.conversation_cache import ConversationCache
from kalakar.services.conversation_store import ConversationStore
from kalakar.services.extraction_service import ProductExtractionService
from kalakar.services.field_schema import DEFAULT_QUESTION
from kalakar.services.graph.state import OnboardingState
from kalakar.services.graph.workflow import create_onboarding_graph
from kalakar.services.llm_gateway import LanguageModelGateway, get_language_model_gateway
from kalakar.services.question_service import QuestionSelector, select_template_question
from kalakar.services.scoring import completion_score, quality_score
from kalakar.services.stage_engine import INITIAL_STAGE, TERMINAL_STAGE
from kalakar.services.summary_service import SummaryService

logger = logging.getLogger(__name__)


class ConversationService:
    """The onboarding conversation operations exposed by the API."""

    def __init__(
        self,
        db: AsyncSession,
        cache: ConversationCache | None = None,
        gateway: LanguageModelGateway | None = None,
    ) -> None:
        self.db = db
        self.store = ConversationStore(db, cache=cache)
        gateway = gateway or get_language_model_gateway()
        self.extraction_service = ProductExtractionService(gateway)
        self.question_selector = QuestionSelector(gateway)
        self.summary_service = SummaryService(gateway)

    async def _require(self, conversation_id: UUID | str) -> ConversationRecord:
        record = await self.store.get(conversation_id)
        if record is None:
            raise NotFoundError(conversation_id)
        return record

    async def start_conversation(self, user_id: str, language: str) -> StartConversationResponse:
        """Open a conversation and ask the opening question."""
        record = await self.store.create(user_id, language)
        bind_conversation(record.id)
        question = select_template_question(INITIAL_STAGE, record.extracted_info)

        await self.store.append_turn(
            record.id,
            NewTurn(
                type=TurnType.AI_QUESTION,
                content=question,
                language=record.language,
                extra_data={"stage": INITIAL_STAGE.value, "degraded": False},
            ),
        )
        return StartConversationResponse(
            conversation_id=record.id,
            question=question,
            stage=INITIAL_STAGE,
        )

    async def submit_response(
        self,
        conversation_id: UUID | str,
        utterance: str,
        *,
        audio_url: str | None = None,
        confidence: float | None = None,
        processing_time: int | None = None,
    ) -> SubmitResponseResponse:
        """Process one artisan reply and produce the next question.

        This is the main loop step. It:
        1. Records the reply as a user turn
        2. Runs the workflow (extract -> gaps -> transition -> ask | summarize)
        3. Persists the merged product record, confidence and stage
        4. Records the next question (or the summary) as an AI turn
        5. Completes the conversation once it reaches SUMMARY

        Args:
            conversation_id: Conversation to advance
            utterance: The reply, typed or transcribed upstream
            audio_url: Where the original recording lives, if spoken
            confidence: Transcription confidence, if spoken
            processing_time: Transcription time in milliseconds, if spoken

        Raises:
            InvalidInputError: empty reply, or the conversation is no longer in progress
            NotFoundError: unknown conversation
            ConflictError: another request changed the conversation meanwhile
        """
        utterance = (utterance or "").strip()
        if not utterance:
            raise InvalidInputError("Utterance must not be empty")

        record = await self._require(conversation_id)
        bind_conversation(record.id)
        if record.status != ConversationStatus.IN_PROGRESS:
            raise InvalidInputError(f"Conversation {record.id} is {record.status.value}")

        await self.store.append_turn(
            record.id,
            NewTurn(
                type=TurnType.USER_RESPONSE,
                content=utterance,
                language=record.language,
                audio_url=audio_url,
                confidence=confidence,
                processing_time=processing_time,
                extra_data={"stage": record.conversation_stage.value},
            ),
            expected_version=record.version,
        )

        graph = create_onboarding_graph(
            self.extraction_service,
            self.question_selector,
            self.summary_service,
        )
        initial_state: OnboardingState = {
            "conversation_id": str(record.id),
            "language": record.language,
            "current_stage": record.conversation_stage,
            "utterance": utterance,
            "previous_utterances": record.user_utterances(),
            "question_history": record.asked_questions(),
            "info": record.extracted_info,
            "confidence": record.confidence,
            "missing_fields": [],
            "required_complete": False,
            "degraded": False,
            "gaps": None,
            "next_stage": record.conversation_stage,
            "next_question": "",
            "summary": None,
        }

        started = time.perf_counter()
        final_state = await graph.ainvoke(initial_state)
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        info = final_state["info"]
        stage: ConversationStage = final_state["next_stage"]
        next_question = final_state.get("next_question") or DEFAULT_QUESTION
        degraded = bool(final_state.get("degraded"))

        # Appending the reply bumped the version once; anything more means another
        # request wrote to this conversation while the model was working
        await self.store.update_extracted_info(
            record.id, info, final_state["confidence"], expected_version=record.version + 1
        )
        await self.store.update_stage(record.id, stage)
        await self.store.append_turn(
            record.id,
            NewTurn(
                type=TurnType.AI_QUESTION,
                content=next_question,
                language=record.language,
                processing_time=elapsed_ms,
                extra_data={"stage": stage.value, "degraded": degraded},
            ),
        )

        is_complete = stage == TERMINAL_STAGE
        if is_complete:
            await self.store.complete(record.id, final_state.get("summary") or next_question, info)

        logger.info(
            "Processed reply: conversation=%s stage=%s complete=%s degraded=%s elapsed_ms=%d",
            record.id,
            stage.value,
            is_complete,
            degraded,
            elapsed_ms,
        )
        return SubmitResponseResponse(
            next_question=next_question,
            updated_info=info,
            confidence=final_state["confidence"],
            stage=stage,
            is_complete=is_complete,
        )

    async def get_summary(self, conversation_id: UUID | str) -> SummaryResponse:
        """Summary plus completion and quality scores; generated on demand if needed."""
        record = await self._require(conversation_id)
        summary = record.summary or await self.summary_service.generate_summary(
            record.extracted_info, record.language
        )
        return SummaryResponse(
            summary=summary,
            info=record.extracted_info,
            completion_score=completion_score(record.extracted_info),
            quality_score=quality_score(record),
        )

    async def complete_conversation(self, conversation_id: UUID | str) -> None:
        """Finish the conversation early, keeping whatever was gathered."""
        record = await self._require(conversation_id)
        if record.status == ConversationStatus.COMPLETED:
            return
        summary = record.summary or await self.summary_service.generate_summary(
            record.extracted_info, record.language
        )
        await self.store.complete(record.id, summary, record.extracted_info)

    async def get_conversation(self, conversation_id: UUID | str) -> ConversationRecord:
        return await self._require(conversation_id)

    async def list_conversations(self, user_id: str, limit: int = 10) -> list[ConversationListItem]:
        return await self.store.list_for_user(user_id, limit=limit)

    async def abandon_conversation(self, conversation_id: UUID | str) -> None:
        await self.store.abandon(conversation_id)
