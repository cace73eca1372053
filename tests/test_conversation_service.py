"""Tests for the onboarding conversation service."""

from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from conftest import EXTRACTION_MARKER, extraction_json
from kalakar.core.exceptions import ConflictError, InvalidInputError, NotFoundError
from kalakar.models.conversation import ConversationStage, ConversationStatus
from kalakar.models.turn import TurnType
from kalakar.schemas.conversation import NewTurn
from kalakar.schemas.product import ProductInfo
from kalakar.services.conversation_service import ConversationService
from kalakar.services.field_schema import QUESTION_TEMPLATES
from kalakar.services.summary_service import fallback_summary

VASE_REPLY = "I made a ceramic vase with blue and white clay"
VASE_EXTRACTION = extraction_json(
    {"productType": "ceramic vase", "colors": ["blue", "white"], "materials": ["clay"]},
    overall=0.8,
)
CRITICAL_INFO = {
    "productType": "ceramic vase",
    "materials": ["clay"],
    "colors": ["blue", "white"],
    "craftingProcess": "wheel thrown and kiln fired",
}
CRITICAL_CONFIDENCE = {
    "overall": 0.6,
    "fields": {name: 0.9 for name in CRITICAL_INFO},
}


class TestStartConversation:
    """Tests for start_conversation."""

    @pytest.mark.asyncio
    async def test_asks_opening_question(
        self,
        service_factory: Callable[..., ConversationService],
        failing_gateway: MagicMock,
    ) -> None:
        service = service_factory(failing_gateway)

        response = await service.start_conversation("u1", "en")

        assert response.stage == ConversationStage.INTRODUCTION
        opening = QUESTION_TEMPLATES[ConversationStage.INTRODUCTION][0].text
        assert response.question == opening

        record = await service.get_conversation(response.conversation_id)
        assert [t.type for t in record.turns] == [TurnType.AI_QUESTION]
        assert record.turns[0].content == opening
        failing_gateway.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_requires_user_id(
        self,
        service_factory: Callable[..., ConversationService],
        failing_gateway: MagicMock,
    ) -> None:
        with pytest.raises(InvalidInputError):
            await service_factory(failing_gateway).start_conversation("", "en")


class TestSubmitResponse:
    """Tests for submit_response."""

    @pytest.mark.asyncio
    async def test_happy_path(
        self,
        service_factory: Callable[..., ConversationService],
        make_gateway: Callable[..., MagicMock],
    ) -> None:
        service = service_factory(make_gateway(extraction=VASE_EXTRACTION))
        started = await service.start_conversation("u1", "en")

        response = await service.submit_response(started.conversation_id, VASE_REPLY)

        assert response.updated_info.product_type == "ceramic vase"
        assert response.updated_info.colors == ["blue", "white"]
        assert response.updated_info.materials == ["clay"]
        assert response.stage == ConversationStage.BASIC_INFO
        assert response.is_complete is False
        assert response.next_question == (
            "How big is your ceramic vase? Can you describe its size or dimensions?"
        )

        record = await service.get_conversation(started.conversation_id)
        assert record.conversation_stage == ConversationStage.BASIC_INFO
        assert record.extracted_info == response.updated_info
        assert record.confidence.overall == 0.8
        assert [t.type for t in record.turns] == [
            TurnType.AI_QUESTION,
            TurnType.USER_RESPONSE,
            TurnType.AI_QUESTION,
        ]
        assert [t.position for t in record.turns] == [0, 1, 2]
        ai_turn = record.turns[-1]
        assert ai_turn.extra_data == {"stage": "basic_info", "degraded": False}
        assert ai_turn.processing_time is not None

    @pytest.mark.asyncio
    async def test_uses_contextual_question(
        self,
        service_factory: Callable[..., ConversationService],
        make_gateway: Callable[..., MagicMock],
    ) -> None:
        gateway = make_gateway(
            extraction=VASE_EXTRACTION,
            question="How do you shape the neck of the vase?",
        )
        service = service_factory(gateway)
        started = await service.start_conversation("u1", "en")

        response = await service.submit_response(started.conversation_id, VASE_REPLY)

        assert response.next_question == "How do you shape the neck of the vase?"

    @pytest.mark.asyncio
    async def test_degrades_when_model_fails(
        self,
        service_factory: Callable[..., ConversationService],
        failing_gateway: MagicMock,
    ) -> None:
        service = service_factory(failing_gateway)
        started = await service.start_conversation("u1", "en")

        response = await service.submit_response(
            started.conversation_id, "I made a red clay pot"
        )

        assert response.updated_info.product_type is None
        assert response.updated_info.colors == ["red"]
        assert response.updated_info.materials == ["clay"]
        assert response.confidence.overall == 0.2
        assert response.stage == ConversationStage.BASIC_INFO
        assert response.next_question

        record = await service.get_conversation(started.conversation_id)
        assert record.turns[-1].extra_data["degraded"] is True

    @pytest.mark.asyncio
    async def test_degraded_turn_keeps_earlier_confidence(
        self,
        service_factory: Callable[..., ConversationService],
        make_gateway: Callable[..., MagicMock],
    ) -> None:
        service = service_factory(make_gateway(extraction=[VASE_EXTRACTION]))
        started = await service.start_conversation("u1", "en")
        await service.submit_response(started.conversation_id, VASE_REPLY)

        response = await service.submit_response(started.conversation_id, "it is glazed")

        assert response.confidence.fields["productType"] == 0.9
        assert response.confidence.overall == 0.2
        assert response.updated_info.product_type == "ceramic vase"

    @pytest.mark.asyncio
    async def test_records_speech_metadata(
        self,
        service_factory: Callable[..., ConversationService],
        failing_gateway: MagicMock,
    ) -> None:
        service = service_factory(failing_gateway)
        started = await service.start_conversation("u1", "en")

        await service.submit_response(
            started.conversation_id,
            "I made a red clay pot",
            audio_url="https://cdn.example.com/reply.webm",
            confidence=0.87,
            processing_time=900,
        )

        record = await service.get_conversation(started.conversation_id)
        user_turn = record.turns[1]
        assert user_turn.audio_url == "https://cdn.example.com/reply.webm"
        assert user_turn.confidence == 0.87
        assert user_turn.processing_time == 900
        assert user_turn.extra_data == {"stage": "introduction"}

    @pytest.mark.asyncio
    async def test_completes_at_summary(
        self,
        service_factory: Callable[..., ConversationService],
        make_gateway: Callable[..., MagicMock],
        conversation_factory: Callable[..., Any],
    ) -> None:
        conversation = await conversation_factory(
            stage=ConversationStage.FINAL_DETAILS,
            extracted_info=CRITICAL_INFO,
            confidence=CRITICAL_CONFIDENCE,
        )
        gateway = make_gateway(
            extraction=extraction_json({"careInstructions": "wipe with a dry cloth"})
        )
        service = service_factory(gateway)

        response = await service.submit_response(conversation.id, "Just wipe it with a dry cloth")

        assert response.stage == ConversationStage.SUMMARY
        assert response.is_complete is True
        expected_summary = fallback_summary(response.updated_info)
        assert response.next_question == expected_summary

        record = await service.get_conversation(conversation.id)
        assert record.status == ConversationStatus.COMPLETED
        assert record.summary == expected_summary
        assert record.completed_at is not None
        assert record.turns[-1].content == expected_summary
        assert record.extracted_info.care_instructions == "wipe with a dry cloth"

    @pytest.mark.asyncio
    async def test_critical_gap_returns_to_basic_info(
        self,
        service_factory: Callable[..., ConversationService],
        failing_gateway: MagicMock,
        conversation_factory: Callable[..., Any],
    ) -> None:
        conversation = await conversation_factory(
            stage=ConversationStage.PRICING_MARKET,
            extracted_info={"productType": "ceramic vase", "materials": ["clay"]},
        )
        service = service_factory(failing_gateway)

        response = await service.submit_response(conversation.id, "About five hundred rupees")

        assert response.stage == ConversationStage.BASIC_INFO
        assert response.is_complete is False

    @pytest.mark.asyncio
    async def test_reply_landing_during_extraction_conflicts(
        self,
        service_factory: Callable[..., ConversationService],
        make_gateway: Callable[..., MagicMock],
    ) -> None:
        gateway = make_gateway(extraction=VASE_EXTRACTION)
        service = service_factory(gateway)
        started = await service.start_conversation("u1", "en")
        scripted = gateway.generate.side_effect

        async def _generate(prompt: str, *args: Any, **kwargs: Any) -> str:
            if EXTRACTION_MARKER in prompt:
                # A second submit commits while this one waits on the model
                await service.store.append_turn(
                    started.conversation_id,
                    NewTurn(type=TurnType.USER_RESPONSE, content="It is blue", language="en"),
                )
            return await scripted(prompt, *args, **kwargs)

        gateway.generate.side_effect = _generate

        with pytest.raises(ConflictError):
            await service.submit_response(started.conversation_id, VASE_REPLY)

        record = await service.get_conversation(started.conversation_id)
        assert record.extracted_info == ProductInfo()
        assert record.conversation_stage == ConversationStage.INTRODUCTION

    @pytest.mark.asyncio
    async def test_empty_utterance_is_rejected(
        self,
        service_factory: Callable[..., ConversationService],
        failing_gateway: MagicMock,
    ) -> None:
        service = service_factory(failing_gateway)
        started = await service.start_conversation("u1", "en")

        with pytest.raises(InvalidInputError):
            await service.submit_response(started.conversation_id, "   ")

    @pytest.mark.asyncio
    async def test_unknown_conversation(
        self,
        service_factory: Callable[..., ConversationService],
        failing_gateway: MagicMock,
    ) -> None:
        with pytest.raises(NotFoundError):
            await service_factory(failing_gateway).submit_response(uuid4(), "hello")

    @pytest.mark.asyncio
    async def test_finished_conversation_is_rejected(
        self,
        service_factory: Callable[..., ConversationService],
        failing_gateway: MagicMock,
        conversation_factory: Callable[..., Any],
    ) -> None:
        conversation = await conversation_factory(status=ConversationStatus.COMPLETED)

        with pytest.raises(InvalidInputError):
            await service_factory(failing_gateway).submit_response(conversation.id, "hello")


class TestSummaryAndCompletion:
    """Tests for get_summary, complete_conversation and abandonment."""

    @pytest.mark.asyncio
    async def test_summary_of_in_progress_conversation(
        self,
        service_factory: Callable[..., ConversationService],
        make_gateway: Callable[..., MagicMock],
        conversation_factory: Callable[..., Any],
    ) -> None:
        conversation = await conversation_factory(extracted_info=CRITICAL_INFO)
        service = service_factory(make_gateway(summary="A beautiful blue vase."))

        summary = await service.get_summary(conversation.id)

        assert summary.summary == "A beautiful blue vase."
        assert summary.info.product_type == "ceramic vase"
        assert summary.completion_score == 60
        assert 0 <= summary.quality_score <= 100

    @pytest.mark.asyncio
    async def test_summary_uses_stored_summary(
        self,
        service_factory: Callable[..., ConversationService],
        failing_gateway: MagicMock,
        conversation_factory: Callable[..., Any],
    ) -> None:
        conversation = await conversation_factory(
            status=ConversationStatus.COMPLETED, summary="Stored summary."
        )

        summary = await service_factory(failing_gateway).get_summary(conversation.id)

        assert summary.summary == "Stored summary."
        failing_gateway.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_summary_of_unknown_conversation(
        self,
        service_factory: Callable[..., ConversationService],
        failing_gateway: MagicMock,
    ) -> None:
        with pytest.raises(NotFoundError):
            await service_factory(failing_gateway).get_summary("does-not-exist")

    @pytest.mark.asyncio
    async def test_complete_conversation(
        self,
        service_factory: Callable[..., ConversationService],
        failing_gateway: MagicMock,
        conversation_factory: Callable[..., Any],
    ) -> None:
        conversation = await conversation_factory(extracted_info=CRITICAL_INFO)
        service = service_factory(failing_gateway)

        await service.complete_conversation(conversation.id)

        record = await service.get_conversation(conversation.id)
        assert record.status == ConversationStatus.COMPLETED
        assert record.summary == fallback_summary(ProductInfo.model_validate(CRITICAL_INFO))

    @pytest.mark.asyncio
    async def test_complete_is_idempotent(
        self,
        service_factory: Callable[..., ConversationService],
        failing_gateway: MagicMock,
        conversation_factory: Callable[..., Any],
    ) -> None:
        conversation = await conversation_factory(
            status=ConversationStatus.COMPLETED, summary="Already done."
        )
        service = service_factory(failing_gateway)

        await service.complete_conversation(conversation.id)

        record = await service.get_conversation(conversation.id)
        assert record.summary == "Already done."

    @pytest.mark.asyncio
    async def test_abandon_and_list(
        self,
        service_factory: Callable[..., ConversationService],
        failing_gateway: MagicMock,
    ) -> None:
        service = service_factory(failing_gateway)
        first = await service.start_conversation("u1", "en")
        second = await service.start_conversation("u1", "en")

        await service.abandon_conversation(first.conversation_id)

        items = await service.list_conversations("u1")
        statuses = {item.id: item.status for item in items}
        assert statuses == {
            first.conversation_id: ConversationStatus.ABANDONED,
            second.conversation_id: ConversationStatus.IN_PROGRESS,
        }

        with pytest.raises(InvalidInputError):
            await service.submit_response(first.conversation_id, "hello")
