"""Tests for the language-model gateway."""

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from kalakar.core.exceptions import GenerationError
from kalakar.models.turn import TurnType
from kalakar.schemas.conversation import TurnRecord
from kalakar.services.llm_gateway import LanguageModelGateway

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def _mock_llm(response: Any = None, side_effect: Any = None) -> MagicMock:
    llm = MagicMock()
    llm.ainvoke = AsyncMock(return_value=response, side_effect=side_effect)
    return llm


def _turn(turn_type: TurnType, content: str, position: int) -> TurnRecord:
    return TurnRecord(
        id=uuid4(),
        position=position,
        type=turn_type,
        content=content,
        language="en",
        timestamp="2026-10-18T10:00:00Z",
    )


class TestGenerate:
    """Tests for LanguageModelGateway.generate."""

    @pytest.mark.asyncio
    async def test_returns_stripped_text(self) -> None:
        gateway = LanguageModelGateway(timeout=1)
        llm = _mock_llm(AIMessage(content="  What did you make?  "))

        with patch.object(gateway, "_get_llm", return_value=llm):
            text = await gateway.generate("Ask a question")

        assert text == "What did you make?"
        messages = llm.ainvoke.await_args.args[0]
        assert isinstance(messages[0], SystemMessage)
        assert isinstance(messages[-1], HumanMessage)
        assert messages[-1].content == "Ask a question"

    @pytest.mark.asyncio
    async def test_history_becomes_chat_messages(self) -> None:
        gateway = LanguageModelGateway(timeout=1)
        llm = _mock_llm(AIMessage(content="ok"))
        history = [
            _turn(TurnType.AI_QUESTION, "What have you made?", 0),
            _turn(TurnType.USER_RESPONSE, "A clay pot", 1),
        ]

        with patch.object(gateway, "_get_llm", return_value=llm):
            await gateway.generate("Next?", history=history)

        messages = llm.ainvoke.await_args.args[0]
        assert [type(m) for m in messages] == [SystemMessage, AIMessage, HumanMessage, HumanMessage]
        assert messages[2].content == "A clay pot"

    @pytest.mark.asyncio
    async def test_image_is_sent_as_data_url(self) -> None:
        gateway = LanguageModelGateway(timeout=1)
        llm = _mock_llm(AIMessage(content="A blue vase"))

        with patch.object(gateway, "_get_llm", return_value=llm):
            await gateway.generate("Describe this product", image=PNG_BYTES)

        content = llm.ainvoke.await_args.args[0][-1].content
        assert content[0] == {"type": "text", "text": "Describe this product"}
        assert content[1]["image_url"]["url"].startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_list_content_is_flattened(self) -> None:
        gateway = LanguageModelGateway(timeout=1)
        llm = _mock_llm(AIMessage(content=[{"type": "text", "text": "Hello"}, " there"]))

        with patch.object(gateway, "_get_llm", return_value=llm):
            assert await gateway.generate("Hi") == "Hello there"

    @pytest.mark.asyncio
    async def test_timeout_raises_generation_error(self) -> None:
        gateway = LanguageModelGateway(timeout=0.01)

        async def _slow(*_args: Any, **_kwargs: Any) -> AIMessage:
            await asyncio.sleep(1)
            return AIMessage(content="too late")

        llm = MagicMock()
        llm.ainvoke = _slow

        with patch.object(gateway, "_get_llm", return_value=llm):
            with pytest.raises(GenerationError, match="timed out"):
                await gateway.generate("Hi")

    @pytest.mark.asyncio
    async def test_provider_error_raises_generation_error(self) -> None:
        gateway = LanguageModelGateway(timeout=1)
        llm = _mock_llm(side_effect=RuntimeError("quota exceeded"))

        with patch.object(gateway, "_get_llm", return_value=llm):
            with pytest.raises(GenerationError, match="quota exceeded"):
                await gateway.generate("Hi")

    @pytest.mark.asyncio
    async def test_client_construction_error_raises_generation_error(self) -> None:
        gateway = LanguageModelGateway(timeout=1)

        with patch.object(gateway, "_get_llm", side_effect=ValueError("missing api key")):
            with pytest.raises(GenerationError):
                await gateway.generate("Hi")

    @pytest.mark.asyncio
    async def test_empty_output_raises_generation_error(self) -> None:
        gateway = LanguageModelGateway(timeout=1)
        llm = _mock_llm(AIMessage(content="   "))

        with patch.object(gateway, "_get_llm", return_value=llm):
            with pytest.raises(GenerationError, match="empty"):
                await gateway.generate("Hi")

    def test_temperature_override(self) -> None:
        gateway = LanguageModelGateway(temperature=0.4, timeout=1)

        with patch("kalakar.services.llm_gateway.ChatOpenAI") as chat_cls:
            gateway._get_llm(0.0)

        assert chat_cls.call_args.kwargs["temperature"] == 0.0
        assert chat_cls.call_args.kwargs["max_retries"] == 0
