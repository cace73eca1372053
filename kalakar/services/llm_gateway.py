"""Language-model gateway: the single seam to the generative backend."""

import asyncio
import base64
import logging
from collections.abc import Sequence
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from kalakar.core.config import settings
from kalakar.core.exceptions import GenerationError
from kalakar.models.turn import TurnType
from kalakar.schemas.conversation import TurnRecord
from kalakar.services.graph.prompts import ASSISTANT_PERSONA_PROMPT

logger = logging.getLogger(__name__)


def _sniff_image_type(image: bytes) -> str:
    if image.startswith(b"\x89PNG"):
        return "image/png"
    if image[:4] == b"RIFF" and image[8:12] == b"WEBP":
        return "image/webp"
    if image.startswith(b"GIF8"):
        return "image/gif"
    return "image/jpeg"


def _response_text(content: Any) -> str:
    """Flatten a chat model response body into plain text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return ""


class LanguageModelGateway:
    """Generate text from a prompt, optional history and an optional image.

    Every failure of the backend (timeout, quota, transport, empty output)
    is raised as ``GenerationError`` so callers only have one thing to
    degrade on.
    """

    def __init__(
        self,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self.model = model or settings.chat_model
        self.temperature = settings.llm_temperature if temperature is None else temperature
        self.max_tokens = max_tokens or settings.llm_max_tokens
        self.timeout = timeout or settings.llm_timeout_seconds

    def _get_llm(self, temperature: float | None = None) -> ChatOpenAI:
        """Create a ChatOpenAI instance."""
        return ChatOpenAI(
            model=self.model,
            api_key=settings.openai_api_key,
            temperature=self.temperature if temperature is None else temperature,
            max_tokens=self.max_tokens,
            max_retries=0,
        )

    def _build_messages(
        self,
        prompt: str,
        history: Sequence[TurnRecord] | None,
        image: bytes | None,
    ) -> list[BaseMessage]:
        messages: list[BaseMessage] = [SystemMessage(content=ASSISTANT_PERSONA_PROMPT)]
        for turn in history or ():
            if turn.type == TurnType.USER_RESPONSE:
                messages.append(HumanMessage(content=turn.content))
            else:
                messages.append(AIMessage(content=turn.content))

        if image:
            encoded = base64.b64encode(image).decode("ascii")
            media_type = _sniff_image_type(image)
            messages.append(
                HumanMessage(
                    content=[
                        {"type": "text", "text": prompt},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{media_type};base64,{encoded}"},
                        },
                    ]
                )
            )
        else:
            messages.append(HumanMessage(content=prompt))
        return messages

    async def generate(
        self,
        prompt: str,
        history: Sequence[TurnRecord] | None = None,
        image: bytes | None = None,
        *,
        temperature: float | None = None,
    ) -> str:
        """Return the model's text for ``prompt``.

        Raises:
            GenerationError: the backend timed out, failed, or returned nothing
        """
        messages = self._build_messages(prompt, history, image)

        try:
            llm = self._get_llm(temperature)
            response = await asyncio.wait_for(llm.ainvoke(messages), timeout=self.timeout)
        except TimeoutError as e:
            logger.warning("LLM call timed out after %.1fs (model=%s)", self.timeout, self.model)
            raise GenerationError(f"LLM call timed out after {self.timeout}s") from e
        except Exception as e:
            logger.warning("LLM call failed (model=%s): %s", self.model, e)
            raise GenerationError(f"LLM call failed: {e}") from e

        text = _response_text(response.content).strip()
        if not text:
            raise GenerationError("LLM returned an empty response")
        return text


# Singleton instance
_gateway: LanguageModelGateway | None = None


def get_language_model_gateway() -> LanguageModelGateway:
    """Get or create the language-model gateway instance."""
    global _gateway  # noqa: PLW0603
    if _gateway is None:
        _gateway = LanguageModelGateway()
    return _gateway
