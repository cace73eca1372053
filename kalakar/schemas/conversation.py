"""Pydantic schemas for conversations and the onboarding API."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from kalakar.models.conversation import Conversation, ConversationStage, ConversationStatus
from kalakar.models.turn import ConversationTurn, TurnType
from kalakar.schemas.common import CamelSchema
from kalakar.schemas.product import ConfidenceMap, ProductInfo

# === Turn Schemas ===


class NewTurn(CamelSchema):
    """A turn about to be appended; id, timestamp and position are assigned by the store."""

    type: TurnType
    content: str = Field(..., min_length=1)
    language: str
    audio_url: str | None = None
    processing_time: int | None = None
    confidence: float | None = None
    extra_data: dict[str, Any] = Field(default_factory=dict)


class TurnRecord(CamelSchema):
    """An appended, immutable conversation turn."""

    id: UUID
    position: int
    type: TurnType
    content: str
    language: str
    timestamp: datetime
    audio_url: str | None = None
    processing_time: int | None = None
    confidence: float | None = None
    extra_data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_model(cls, turn: ConversationTurn) -> "TurnRecord":
        return cls(
            id=turn.id,
            position=turn.position,
            type=turn.type,
            content=turn.content,
            language=turn.language,
            timestamp=turn.created_at,
            audio_url=turn.audio_url,
            processing_time=turn.processing_time,
            confidence=turn.confidence,
            extra_data=dict(turn.extra_data or {}),
        )


# === Conversation Schemas ===


class ConversationRecord(CamelSchema):
    """Full conversation aggregate as seen by the services and the API."""

    id: UUID
    user_id: str
    language: str
    turns: list[TurnRecord] = Field(default_factory=list)
    extracted_info: ProductInfo = Field(default_factory=ProductInfo)
    confidence: ConfidenceMap = Field(default_factory=ConfidenceMap)
    status: ConversationStatus
    conversation_stage: ConversationStage
    started_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None
    summary: str | None = None
    version: int = 1

    @classmethod
    def from_model(cls, conversation: Conversation) -> "ConversationRecord":
        return cls(
            id=conversation.id,
            user_id=conversation.user_id,
            language=conversation.language,
            turns=[TurnRecord.from_model(t) for t in conversation.turns],
            extracted_info=ProductInfo.model_validate(conversation.extracted_info or {}),
            confidence=ConfidenceMap.model_validate(conversation.confidence or {}),
            status=conversation.status,
            conversation_stage=conversation.conversation_stage,
            started_at=conversation.created_at,
            updated_at=conversation.updated_at,
            completed_at=conversation.completed_at,
            summary=conversation.summary,
            version=conversation.version,
        )

    def user_utterances(self) -> list[str]:
        return [t.content for t in self.turns if t.type == TurnType.USER_RESPONSE]

    def asked_questions(self) -> list[str]:
        return [t.content for t in self.turns if t.type == TurnType.AI_QUESTION]


class ConversationListItem(CamelSchema):
    """Conversation without its turns, for listings."""

    id: UUID
    user_id: str
    language: str
    status: ConversationStatus
    conversation_stage: ConversationStage
    extracted_info: ProductInfo
    started_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None


# === Onboarding API Schemas ===


class StartConversationRequest(CamelSchema):
    """Request to open a new onboarding conversation."""

    user_id: str = Field(..., min_length=1, max_length=128)
    language: str = Field(default="en", min_length=2, max_length=16)


class StartConversationResponse(CamelSchema):
    """First question of a new conversation."""

    conversation_id: UUID
    question: str
    stage: ConversationStage


class SubmitResponseRequest(CamelSchema):
    """A user's reply (typed, or transcribed upstream from speech)."""

    utterance: str = Field(..., min_length=1, max_length=4000)
    audio_url: str | None = None
    confidence: float | None = Field(default=None, ge=0, le=1)
    processing_time: int | None = Field(default=None, ge=0)


class SubmitResponseResponse(CamelSchema):
    """Next step of the conversation after processing a reply."""

    next_question: str
    updated_info: ProductInfo
    confidence: ConfidenceMap
    stage: ConversationStage
    is_complete: bool


class SummaryResponse(CamelSchema):
    """Summary of the gathered product information."""

    summary: str
    info: ProductInfo
    completion_score: int
    quality_score: int
