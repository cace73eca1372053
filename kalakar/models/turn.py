"""Conversation turn model for individual questions and answers."""

import enum
import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import Enum, Float, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kalakar.models.base import Base, JSONType

if TYPE_CHECKING:
    from kalakar.models.conversation import Conversation


class TurnType(str, enum.Enum):
    """Who produced the turn."""

    AI_QUESTION = "ai_question"
    USER_RESPONSE = "user_response"


class ConversationTurn(Base):
    """A single append-only entry in a conversation's history."""

    __tablename__ = "conversation_turns"
    __table_args__ = (UniqueConstraint("conversation_id", "position"),)

    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    type: Mapped[TurnType] = mapped_column(
        Enum(TurnType, name="turn_type", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    language: Mapped[str] = mapped_column(String(16), nullable=False)

    # Speech and pipeline metadata
    audio_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    processing_time: Mapped[int | None] = mapped_column(Integer, nullable=True)  # ms
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Stage the turn belongs to, degraded flag, etc.
    extra_data: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        default=dict,
        nullable=False,
    )

    conversation: Mapped["Conversation"] = relationship(
        "Conversation",
        back_populates="turns",
    )

    def __repr__(self) -> str:
        return f"<ConversationTurn {self.type.value}: {self.content[:50]}...>"
