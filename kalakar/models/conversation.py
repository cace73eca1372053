"""Conversation model: the aggregate root of one onboarding dialogue."""

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kalakar.models.base import Base, JSONType

if TYPE_CHECKING:
    from kalakar.models.turn import ConversationTurn


class ConversationStage(str, enum.Enum):
    """Phases of the guided onboarding dialogue, in their usual order."""

    INTRODUCTION = "introduction"
    BASIC_INFO = "basic_info"
    MATERIALS_CRAFTING = "materials_crafting"
    CULTURAL_SIGNIFICANCE = "cultural_significance"
    PRICING_MARKET = "pricing_market"
    FINAL_DETAILS = "final_details"
    SUMMARY = "summary"


class ConversationStatus(str, enum.Enum):
    """Conversation status."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class Conversation(Base):
    """One artisan's onboarding conversation.

    Mutated only by appending turns, replacing ``extracted_info`` /
    ``confidence``, or moving ``status`` and ``conversation_stage`` forward.
    ``version`` is bumped on every update so a stale concurrent write fails
    instead of silently overwriting newer product info.
    """

    __tablename__ = "conversations"

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    language: Mapped[str] = mapped_column(String(16), nullable=False, default="en")

    status: Mapped[ConversationStatus] = mapped_column(
        Enum(
            ConversationStatus,
            name="conversation_status",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=ConversationStatus.IN_PROGRESS,
        nullable=False,
        index=True,
    )
    conversation_stage: Mapped[ConversationStage] = mapped_column(
        Enum(
            ConversationStage,
            name="conversation_stage",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=ConversationStage.INTRODUCTION,
        nullable=False,
    )

    # camelCase ProductInfo and ConfidenceMap documents
    extracted_info: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        default=dict,
        nullable=False,
    )
    confidence: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        default=dict,
        nullable=False,
    )

    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    turns: Mapped[list["ConversationTurn"]] = relationship(
        "ConversationTurn",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ConversationTurn.position",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Conversation {self.id} ({self.status.value}, {self.conversation_stage.value})>"
