"""SQLAlchemy models."""

from kalakar.models.base import Base
from kalakar.models.conversation import Conversation, ConversationStage, ConversationStatus
from kalakar.models.turn import ConversationTurn, TurnType

__all__ = [
    # Base
    "Base",
    # Conversations
    "Conversation",
    "ConversationStage",
    "ConversationStatus",
    "ConversationTurn",
    "TurnType",
]
