"""Domain exceptions for the onboarding core.

Only ``NotFoundError``, ``InvalidInputError`` and ``ConflictError`` reach API
callers. ``GenerationError`` and ``ValidationError`` are always absorbed by the
extraction, question and summary services, which degrade to deterministic
behaviour instead.
"""


class KalakarError(Exception):
    """Base class for all domain errors."""


class GenerationError(KalakarError):
    """The language-model gateway failed (timeout, quota, malformed output)."""


class ValidationError(KalakarError):
    """A field or confidence payload from the gateway has the wrong shape."""


class NotFoundError(KalakarError):
    """An operation referenced a conversation that does not exist."""

    def __init__(self, conversation_id: object) -> None:
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class InvalidInputError(KalakarError):
    """Required call parameters are missing or the conversation cannot accept them."""


class ConflictError(KalakarError):
    """A concurrent request modified the conversation first."""
