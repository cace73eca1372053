"""Conversation session store: CRUD over the conversation aggregate."""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from kalakar.core.exceptions import ConflictError, InvalidInputError, NotFoundError
from kalakar.models.base import utcnow
from kalakar.models.conversation import Conversation, ConversationStage, ConversationStatus
from kalakar.models.turn import ConversationTurn
from kalakar.schemas.conversation import (
    ConversationListItem,
    ConversationRecord,
    NewTurn,
    TurnRecord,
)
from kalakar.schemas.product import ConfidenceMap, ProductInfo
from kalakar.services.conversation_cache import ConversationCache

logger = logging.getLogger(__name__)


def parse_conversation_id(conversation_id: UUID | str) -> UUID | None:
    """Return the id as a UUID, or None when it cannot be one."""
    if isinstance(conversation_id, UUID):
        return conversation_id
    try:
        return UUID(str(conversation_id))
    except ValueError:
        return None


class ConversationStore:
    """Single-record read-modify-write operations on conversations.

    Every mutation commits on its own. Reads of unknown or malformed ids
    return None; mutations on them raise ``NotFoundError``.
    """

    def __init__(self, db: AsyncSession, cache: ConversationCache | None = None) -> None:
        self.db = db
        self.cache = cache

    async def _load(self, conversation_id: UUID) -> Conversation | None:
        query = (
            select(Conversation)
            .where(Conversation.id == conversation_id)
            .options(selectinload(Conversation.turns))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _require(self, conversation_id: UUID | str) -> Conversation:
        parsed = parse_conversation_id(conversation_id)
        conversation = await self._load(parsed) if parsed else None
        if conversation is None:
            raise NotFoundError(conversation_id)
        return conversation

    def _check_version(self, conversation: Conversation, expected_version: int | None) -> None:
        if expected_version is None or conversation.version == expected_version:
            return
        logger.warning(
            "Conversation %s is at version %d, expected %d",
            conversation.id,
            conversation.version,
            expected_version,
        )
        raise ConflictError(f"Conversation {conversation.id} was modified by another request")

    async def _commit(self, conversation_id: UUID) -> None:
        try:
            await self.db.commit()
        except StaleDataError as e:
            await self.db.rollback()
            logger.warning("Concurrent update detected on conversation %s", conversation_id)
            raise ConflictError(
                f"Conversation {conversation_id} was modified by another request"
            ) from e
        if self.cache:
            await self.cache.invalidate(conversation_id)

    async def create(self, user_id: str, language: str) -> ConversationRecord:
        """Open a new in-progress conversation at the introduction stage."""
        if not user_id or not user_id.strip():
            raise InvalidInputError("user_id is required")
        if not language or not language.strip():
            raise InvalidInputError("language is required")

        conversation = Conversation(
            user_id=user_id.strip(),
            language=language.strip(),
            status=ConversationStatus.IN_PROGRESS,
            conversation_stage=ConversationStage.INTRODUCTION,
            extracted_info={},
            confidence={},
            turns=[],
        )
        self.db.add(conversation)
        await self.db.commit()
        logger.info("Created conversation %s for user %s", conversation.id, user_id)
        return ConversationRecord.from_model(conversation)

    async def get(self, conversation_id: UUID | str) -> ConversationRecord | None:
        """Fetch a conversation with its turns, or None if it does not exist."""
        parsed = parse_conversation_id(conversation_id)
        if parsed is None:
            return None

        if self.cache:
            cached = await self.cache.get(parsed)
            if cached is not None:
                return cached

        conversation = await self._load(parsed)
        if conversation is None:
            return None

        record = ConversationRecord.from_model(conversation)
        if self.cache:
            await self.cache.set(record)
        return record

    async def append_turn(
        self,
        conversation_id: UUID | str,
        turn: NewTurn,
        expected_version: int | None = None,
    ) -> TurnRecord:
        """Append a turn at the end of the conversation, assigning id, timestamp and position.

        With ``expected_version``, a conversation that has moved on since the
        caller read it raises ``ConflictError`` instead.
        """
        conversation = await self._require(conversation_id)
        self._check_version(conversation, expected_version)

        new_turn = ConversationTurn(
            position=len(conversation.turns),
            type=turn.type,
            content=turn.content,
            language=turn.language,
            audio_url=turn.audio_url,
            processing_time=turn.processing_time,
            confidence=turn.confidence,
            extra_data=dict(turn.extra_data),
        )
        conversation.turns.append(new_turn)
        conversation.updated_at = utcnow()
        await self._commit(conversation.id)
        return TurnRecord.from_model(new_turn)

    async def update_stage(self, conversation_id: UUID | str, stage: ConversationStage) -> None:
        conversation = await self._require(conversation_id)
        conversation.conversation_stage = stage
        conversation.updated_at = utcnow()
        await self._commit(conversation.id)

    async def update_extracted_info(
        self,
        conversation_id: UUID | str,
        info: ProductInfo,
        confidence: ConfidenceMap | None = None,
        expected_version: int | None = None,
    ) -> None:
        """Replace the stored product record (and confidence, when given).

        Raises ``ConflictError`` when ``expected_version`` is given and no
        longer matches the stored row.
        """
        conversation = await self._require(conversation_id)
        self._check_version(conversation, expected_version)
        conversation.extracted_info = info.to_record()
        if confidence is not None:
            conversation.confidence = confidence.model_dump(mode="json", by_alias=True)
        conversation.updated_at = utcnow()
        await self._commit(conversation.id)

    async def complete(
        self,
        conversation_id: UUID | str,
        summary: str,
        final_info: ProductInfo,
    ) -> None:
        """Mark the conversation completed with its summary and final product record."""
        conversation = await self._require(conversation_id)
        now = utcnow()
        conversation.status = ConversationStatus.COMPLETED
        conversation.conversation_stage = ConversationStage.SUMMARY
        conversation.summary = summary
        conversation.extracted_info = final_info.to_record()
        conversation.completed_at = now
        conversation.updated_at = now
        await self._commit(conversation.id)
        logger.info("Completed conversation %s", conversation.id)

    async def abandon(self, conversation_id: UUID | str) -> None:
        """Mark an in-progress conversation abandoned; finished ones are left alone."""
        conversation = await self._require(conversation_id)
        if conversation.status != ConversationStatus.IN_PROGRESS:
            return
        conversation.status = ConversationStatus.ABANDONED
        conversation.updated_at = utcnow()
        await self._commit(conversation.id)

    async def list_for_user(self, user_id: str, limit: int = 10) -> list[ConversationListItem]:
        """A user's conversations, newest first."""
        query = (
            select(Conversation)
            .where(Conversation.user_id == user_id)
            .order_by(Conversation.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(query)
        return [
            ConversationListItem(
                id=c.id,
                user_id=c.user_id,
                language=c.language,
                status=c.status,
                conversation_stage=c.conversation_stage,
                extracted_info=ProductInfo.model_validate(c.extracted_info or {}),
                started_at=c.created_at,
                updated_at=c.updated_at,
                completed_at=c.completed_at,
            )
            for c in result.scalars().all()
        ]

    async def abandon_idle(self, older_than: datetime) -> int:
        """Abandon in-progress conversations not updated since ``older_than``."""
        result = await self.db.execute(
            select(Conversation.id).where(
                Conversation.status == ConversationStatus.IN_PROGRESS,
                Conversation.updated_at < older_than,
            )
        )
        ids = list(result.scalars().all())
        if not ids:
            return 0

        values: dict[str, Any] = {
            "status": ConversationStatus.ABANDONED,
            "updated_at": utcnow(),
            "version": Conversation.version + 1,
        }
        await self.db.execute(
            update(Conversation)
            .where(
                Conversation.id.in_(ids),
                Conversation.status == ConversationStatus.IN_PROGRESS,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        if self.cache:
            for conversation_id in ids:
                await self.cache.invalidate(conversation_id)
        logger.info("Abandoned %d idle conversations", len(ids))
        return len(ids)
