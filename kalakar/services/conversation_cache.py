"""Redis read-through cache for conversation records."""

import logging
from uuid import UUID

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from kalakar.core.config import settings
from kalakar.schemas.conversation import ConversationRecord

logger = logging.getLogger(__name__)


class ConversationCache:
    """Cache full conversation records by id with a TTL.

    The cache is an optimization only: Redis errors are logged and treated as
    misses, and every store mutation invalidates the entry.
    """

    def __init__(self, redis: aioredis.Redis, ttl: int | None = None) -> None:
        self.redis = redis
        self.ttl = ttl or settings.conversation_cache_ttl

    @staticmethod
    def _key(conversation_id: UUID) -> str:
        return f"conversation:{conversation_id}"

    async def get(self, conversation_id: UUID) -> ConversationRecord | None:
        try:
            cached = await self.redis.get(self._key(conversation_id))
        except RedisError:
            logger.warning("Conversation cache read failed for %s", conversation_id)
            return None
        if not cached:
            return None
        return ConversationRecord.model_validate_json(cached)

    async def set(self, record: ConversationRecord) -> None:
        try:
            await self.redis.set(
                self._key(record.id),
                record.model_dump_json(by_alias=True),
                ex=self.ttl,
            )
        except RedisError:
            logger.warning("Conversation cache write failed for %s", record.id)

    async def invalidate(self, conversation_id: UUID) -> None:
        try:
            await self.redis.delete(self._key(conversation_id))
        except RedisError:
            logger.warning("Conversation cache invalidation failed for %s", conversation_id)
