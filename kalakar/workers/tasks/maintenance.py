"""Periodic maintenance tasks for onboarding conversations."""

import asyncio
import logging
from collections.abc import Coroutine
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kalakar.core.config import settings
from kalakar.core.database import async_session_maker, engine
from kalakar.services.conversation_cache import ConversationCache
from kalakar.services.conversation_store import ConversationStore
from kalakar.workers.celery_app import BaseTask, celery_app

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine in a fresh event loop, disposing DB connections after.

    asyncpg connections are bound to the loop that created them, so pooled
    connections must not outlive the per-task loop.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.run_until_complete(engine.dispose())
        loop.close()


@celery_app.task(  # type: ignore[untyped-decorator]
    name="tasks.maintenance.mark_abandoned_conversations",
    base=BaseTask,
    bind=True,
)
def mark_abandoned_conversations(
    self: BaseTask,  # noqa: ARG001
    idle_hours: int | None = None,
) -> dict[str, Any]:
    """Abandon in-progress conversations idle for longer than ``idle_hours``."""
    hours = idle_hours or settings.abandon_after_hours
    return _run_async(mark_abandoned_conversations_async(hours))


async def mark_abandoned_conversations_async(
    idle_hours: int,
    session_factory: async_sessionmaker[AsyncSession] = async_session_maker,
    redis: aioredis.Redis | None = None,
) -> dict[str, Any]:
    """Async implementation of the abandonment sweep."""
    cutoff = datetime.now(UTC) - timedelta(hours=idle_hours)

    owns_redis = redis is None
    if redis is None:
        redis = aioredis.from_url(str(settings.redis_url), decode_responses=True)

    try:
        async with session_factory() as session:
            store = ConversationStore(session, cache=ConversationCache(redis))
            abandoned = await store.abandon_idle(cutoff)
    finally:
        if owns_redis:
            await redis.aclose()

    logger.info("Abandonment sweep: %d conversations idle since %s", abandoned, cutoff.isoformat())
    return {"status": "success", "abandoned": abandoned, "cutoff": cutoff.isoformat()}
