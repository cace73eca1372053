"""Pytest configuration and fixtures for the Kalakar API test suite.

Provides:
- In-memory SQLite database (aiosqlite) created fresh per test
- Mock Redis (fakeredis)
- Disabled rate limiting
- A scripted language-model gateway that answers by prompt kind
- Conversation and turn factory fixtures
"""

import json
from collections.abc import AsyncGenerator, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import fakeredis.aioredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from kalakar.core.deps import get_conversation_service, get_db, get_redis
from kalakar.core.exceptions import GenerationError
from kalakar.core.rate_limit import limiter
from kalakar.main import app
from kalakar.models.base import Base
from kalakar.models.conversation import Conversation, ConversationStage, ConversationStatus
from kalakar.models.turn import ConversationTurn, TurnType
from kalakar.services.conversation_cache import ConversationCache
from kalakar.services.conversation_service import ConversationService
from kalakar.services.llm_gateway import LanguageModelGateway

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
TEST_USER_ID = "artisan-1"

# Markers identifying which prompt the gateway is answering
EXTRACTION_MARKER = "You are extracting product information"
QUESTION_MARKER = "follow-up question"
SUMMARY_MARKER = "Create a friendly summary"

# ---------------------------------------------------------------------------
# Disable rate limiting globally for tests
# ---------------------------------------------------------------------------
limiter.enabled = False


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh in-memory database per test.

    StaticPool keeps the single in-memory connection alive so every session
    created from the factory sees the same tables.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for the test."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Fake Redis
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_redis() -> fakeredis.aioredis.FakeRedis:
    """Provide a fresh fakeredis instance per test."""
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


@pytest.fixture
def conversation_cache(fake_redis: fakeredis.aioredis.FakeRedis) -> ConversationCache:
    return ConversationCache(fake_redis, ttl=60)


# ---------------------------------------------------------------------------
# Language-model gateway
# ---------------------------------------------------------------------------


def extraction_json(
    info: dict[str, Any],
    fields: dict[str, float] | None = None,
    overall: float | None = None,
) -> str:
    """Build an extraction response the way the model is asked to format it."""
    confidence: dict[str, Any] = {"fields": fields or {k: 0.9 for k in info}}
    if overall is not None:
        confidence["overall"] = overall
    return json.dumps({"productInfo": info, "confidence": confidence})


@pytest.fixture
def make_gateway() -> Callable[..., MagicMock]:
    """Factory for a gateway mock answering each prompt kind from a script.

    Each of ``extraction``, ``question`` and ``summary`` is either a string
    response, a list of responses consumed in order, or an exception to raise.
    Unscripted prompt kinds raise ``GenerationError``.
    """

    def _make(
        *,
        extraction: Any = None,
        question: Any = None,
        summary: Any = None,
    ) -> MagicMock:
        scripts = {
            EXTRACTION_MARKER: extraction,
            QUESTION_MARKER: question,
            SUMMARY_MARKER: summary,
        }

        async def _generate(prompt: str, *args: Any, **kwargs: Any) -> str:
            for marker, script in scripts.items():
                if marker not in prompt:
                    continue
                if isinstance(script, list):
                    script = script.pop(0) if script else None
                if isinstance(script, BaseException):
                    raise script
                if script is None:
                    raise GenerationError("not scripted")
                return str(script)
            raise GenerationError("unknown prompt")

        gateway = MagicMock(spec=LanguageModelGateway)
        gateway.generate = AsyncMock(side_effect=_generate)
        return gateway

    return _make


@pytest.fixture
def failing_gateway(make_gateway: Callable[..., MagicMock]) -> MagicMock:
    """Gateway whose every call fails."""
    return make_gateway()


# ---------------------------------------------------------------------------
# Service and HTTP client
# ---------------------------------------------------------------------------


@pytest.fixture
def service_factory(
    db_session: AsyncSession,
    conversation_cache: ConversationCache,
) -> Callable[[MagicMock], ConversationService]:
    """Build a ConversationService over the test database with a given gateway."""

    def _create(gateway: MagicMock) -> ConversationService:
        return ConversationService(db_session, cache=conversation_cache, gateway=gateway)

    return _create


@pytest.fixture
def gateway(failing_gateway: MagicMock) -> MagicMock:
    """Gateway used by the HTTP client; override in a test module to script it."""
    return failing_gateway


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    fake_redis: fakeredis.aioredis.FakeRedis,
    gateway: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client with database, Redis and the gateway overridden."""

    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as s:
            yield s

    async def _override_redis() -> AsyncGenerator[fakeredis.aioredis.FakeRedis, None]:
        yield fake_redis

    async def _override_service() -> AsyncGenerator[ConversationService, None]:
        async with session_factory() as s:
            yield ConversationService(s, cache=ConversationCache(fake_redis), gateway=gateway)

    app.dependency_overrides[get_db] = _override_session
    app.dependency_overrides[get_redis] = _override_redis
    app.dependency_overrides[get_conversation_service] = _override_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Model Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def conversation_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates Conversation rows directly in the test database."""

    async def _create(
        *,
        user_id: str = TEST_USER_ID,
        language: str = "en",
        status: ConversationStatus = ConversationStatus.IN_PROGRESS,
        stage: ConversationStage = ConversationStage.INTRODUCTION,
        extracted_info: dict[str, Any] | None = None,
        confidence: dict[str, Any] | None = None,
        summary: str | None = None,
    ) -> Conversation:
        conversation = Conversation(
            user_id=user_id,
            language=language,
            status=status,
            conversation_stage=stage,
            extracted_info=extracted_info or {},
            confidence=confidence or {},
            summary=summary,
            turns=[],
        )
        db_session.add(conversation)
        await db_session.commit()
        return conversation

    return _create


@pytest.fixture
def turn_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that appends ConversationTurn rows to an existing conversation."""

    async def _create(
        conversation: Conversation,
        *,
        type: TurnType = TurnType.AI_QUESTION,
        content: str = "What have you made?",
        processing_time: int | None = None,
        extra_data: dict[str, Any] | None = None,
    ) -> ConversationTurn:
        turn = ConversationTurn(
            position=len(conversation.turns),
            type=type,
            content=content,
            language=conversation.language,
            processing_time=processing_time,
            extra_data=extra_data or {},
        )
        conversation.turns.append(turn)
        await db_session.commit()
        return turn

    return _create
