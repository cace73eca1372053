"""Tests for the health check endpoints."""

from unittest.mock import AsyncMock

import fakeredis.aioredis
import pytest
from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError


class TestHealth:
    """Tests for /health and the liveness and readiness checks."""

    @pytest.mark.asyncio
    async def test_liveness(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    @pytest.mark.asyncio
    async def test_readiness(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/health/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ready"}

    @pytest.mark.asyncio
    async def test_healthy(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["checks"] == {"database": "healthy", "redis": "healthy"}

    @pytest.mark.asyncio
    async def test_redis_down(
        self,
        client: AsyncClient,
        fake_redis: fakeredis.aioredis.FakeRedis,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(
            fake_redis, "ping", AsyncMock(side_effect=RedisConnectionError("refused"))
        )

        response = await client.get("/api/v1/health")

        data = response.json()
        assert data["status"] == "unhealthy"
        assert data["checks"]["database"] == "healthy"
        assert data["checks"]["redis"].startswith("unhealthy")


class TestRoot:
    """Tests for the root endpoint."""

    @pytest.mark.asyncio
    async def test_root(self, client: AsyncClient) -> None:
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["health"] == "/api/v1/health"
