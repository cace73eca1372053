"""Health check endpoints."""

from fastapi import APIRouter
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from kalakar.core.config import settings
from kalakar.core.deps import DBSession, RedisClient
from kalakar.schemas.common import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DBSession, redis: RedisClient) -> HealthResponse:
    """
    Health check endpoint.

    Checks database and Redis connectivity and returns service status.
    """
    health = HealthResponse(
        status="healthy",
        version=settings.version,
        environment=settings.environment,
        checks={},
    )

    try:
        await db.execute(text("SELECT 1"))
        health.checks["database"] = "healthy"
    except SQLAlchemyError as e:
        health.status = "unhealthy"
        health.checks["database"] = f"unhealthy: {e}"

    try:
        await redis.ping()
        health.checks["redis"] = "healthy"
    except RedisError as e:
        health.status = "unhealthy"
        health.checks["redis"] = f"unhealthy: {e}"

    return health


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness check for container orchestration.

    Simple check that the service is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(db: DBSession) -> dict[str, str]:
    """
    Readiness check for container orchestration.

    Checks if the database is reachable.
    """
    await db.execute(text("SELECT 1"))
    return {"status": "ready"}
