"""API v1 router combining all route modules."""

from fastapi import APIRouter

from kalakar.api.v1 import conversations, health

api_router = APIRouter()

# Include health check routes (no prefix)
api_router.include_router(health.router)

# Onboarding conversations
api_router.include_router(
    conversations.router,
    prefix="/conversations",
    tags=["conversations"],
)
