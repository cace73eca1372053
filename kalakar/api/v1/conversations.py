"""Onboarding conversation API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, Request, status

from kalakar.core.config import settings
from kalakar.core.deps import ConversationServiceDep
from kalakar.core.rate_limit import limiter
from kalakar.schemas.common import ErrorResponse
from kalakar.schemas.conversation import (
    ConversationListItem,
    ConversationRecord,
    StartConversationRequest,
    StartConversationResponse,
    SubmitResponseRequest,
    SubmitResponseResponse,
    SummaryResponse,
)

router = APIRouter()

_NOT_FOUND = {status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}}


@router.post(
    "",
    response_model=StartConversationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_conversation(
    body: StartConversationRequest,
    service: ConversationServiceDep,
) -> StartConversationResponse:
    """Open a new onboarding conversation and return the opening question."""
    return await service.start_conversation(body.user_id, body.language)


@router.get("", response_model=list[ConversationListItem])
async def list_conversations(
    service: ConversationServiceDep,
    user_id: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=100),
) -> list[ConversationListItem]:
    """A user's conversations, newest first."""
    return await service.list_conversations(user_id, limit=limit)


@router.get("/{conversation_id}", response_model=ConversationRecord, responses=_NOT_FOUND)
async def get_conversation(
    conversation_id: UUID,
    service: ConversationServiceDep,
) -> ConversationRecord:
    """Full conversation record including every turn."""
    return await service.get_conversation(conversation_id)


@router.post(
    "/{conversation_id}/responses",
    response_model=SubmitResponseResponse,
    responses={
        **_NOT_FOUND,
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.submit_rate_limit)
async def submit_response(
    request: Request,  # noqa: ARG001 - required by slowapi
    conversation_id: UUID,
    body: SubmitResponseRequest,
    service: ConversationServiceDep,
) -> SubmitResponseResponse:
    """Submit the artisan's reply and get the next question.

    Speech replies are transcribed upstream; pass the transcription as
    ``utterance`` with its ``audioUrl``, ``confidence`` and ``processingTime``.
    """
    return await service.submit_response(
        conversation_id,
        body.utterance,
        audio_url=body.audio_url,
        confidence=body.confidence,
        processing_time=body.processing_time,
    )


@router.get("/{conversation_id}/summary", response_model=SummaryResponse, responses=_NOT_FOUND)
async def get_summary(
    conversation_id: UUID,
    service: ConversationServiceDep,
) -> SummaryResponse:
    """Summary of the gathered product info with completion and quality scores."""
    return await service.get_summary(conversation_id)


@router.post(
    "/{conversation_id}/complete",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_NOT_FOUND,
)
async def complete_conversation(
    conversation_id: UUID,
    service: ConversationServiceDep,
) -> None:
    """Finish the conversation now, keeping whatever has been gathered."""
    await service.complete_conversation(conversation_id)


@router.post(
    "/{conversation_id}/abandon",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_NOT_FOUND,
)
async def abandon_conversation(
    conversation_id: UUID,
    service: ConversationServiceDep,
) -> None:
    """Mark an in-progress conversation abandoned."""
    await service.abandon_conversation(conversation_id)
