"""
Message endpoints.

Provides:
- Message synthesis in a profile's cloned voice
- Message listing, retrieval and deletion
- Raw audio download
"""

from fastapi import APIRouter, Depends, Response

from essence.core.dependencies import get_legacy_service
from essence.middleware.auth import get_owner_id
from essence.models import MessageCreate, MessageList, MessageResponse
from essence.services.legacy import LegacyService

router = APIRouter()


def message_response(message) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        profile_id=message.profile_id,
        title=message.title,
        category=message.category,
        content=message.content,
        duration=message.duration,
        is_private=message.is_private,
        has_audio=bool(message.audio),
        created_at=message.created_at,
    )


@router.post("/profiles/{profile_id}/messages", response_model=MessageResponse, status_code=201)
async def create_message(
    profile_id: str,
    body: MessageCreate,
    owner_id: str = Depends(get_owner_id),
    service: LegacyService = Depends(get_legacy_service),
):
    """
    Synthesize a message in the profile's voice.

    Fails with 409 while the voice is not ready, 422 for empty or too long
    content and 502 when the provider cannot render the audio.
    """
    message = await service.create_message(
        owner_id,
        profile_id,
        body.title,
        body.category,
        body.content,
        is_private=body.is_private,
    )
    return message_response(message)


@router.get("/profiles/{profile_id}/messages", response_model=MessageList)
async def list_messages(
    profile_id: str,
    owner_id: str = Depends(get_owner_id),
    service: LegacyService = Depends(get_legacy_service),
):
    messages = await service.list_messages(owner_id, profile_id)
    return MessageList(messages=[message_response(m) for m in messages], total=len(messages))


@router.get("/messages/{message_id}", response_model=MessageResponse)
async def get_message(
    message_id: str,
    owner_id: str = Depends(get_owner_id),
    service: LegacyService = Depends(get_legacy_service),
):
    return message_response(await service.get_message(owner_id, message_id))


@router.get("/messages/{message_id}/audio")
async def get_message_audio(
    message_id: str,
    owner_id: str = Depends(get_owner_id),
    service: LegacyService = Depends(get_legacy_service),
):
    audio = await service.message_audio(owner_id, message_id)
    return Response(content=audio, media_type="audio/mpeg")


@router.delete("/messages/{message_id}", status_code=204)
async def delete_message(
    message_id: str,
    owner_id: str = Depends(get_owner_id),
    service: LegacyService = Depends(get_legacy_service),
):
    await service.delete_message(owner_id, message_id)
    return Response(status_code=204)
