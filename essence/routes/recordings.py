"""
Training recording endpoints.

Uploading or clearing a slot recomputes the profile's voice status; the new
status is returned with the response.
"""

from fastapi import APIRouter, Depends

from essence.core.dependencies import get_legacy_service
from essence.middleware.auth import get_owner_id
from essence.models import (
    ClearSlotResponse,
    RecordSlotResponse,
    RecordingList,
    RecordingResponse,
    RecordingUpload,
    encode_audio,
)
from essence.services.legacy import LegacyService

router = APIRouter()


def recording_response(slot) -> RecordingResponse:
    return RecordingResponse(
        slot_index=slot.slot_index,
        prompt_text=slot.prompt_text,
        quality=slot.quality,
        audio_base64=encode_audio(slot.audio),
        created_at=slot.created_at,
    )


@router.get("/profiles/{profile_id}/recordings", response_model=RecordingList)
async def list_recordings(
    profile_id: str,
    owner_id: str = Depends(get_owner_id),
    service: LegacyService = Depends(get_legacy_service),
):
    """Filled slots in slot order."""
    slots = await service.list_recordings(owner_id, profile_id)
    return RecordingList(
        recordings=[recording_response(slot) for slot in slots],
        total_required=service.slots.slot_count,
    )


@router.put("/profiles/{profile_id}/recordings/{slot_index}", response_model=RecordSlotResponse)
async def record_slot(
    profile_id: str,
    slot_index: int,
    body: RecordingUpload,
    owner_id: str = Depends(get_owner_id),
    service: LegacyService = Depends(get_legacy_service),
):
    """Store or overwrite the recording of a slot."""
    result = await service.record_slot(
        owner_id,
        profile_id,
        slot_index,
        body.prompt_text,
        body.audio_bytes(),
        quality=body.quality,
    )
    return RecordSlotResponse(
        recording=recording_response(result.slot),
        voice_model_status=result.voice_model_status,
    )


@router.delete("/profiles/{profile_id}/recordings/{slot_index}", response_model=ClearSlotResponse)
async def clear_slot(
    profile_id: str,
    slot_index: int,
    owner_id: str = Depends(get_owner_id),
    service: LegacyService = Depends(get_legacy_service),
):
    result = await service.clear_slot(owner_id, profile_id, slot_index)
    return ClearSlotResponse(removed=result.removed, voice_model_status=result.voice_model_status)
