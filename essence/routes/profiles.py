"""
Profile management endpoints.

Provides:
- Profile CRUD operations
- Voice model status
"""

from fastapi import APIRouter, Depends, Response

from essence.core.dependencies import get_legacy_service
from essence.core.logging import get_logger
from essence.middleware.auth import get_owner_id
from essence.models import (
    ProfileCreate,
    ProfileList,
    ProfileResponse,
    ProfileUpdate,
    VoiceModelStatus,
    VoiceStatusResponse,
)
from essence.services.legacy import LegacyService, ProfileOverview

logger = get_logger(__name__)
router = APIRouter()


def profile_response(overview: ProfileOverview) -> ProfileResponse:
    profile = overview.profile
    status = VoiceModelStatus(profile.voice_model_status)
    return ProfileResponse(
        id=profile.id,
        name=profile.name,
        relation=profile.relation,
        notes=profile.notes,
        voice_model_status=status,
        has_voice=status == VoiceModelStatus.READY and profile.voice_handle is not None,
        recordings_count=overview.recordings_count,
        messages_count=overview.messages_count,
        created_at=profile.created_at,
        updated_at=profile.updated_at,
    )


@router.post("/profiles", response_model=ProfileResponse, status_code=201)
async def create_profile(
    body: ProfileCreate,
    owner_id: str = Depends(get_owner_id),
    service: LegacyService = Depends(get_legacy_service),
):
    """Create a new profile."""
    overview = await service.create_profile(owner_id, body.name, body.relation, body.notes)
    return profile_response(overview)


@router.get("/profiles", response_model=ProfileList)
async def list_profiles(
    owner_id: str = Depends(get_owner_id),
    service: LegacyService = Depends(get_legacy_service),
):
    """List the caller's profiles, newest first."""
    overviews = await service.list_profiles(owner_id)
    return ProfileList(
        profiles=[profile_response(o) for o in overviews],
        total=len(overviews),
    )


@router.get("/profiles/{profile_id}", response_model=ProfileResponse)
async def get_profile(
    profile_id: str,
    owner_id: str = Depends(get_owner_id),
    service: LegacyService = Depends(get_legacy_service),
):
    return profile_response(await service.get_profile(owner_id, profile_id))


@router.patch("/profiles/{profile_id}", response_model=ProfileResponse)
async def update_profile(
    profile_id: str,
    body: ProfileUpdate,
    owner_id: str = Depends(get_owner_id),
    service: LegacyService = Depends(get_legacy_service),
):
    """Update name, relation or notes."""
    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    if not fields:
        return profile_response(await service.get_profile(owner_id, profile_id))
    return profile_response(await service.update_profile(owner_id, profile_id, fields))


@router.delete("/profiles/{profile_id}", status_code=204)
async def delete_profile(
    profile_id: str,
    owner_id: str = Depends(get_owner_id),
    service: LegacyService = Depends(get_legacy_service),
):
    """Delete a profile, its recordings and its remote voice. Messages are kept."""
    await service.delete_profile(owner_id, profile_id)
    return Response(status_code=204)


@router.get("/profiles/{profile_id}/voice-status", response_model=VoiceStatusResponse)
async def get_voice_status(
    profile_id: str,
    owner_id: str = Depends(get_owner_id),
    service: LegacyService = Depends(get_legacy_service),
):
    summary = await service.voice_status(owner_id, profile_id)
    return VoiceStatusResponse(
        voice_model_status=summary.voice_model_status,
        recording_count=summary.recording_count,
        total_required=summary.total_required,
    )
