"""
Owner-facing operations of the voice legacy service.

Every operation takes the authenticated owner id and treats a profile or
message of another owner exactly like a missing one.
"""

from dataclasses import dataclass
from typing import Any, List, Mapping

from essence.core.errors import NotFoundError, ValidationError
from essence.core.logging import get_logger
from essence.database import (
    Message,
    MessageRepository,
    Profile,
    ProfileRepository,
    RecordingSlot,
)
from essence.models import MessageCategory, VoiceModelStatus
from essence.services.lifecycle import VoiceLifecycleController
from essence.services.slots import RecordingSlotStore
from essence.services.synthesis import MessageSynthesisService

logger = get_logger(__name__)


@dataclass
class ProfileOverview:
    profile: Profile
    recordings_count: int = 0
    messages_count: int = 0


@dataclass
class VoiceStatusSummary:
    voice_model_status: VoiceModelStatus
    recording_count: int
    total_required: int


@dataclass
class RecordSlotResult:
    slot: RecordingSlot
    voice_model_status: VoiceModelStatus


@dataclass
class ClearSlotResult:
    removed: bool
    voice_model_status: VoiceModelStatus


class LegacyService:
    """Profiles, training recordings and synthesized messages of one owner."""

    EDITABLE_FIELDS = frozenset({"name", "relation", "notes"})

    def __init__(
        self,
        profiles: ProfileRepository,
        messages: MessageRepository,
        slots: RecordingSlotStore,
        controller: VoiceLifecycleController,
        synthesis: MessageSynthesisService,
    ):
        self.profiles = profiles
        self.messages = messages
        self.slots = slots
        self.controller = controller
        self.synthesis = synthesis

    async def _require_profile(self, owner_id: str, profile_id: str) -> Profile:
        profile = await self.profiles.get(profile_id, owner_id)
        if profile is None:
            raise NotFoundError("profile", profile_id)
        return profile

    async def _require_message(self, owner_id: str, message_id: str) -> Message:
        message = await self.messages.get(message_id, owner_id)
        if message is None:
            raise NotFoundError("message", message_id)
        return message

    # -------------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------------

    async def create_profile(
        self,
        owner_id: str,
        name: str,
        relation: str,
        notes: str = "",
    ) -> ProfileOverview:
        profile = await self.profiles.create(owner_id, name, relation, notes)
        logger.info("Profile created", extra={"profile_id": profile.id, "owner_id": owner_id})
        return ProfileOverview(profile)

    async def list_profiles(self, owner_id: str) -> List[ProfileOverview]:
        profiles = await self.profiles.list_for_owner(owner_id)
        ids = [profile.id for profile in profiles]
        recordings = await self.slots.counts_by_profile(ids)
        messages = await self.messages.counts_by_profile(ids)
        return [
            ProfileOverview(
                profile,
                recordings_count=recordings.get(profile.id, 0),
                messages_count=messages.get(profile.id, 0),
            )
            for profile in profiles
        ]

    async def get_profile(self, owner_id: str, profile_id: str) -> ProfileOverview:
        profile = await self._require_profile(owner_id, profile_id)
        recordings = await self.slots.count(profile_id)
        messages = await self.messages.counts_by_profile([profile_id])
        return ProfileOverview(profile, recordings, messages.get(profile_id, 0))

    async def update_profile(
        self,
        owner_id: str,
        profile_id: str,
        fields: Mapping[str, Any],
    ) -> ProfileOverview:
        """Edit name, relation or notes. Voice fields are not user-editable."""
        rejected = set(fields) - self.EDITABLE_FIELDS
        if rejected:
            raise ValidationError(
                "Only name, relation and notes can be edited",
                details={"fields": sorted(rejected)},
            )

        profile = await self.profiles.update(profile_id, owner_id, fields)
        if profile is None:
            raise NotFoundError("profile", profile_id)
        return await self.get_profile(owner_id, profile_id)

    async def delete_profile(self, owner_id: str, profile_id: str) -> None:
        """Release the remote voice, then remove the profile and its recordings."""
        await self._require_profile(owner_id, profile_id)

        async with self.controller.locks.hold(profile_id):
            await self.controller.on_profile_deleted(profile_id)
            deleted = await self.profiles.delete(profile_id, owner_id)

        if not deleted:
            raise NotFoundError("profile", profile_id)
        logger.info("Profile deleted", extra={"profile_id": profile_id, "owner_id": owner_id})

    async def voice_status(self, owner_id: str, profile_id: str) -> VoiceStatusSummary:
        profile = await self._require_profile(owner_id, profile_id)
        return VoiceStatusSummary(
            voice_model_status=VoiceModelStatus(profile.voice_model_status),
            recording_count=await self.slots.count(profile_id),
            total_required=self.slots.slot_count,
        )

    # -------------------------------------------------------------------------
    # Recordings
    # -------------------------------------------------------------------------

    async def list_recordings(self, owner_id: str, profile_id: str) -> List[RecordingSlot]:
        await self._require_profile(owner_id, profile_id)
        return await self.slots.list_ordered_by_slot(profile_id)

    async def record_slot(
        self,
        owner_id: str,
        profile_id: str,
        slot_index: int,
        text: str,
        audio: bytes,
        quality: str = "good",
    ) -> RecordSlotResult:
        """Store a training recording and recompute the voice status."""
        self.slots.validate_index(slot_index)
        await self._require_profile(owner_id, profile_id)

        async with self.controller.locks.hold(profile_id):
            slot = await self.slots.upsert(profile_id, slot_index, text, audio, quality)
            status = await self.controller.on_slots_changed(profile_id)

        return RecordSlotResult(slot=slot, voice_model_status=status)

    async def clear_slot(
        self,
        owner_id: str,
        profile_id: str,
        slot_index: int,
    ) -> ClearSlotResult:
        """Remove a training recording. Clearing an empty slot changes nothing."""
        self.slots.validate_index(slot_index)
        profile = await self._require_profile(owner_id, profile_id)

        async with self.controller.locks.hold(profile_id):
            removed = await self.slots.remove(profile_id, slot_index)
            if removed:
                status = await self.controller.on_slots_changed(profile_id)
            else:
                status = VoiceModelStatus(profile.voice_model_status)

        return ClearSlotResult(removed=removed, voice_model_status=status)

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    async def create_message(
        self,
        owner_id: str,
        profile_id: str,
        title: str,
        category: MessageCategory,
        text: str,
        is_private: bool = False,
    ) -> Message:
        """
        Synthesize text in the profile's voice and store the message.

        Holds the profile lock so a concurrent slot change cannot demote the
        voice between the ready check and the insert.
        """
        async with self.controller.locks.hold(profile_id):
            profile = await self._require_profile(owner_id, profile_id)
            result = await self.synthesis.synthesize(profile, text)

            message = await self.messages.create(
                owner_id=owner_id,
                profile_id=profile_id,
                title=title,
                category=category,
                content=text,
                audio=result.audio,
                duration=result.duration_seconds,
                is_private=is_private,
            )
        logger.info(
            "Message created",
            extra={"message_id": message.id, "profile_id": profile_id},
        )
        return message

    async def list_messages(self, owner_id: str, profile_id: str) -> List[Message]:
        await self._require_profile(owner_id, profile_id)
        return await self.messages.list_for_profile(profile_id, owner_id)

    async def get_message(self, owner_id: str, message_id: str) -> Message:
        return await self._require_message(owner_id, message_id)

    async def message_audio(self, owner_id: str, message_id: str) -> bytes:
        message = await self._require_message(owner_id, message_id)
        if not message.audio:
            raise NotFoundError("message audio", message_id)
        return message.audio

    async def delete_message(self, owner_id: str, message_id: str) -> None:
        if not await self.messages.delete(message_id, owner_id):
            raise NotFoundError("message", message_id)

