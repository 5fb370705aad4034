"""
Owner-facing service operation tests.
"""

import asyncio

import pytest

from essence.core.errors import (
    InvalidSlotIndexError,
    NotFoundError,
    SynthesisFailedError,
    ValidationError,
    VoiceNotReadyError,
)
from essence.models import MessageCategory, VoiceModelStatus

from tests.conftest import OTHER_OWNER_ID, OWNER_ID, SAMPLE_AUDIO


async def record_all(service, profile_id, indexes=range(3)):
    result = None
    for index in indexes:
        result = await service.record_slot(
            OWNER_ID, profile_id, index, f"prompt {index}", SAMPLE_AUDIO
        )
    return result


class TestRecordSlot:
    """Recording uploads."""

    async def test_reports_status_after_each_upload(self, service, profile, provider):
        statuses = []
        for index in range(3):
            result = await service.record_slot(OWNER_ID, profile.id, index, "prompt", SAMPLE_AUDIO)
            statuses.append(result.voice_model_status)

        assert statuses == [
            VoiceModelStatus.TRAINING,
            VoiceModelStatus.TRAINING,
            VoiceModelStatus.READY,
        ]
        assert result.slot.slot_index == 2
        assert len(provider.created) == 1

    async def test_invalid_index_checked_first(self, service, provider):
        with pytest.raises(InvalidSlotIndexError):
            await service.record_slot(OWNER_ID, "missing-profile", 7, "prompt", SAMPLE_AUDIO)

    async def test_other_owner_sees_not_found(self, service, slots, profile):
        with pytest.raises(NotFoundError):
            await service.record_slot(OTHER_OWNER_ID, profile.id, 0, "prompt", SAMPLE_AUDIO)

        assert await slots.count(profile.id) == 0

    async def test_creation_failure_does_not_fail_upload(self, service, slots, profile, provider):
        provider.fail_create = True

        result = await record_all(service, profile.id)

        assert result.voice_model_status == VoiceModelStatus.TRAINING
        assert await slots.count(profile.id) == 3

    async def test_concurrent_last_two_uploads_create_one_voice(self, service, profiles, profile, provider):
        provider.create_delay = 0.05
        await service.record_slot(OWNER_ID, profile.id, 0, "prompt 0", SAMPLE_AUDIO)

        results = await asyncio.gather(
            service.record_slot(OWNER_ID, profile.id, 1, "prompt 1", SAMPLE_AUDIO),
            service.record_slot(OWNER_ID, profile.id, 2, "prompt 2", SAMPLE_AUDIO),
        )

        assert len(provider.created) == 1
        assert VoiceModelStatus.READY in [r.voice_model_status for r in results]
        stored = await profiles.get(profile.id, OWNER_ID)
        assert stored.voice_model_status == VoiceModelStatus.READY


class TestClearSlot:
    """Recording removal."""

    async def test_clear_empty_slot_changes_nothing(self, service, profile, provider):
        result = await service.clear_slot(OWNER_ID, profile.id, 1)

        assert result.removed is False
        assert result.voice_model_status == VoiceModelStatus.NOT_SUBMITTED
        assert provider.deleted == []

    async def test_clear_demotes_ready_voice(self, service, profile, provider):
        await record_all(service, profile.id)

        result = await service.clear_slot(OWNER_ID, profile.id, 0)

        assert result.removed is True
        assert result.voice_model_status == VoiceModelStatus.TRAINING
        assert provider.deleted == ["voice-1"]

    async def test_clear_last_slot(self, service, profile):
        await service.record_slot(OWNER_ID, profile.id, 1, "prompt", SAMPLE_AUDIO)

        result = await service.clear_slot(OWNER_ID, profile.id, 1)

        assert result.voice_model_status == VoiceModelStatus.NOT_SUBMITTED

    async def test_clear_invalid_index(self, service, profile):
        with pytest.raises(InvalidSlotIndexError):
            await service.clear_slot(OWNER_ID, profile.id, -1)


class TestCreateMessage:
    """Message synthesis through the service."""

    async def test_not_ready_makes_no_provider_call(self, service, messages, profile, provider):
        await service.record_slot(OWNER_ID, profile.id, 0, "prompt", SAMPLE_AUDIO)

        with pytest.raises(VoiceNotReadyError):
            await service.create_message(
                OWNER_ID, profile.id, "Hello", MessageCategory.OTHER, "Hi there"
            )

        assert provider.synthesized == []
        assert await messages.list_for_profile(profile.id, OWNER_ID) == []

    async def test_ready_creates_message(self, service, profile, provider):
        await record_all(service, profile.id)

        message = await service.create_message(
            OWNER_ID,
            profile.id,
            "Birthday",
            MessageCategory.BIRTHDAY,
            "a" * 750,
            is_private=True,
        )

        assert message.duration == 60
        assert message.category == MessageCategory.BIRTHDAY
        assert message.is_private is True
        assert message.audio.startswith(b"ID3")
        assert provider.synthesized == [("a" * 750, "voice-1")]

    async def test_synthesis_failure_stores_nothing(self, service, messages, profile, provider):
        await record_all(service, profile.id)
        provider.fail_synthesize = True

        with pytest.raises(SynthesisFailedError):
            await service.create_message(
                OWNER_ID, profile.id, "Advice", MessageCategory.ADVICE, "Be kind"
            )

        assert await messages.list_for_profile(profile.id, OWNER_ID) == []

    async def test_message_scoped_to_owner(self, service, profile):
        await record_all(service, profile.id)
        message = await service.create_message(
            OWNER_ID, profile.id, "Story", MessageCategory.STORY, "Once upon a time"
        )

        with pytest.raises(NotFoundError):
            await service.get_message(OTHER_OWNER_ID, message.id)
        with pytest.raises(NotFoundError):
            await service.delete_message(OTHER_OWNER_ID, message.id)

        assert (await service.get_message(OWNER_ID, message.id)).id == message.id

    async def test_demotion_waits_for_synthesis_in_progress(self, service, messages, profile, provider):
        await record_all(service, profile.id)
        provider.synthesize_delay = 0.2

        creating = asyncio.create_task(
            service.create_message(OWNER_ID, profile.id, "Love", MessageCategory.LOVE, "Always")
        )
        while not provider.synthesized:
            await asyncio.sleep(0.01)

        cleared = await service.clear_slot(OWNER_ID, profile.id, 0)
        message = await creating

        assert cleared.voice_model_status == VoiceModelStatus.TRAINING
        assert provider.completed == [("synthesize", "voice-1"), ("delete_voice", "voice-1")]
        assert [m.id for m in await messages.list_for_profile(profile.id, OWNER_ID)] == [message.id]

    async def test_concurrent_clear_never_stores_message_after_demotion(self, service, messages, profile, provider):
        await record_all(service, profile.id)
        provider.synthesize_delay = 0.2

        created, _ = await asyncio.gather(
            service.create_message(OWNER_ID, profile.id, "Love", MessageCategory.LOVE, "Always"),
            service.clear_slot(OWNER_ID, profile.id, 0),
            return_exceptions=True,
        )

        stored = await messages.list_for_profile(profile.id, OWNER_ID)
        if isinstance(created, VoiceNotReadyError):
            assert stored == []
            assert provider.synthesized == []
        else:
            assert [m.id for m in stored] == [created.id]
            assert provider.completed == [("synthesize", "voice-1"), ("delete_voice", "voice-1")]


class TestDeleteProfile:
    """Profile removal and remote cleanup."""

    async def test_releases_voice_and_orphans_messages(
        self, service, slots, messages, profiles, profile, provider
    ):
        await record_all(service, profile.id)
        message = await service.create_message(
            OWNER_ID, profile.id, "Love", MessageCategory.LOVE, "Always with you"
        )

        await service.delete_profile(OWNER_ID, profile.id)

        assert provider.deleted == ["voice-1"]
        assert await profiles.get(profile.id, OWNER_ID) is None
        assert await slots.count(profile.id) == 0
        kept = await messages.get(message.id, OWNER_ID)
        assert kept is not None
        assert kept.profile_id is None

    async def test_cleanup_failure_does_not_block_deletion(self, service, profiles, profile, provider):
        await record_all(service, profile.id)
        provider.fail_delete = True

        await service.delete_profile(OWNER_ID, profile.id)

        assert await profiles.get(profile.id, OWNER_ID) is None

    async def test_other_owner(self, service, profiles, profile, provider):
        await record_all(service, profile.id)

        with pytest.raises(NotFoundError):
            await service.delete_profile(OTHER_OWNER_ID, profile.id)

        assert provider.deleted == []
        assert await profiles.get(profile.id, OWNER_ID) is not None


class TestProfiles:
    """Profile listing and editing."""

    async def test_list_includes_counts(self, service, profile):
        await record_all(service, profile.id, [0, 1])
        await service.create_profile(OWNER_ID, "Walter", "grandfather")
        await service.create_profile(OTHER_OWNER_ID, "Someone", "friend")

        overviews = await service.list_profiles(OWNER_ID)

        counts = {o.profile.name: o.recordings_count for o in overviews}
        assert counts == {"Rose": 2, "Walter": 0}

    async def test_update_editable_fields(self, service, profile):
        overview = await service.update_profile(OWNER_ID, profile.id, {"notes": "Sang in the choir"})

        assert overview.profile.notes == "Sang in the choir"
        assert overview.profile.name == "Rose"

    async def test_voice_fields_not_editable(self, service, profile):
        with pytest.raises(ValidationError):
            await service.update_profile(OWNER_ID, profile.id, {"voice_model_status": "ready"})

    async def test_voice_status_summary(self, service, profile):
        await service.record_slot(OWNER_ID, profile.id, 2, "prompt", SAMPLE_AUDIO)

        summary = await service.voice_status(OWNER_ID, profile.id)

        assert summary.voice_model_status == VoiceModelStatus.TRAINING
        assert summary.recording_count == 1
        assert summary.total_required == 3
