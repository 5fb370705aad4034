"""
Voice model lifecycle.

A profile's voice moves between ``not_submitted``, ``training`` and
``ready``. The status is recomputed from scratch whenever the number of
filled recording slots changes:

    count == 0          -> not_submitted, release any remote voice
    0 < count < N       -> training, release any remote voice
    count >= N, handle  -> ready, nothing to create
    count >= N, none    -> create the remote voice; ready on success,
                           training on provider failure

Creating a remote voice is expensive and happens at most once per complete
slot set. Releasing one is best effort: failures are logged and the local
handle is cleared anyway. Provider failures never fail the upload or
delete that triggered the recompute.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Dict, Optional, TypeVar

from essence.core.errors import NotFoundError, ProviderError
from essence.core.logging import get_logger
from essence.core.metrics import get_metrics
from essence.database import Profile, ProfileRepository
from essence.models import VoiceModelStatus
from essence.services.provider import VoiceProviderGateway, VoiceSample
from essence.services.slots import RecordingSlotStore

logger = get_logger(__name__)

T = TypeVar("T")


class LifecycleAction(str, Enum):
    NONE = "none"
    CREATE_VOICE = "create_voice"
    RELEASE_VOICE = "release_voice"


@dataclass(frozen=True)
class Transition:
    """Outcome of the lifecycle rule. ``target`` assumes the action succeeds."""
    previous: VoiceModelStatus
    target: VoiceModelStatus
    action: LifecycleAction = LifecycleAction.NONE

    @property
    def changed(self) -> bool:
        return self.previous != self.target


def decide_transition(
    count: int,
    handle_present: bool,
    previous_status: VoiceModelStatus,
    required: int,
) -> Transition:
    """Pure lifecycle rule over the filled-slot count and handle presence."""
    release = LifecycleAction.RELEASE_VOICE if handle_present else LifecycleAction.NONE

    if count <= 0:
        return Transition(previous_status, VoiceModelStatus.NOT_SUBMITTED, release)

    if count < required:
        return Transition(previous_status, VoiceModelStatus.TRAINING, release)

    if handle_present:
        return Transition(previous_status, VoiceModelStatus.READY)

    return Transition(previous_status, VoiceModelStatus.READY, LifecycleAction.CREATE_VOICE)


class _LockEntry:
    __slots__ = ("lock", "owner", "depth", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.owner: Optional[asyncio.Task] = None
        self.depth = 0
        self.users = 0


class ProfileLocks:
    """
    Per-profile async locks, re-entrant within a task.

    Entries exist only while someone holds or waits for them.
    """

    def __init__(self):
        self._entries: Dict[str, _LockEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def is_locked(self, profile_id: str) -> bool:
        entry = self._entries.get(profile_id)
        return entry is not None and entry.lock.locked()

    @asynccontextmanager
    async def hold(self, profile_id: str):
        task = asyncio.current_task()
        entry = self._entries.get(profile_id)

        if entry is not None and entry.owner is task:
            entry.depth += 1
            try:
                yield
            finally:
                entry.depth -= 1
        else:
            if entry is None:
                entry = self._entries[profile_id] = _LockEntry()
            entry.users += 1
            try:
                async with entry.lock:
                    entry.owner = task
                    entry.depth = 1
                    try:
                        yield
                    finally:
                        entry.owner = None
                        entry.depth = 0
            finally:
                entry.users -= 1
                if entry.users == 0:
                    self._entries.pop(profile_id, None)


class VoiceLifecycleController:
    """Drives Profile.voice_model_status and Profile.voice_handle."""

    def __init__(
        self,
        profiles: ProfileRepository,
        slots: RecordingSlotStore,
        provider: VoiceProviderGateway,
        provider_timeout: float = 60.0,
        locks: Optional[ProfileLocks] = None,
    ):
        self.profiles = profiles
        self.slots = slots
        self.provider = provider
        self.provider_timeout = provider_timeout
        self.locks = locks or ProfileLocks()
        self._metrics = get_metrics()

    async def _call_provider(self, operation: str, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.provider_timeout)
        except asyncio.TimeoutError:
            raise ProviderError(
                operation,
                internal_message=f"Timed out after {self.provider_timeout}s",
            )

    async def on_slots_changed(self, profile_id: str) -> VoiceModelStatus:
        """Recompute the profile's voice status from its current slot count."""
        async with self.locks.hold(profile_id):
            profile = await self.profiles.get_by_id(profile_id)
            if profile is None:
                raise NotFoundError("profile", profile_id)

            previous = VoiceModelStatus(profile.voice_model_status)
            count = await self.slots.count(profile_id)
            transition = decide_transition(
                count,
                profile.voice_handle is not None,
                previous,
                self.slots.slot_count,
            )

            if transition.action == LifecycleAction.CREATE_VOICE:
                status = await self._create_voice(profile)
            elif transition.action == LifecycleAction.RELEASE_VOICE:
                await self._release_voice(profile.id, profile.voice_handle)
                await self.profiles.update(
                    profile.id,
                    profile.owner_id,
                    {"voice_model_status": transition.target, "voice_handle": None},
                )
                status = transition.target
            else:
                if transition.changed:
                    await self.profiles.update(
                        profile.id,
                        profile.owner_id,
                        {"voice_model_status": transition.target},
                    )
                status = transition.target

        self._metrics.record_transition(previous.value, status.value)
        logger.info(
            "Voice status recomputed",
            extra={
                "profile_id": profile_id,
                "slot_count": count,
                "previous_status": previous.value,
                "voice_status": status.value,
                "action": transition.action.value,
            },
        )
        return status

    async def on_profile_deleted(self, profile_id: str) -> None:
        """Release the profile's remote voice before the profile goes away."""
        async with self.locks.hold(profile_id):
            profile = await self.profiles.get_by_id(profile_id)
            if profile is None or profile.voice_handle is None:
                return

            await self._release_voice(profile.id, profile.voice_handle)
            await self.profiles.update(
                profile.id,
                profile.owner_id,
                {"voice_model_status": VoiceModelStatus.NOT_SUBMITTED, "voice_handle": None},
            )

    async def _create_voice(self, profile: Profile) -> VoiceModelStatus:
        slots = await self.slots.list_ordered_by_slot(profile.id)
        samples = [
            VoiceSample(filename=f"slot-{slot.slot_index}.wav", audio=slot.audio)
            for slot in slots
        ]

        try:
            handle = await self._call_provider(
                "create_voice",
                self.provider.create_voice(
                    profile.name,
                    samples,
                    description=f"Voice of {profile.name} ({profile.relation})",
                ),
            )
        except ProviderError as e:
            logger.warning(
                "Voice creation failed, staying in training",
                extra={"profile_id": profile.id, "error": e.internal_message},
            )
            if profile.voice_model_status != VoiceModelStatus.TRAINING:
                await self.profiles.update(
                    profile.id,
                    profile.owner_id,
                    {"voice_model_status": VoiceModelStatus.TRAINING},
                )
            return VoiceModelStatus.TRAINING

        if await self.profiles.promote_voice(profile.id, handle):
            return VoiceModelStatus.READY

        # Another worker stored a handle first; theirs wins
        logger.warning(
            "Voice handle already set, discarding the new voice",
            extra={"profile_id": profile.id, "voice_handle": handle},
        )
        await self._release_voice(profile.id, handle)
        current = await self.profiles.get_by_id(profile.id)
        if current is None:
            return VoiceModelStatus.NOT_SUBMITTED
        return VoiceModelStatus(current.voice_model_status)

    async def _release_voice(self, profile_id: str, voice_handle: str) -> bool:
        """Best-effort remote delete. Returns whether the provider confirmed it."""
        try:
            await self._call_provider("delete_voice", self.provider.delete_voice(voice_handle))
        except ProviderError as e:
            self._metrics.record_cleanup_failure()
            logger.warning(
                "Remote voice cleanup failed",
                extra={
                    "profile_id": profile_id,
                    "voice_handle": voice_handle,
                    "error": e.internal_message,
                },
            )
            return False
        return True
