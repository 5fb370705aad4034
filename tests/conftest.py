"""
Pytest configuration and shared fixtures.
"""

import asyncio
import base64
from typing import Generator, List, Optional, Sequence, Tuple

import jwt
import pytest
from fastapi.testclient import TestClient

from essence.app import create_app
from essence.core.config import Settings
from essence.core.dependencies import build_container
from essence.core.errors import ProviderError
from essence.database import DatabaseManager, MessageRepository, ProfileRepository
from essence.services.legacy import LegacyService
from essence.services.lifecycle import VoiceLifecycleController
from essence.services.provider import VoiceProviderGateway, VoiceSample
from essence.services.slots import RecordingSlotStore
from essence.services.synthesis import MessageSynthesisService

JWT_SECRET = "test-secret"
OWNER_ID = "owner-1"
OTHER_OWNER_ID = "owner-2"
SAMPLE_AUDIO = b"RIFF\x24\x00\x00\x00WAVEfmt fake-sample"


class FakeVoiceProvider(VoiceProviderGateway):
    """In-memory provider that records every call."""

    def __init__(self):
        self.created: List[Tuple[str, List[str]]] = []
        self.synthesized: List[Tuple[str, str]] = []
        self.deleted: List[str] = []
        # (operation, voice handle) in the order calls completed
        self.completed: List[Tuple[str, str]] = []
        self.fail_create = False
        self.fail_synthesize = False
        self.fail_delete = False
        self.create_delay = 0.0
        self.synthesize_delay = 0.0
        self.before_create = None
        self._next_id = 0

    async def create_voice(
        self,
        name: str,
        samples: Sequence[VoiceSample],
        description: str = "",
    ) -> str:
        self.created.append((name, [s.filename for s in samples]))
        if self.before_create is not None:
            await self.before_create()
        if self.create_delay:
            await asyncio.sleep(self.create_delay)
        if self.fail_create:
            raise ProviderError("create_voice", internal_message="fake create failure")
        self._next_id += 1
        return f"voice-{self._next_id}"

    async def synthesize(self, text: str, voice_handle: str) -> bytes:
        self.synthesized.append((text, voice_handle))
        if self.synthesize_delay:
            await asyncio.sleep(self.synthesize_delay)
        if self.fail_synthesize:
            raise ProviderError("synthesize", internal_message="fake synthesis failure")
        self.completed.append(("synthesize", voice_handle))
        return b"ID3fake-mpeg:" + text[:16].encode()

    async def delete_voice(self, voice_handle: str) -> None:
        self.deleted.append(voice_handle)
        if self.fail_delete:
            raise ProviderError("delete_voice", internal_message="fake delete failure")
        self.completed.append(("delete_voice", voice_handle))


def make_token(owner_id: str, secret: str = JWT_SECRET, **claims) -> str:
    return jwt.encode({"sub": owner_id, **claims}, secret, algorithm="HS256")


def audio_b64(data: bytes = SAMPLE_AUDIO) -> str:
    return base64.b64encode(data).decode("ascii")


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'essence.db'}",
        jwt_secret=JWT_SECRET,
        elevenlabs_api_key=None,
        provider_timeout_seconds=5.0,
        training_slot_count=3,
        max_message_length=2000,
        log_level="WARNING",
    )


@pytest.fixture
def provider() -> FakeVoiceProvider:
    return FakeVoiceProvider()


@pytest.fixture
async def db(settings):
    database = DatabaseManager(settings.database_url)
    await database.initialize()
    yield database
    await database.shutdown()


@pytest.fixture
def profiles(db) -> ProfileRepository:
    return ProfileRepository(db)


@pytest.fixture
def messages(db) -> MessageRepository:
    return MessageRepository(db)


@pytest.fixture
def slots(db) -> RecordingSlotStore:
    return RecordingSlotStore(db, slot_count=3)


@pytest.fixture
def controller(profiles, slots, provider) -> VoiceLifecycleController:
    return VoiceLifecycleController(profiles, slots, provider, provider_timeout=5.0)


@pytest.fixture
def synthesis(provider) -> MessageSynthesisService:
    return MessageSynthesisService(provider, max_length=2000, provider_timeout=5.0)


@pytest.fixture
def service(profiles, messages, slots, controller, synthesis) -> LegacyService:
    return LegacyService(profiles, messages, slots, controller, synthesis)


@pytest.fixture
async def profile(profiles):
    return await profiles.create(OWNER_ID, "Rose", "grandmother", "Loved gardening")


@pytest.fixture
def fill_slots(slots, controller):
    """Upload recordings to the given slots, recomputing after each one."""

    async def _fill(profile_id: str, indexes: Optional[Sequence[int]] = None):
        status = None
        for index in indexes if indexes is not None else range(slots.slot_count):
            await slots.upsert(profile_id, index, f"prompt {index}", SAMPLE_AUDIO)
            status = await controller.on_slots_changed(profile_id)
        return status

    return _fill


@pytest.fixture
def app(settings, provider):
    """Test FastAPI app with the fake voice provider."""
    container = build_container(settings)
    container.override("voice_provider", provider)
    return create_app(settings, testing=True, container=container)


@pytest.fixture
def client(app) -> Generator:
    """Sync test client."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token(OWNER_ID)}"}


@pytest.fixture
def other_auth_headers():
    return {"Authorization": f"Bearer {make_token(OTHER_OWNER_ID)}"}
