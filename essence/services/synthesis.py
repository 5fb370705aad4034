"""
Message synthesis.

Validates a message against the profile's voice state, renders it through
the voice provider and estimates how long the audio runs.
"""

import asyncio
from dataclasses import dataclass

from essence.core.errors import (
    ContentTooLongError,
    EmptyContentError,
    ProviderError,
    SynthesisFailedError,
    VoiceNotReadyError,
)
from essence.core.logging import get_logger
from essence.core.metrics import get_metrics
from essence.database import Profile
from essence.models import VoiceModelStatus
from essence.services.provider import VoiceProviderGateway

logger = get_logger(__name__)

CHARS_PER_WORD = 5
WORDS_PER_MINUTE = 150
MIN_DURATION_SECONDS = 5
DEFAULT_MAX_LENGTH = 2000


def estimate_duration(text: str) -> int:
    """Spoken length in whole seconds, never below MIN_DURATION_SECONDS."""
    seconds = (len(text) * 60) // (CHARS_PER_WORD * WORDS_PER_MINUTE)
    return max(seconds, MIN_DURATION_SECONDS)


@dataclass
class SynthesisResult:
    audio: bytes
    duration_seconds: int


class MessageSynthesisService:

    def __init__(
        self,
        provider: VoiceProviderGateway,
        max_length: int = DEFAULT_MAX_LENGTH,
        provider_timeout: float = 60.0,
    ):
        self.provider = provider
        self.max_length = max_length
        self.provider_timeout = provider_timeout
        self._metrics = get_metrics()

    def validate(self, profile: Profile, text: str) -> None:
        """Raise the first failing precondition. Never touches the provider."""
        status = VoiceModelStatus(profile.voice_model_status)
        if status != VoiceModelStatus.READY or not profile.voice_handle:
            raise VoiceNotReadyError(profile.id, status.value)

        if not text or not text.strip():
            raise EmptyContentError()

        if len(text) > self.max_length:
            raise ContentTooLongError(len(text), self.max_length)

    async def synthesize(self, profile: Profile, text: str) -> SynthesisResult:
        self.validate(profile, text)

        try:
            audio = await asyncio.wait_for(
                self.provider.synthesize(text, profile.voice_handle),
                timeout=self.provider_timeout,
            )
        except asyncio.TimeoutError:
            self._metrics.record_message(False)
            raise SynthesisFailedError(
                internal_message=f"Synthesis timed out after {self.provider_timeout}s"
            )
        except ProviderError as e:
            self._metrics.record_message(False)
            raise SynthesisFailedError(internal_message=e.internal_message)

        duration = estimate_duration(text)
        self._metrics.record_message(True, duration)
        logger.info(
            "Message synthesized",
            extra={
                "profile_id": profile.id,
                "text_length": len(text),
                "audio_bytes": len(audio),
                "duration_seconds": duration,
            },
        )
        return SynthesisResult(audio=audio, duration_seconds=duration)
