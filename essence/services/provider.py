"""
Voice provider gateway.

The rest of the service only sees ``VoiceProviderGateway``: create a voice
from ordered samples, synthesize text with a voice, delete a voice. Every
failure is raised as ``ProviderError``; callers decide whether to absorb it.

``ElevenLabsGateway`` is the production implementation.
"""

import abc
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Collection

import httpx

from essence.core.errors import ProviderError
from essence.core.logging import get_logger, log_execution_time
from essence.core.metrics import get_metrics
from essence.services.circuit_breaker import CircuitBreaker

logger = get_logger(__name__)


@dataclass
class VoiceSample:
    """One training sample submitted for voice creation."""
    filename: str
    audio: bytes
    content_type: str = "audio/wav"


class VoiceProviderGateway(abc.ABC):
    """Opaque voice-cloning and text-to-speech capability."""

    @abc.abstractmethod
    async def create_voice(
        self,
        name: str,
        samples: Sequence[VoiceSample],
        description: str = "",
    ) -> str:
        """Create a remote voice from samples and return its handle."""

    @abc.abstractmethod
    async def synthesize(self, text: str, voice_handle: str) -> bytes:
        """Render text with a voice and return the audio bytes."""

    @abc.abstractmethod
    async def delete_voice(self, voice_handle: str) -> None:
        """Delete a remote voice."""

    def get_health_info(self) -> Dict[str, Any]:
        return {"provider": type(self).__name__}


class ElevenLabsGateway(VoiceProviderGateway):
    """
    ElevenLabs REST client.

    - POST /voices/add (multipart) creates an instant voice clone
    - POST /text-to-speech/{voice_id} renders speech
    - DELETE /voices/{voice_id} removes a voice
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = "https://api.elevenlabs.io/v1",
        model_id: str = "eleven_monolingual_v1",
        voice_settings: Optional[Dict[str, Any]] = None,
        timeout: float = 60.0,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model_id = model_id
        self.voice_settings = voice_settings or {
            "stability": 0.5,
            "similarity_boost": 0.8,
            "style": 0.0,
            "use_speaker_boost": True,
        }
        self.timeout = timeout
        self._http_client: Optional[httpx.AsyncClient] = None
        self._circuit_breaker = CircuitBreaker(
            name="elevenlabs",
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
        )
        self._metrics = get_metrics()

        if not api_key:
            logger.warning("ElevenLabs API key not configured, provider calls will fail")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def initialize(self) -> None:
        """Called by the dependency container."""
        await self._get_client()

    async def shutdown(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"xi-api-key": self.api_key or ""},
            )
        return self._http_client

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        """Pull the message out of an ElevenLabs error body."""
        try:
            detail = response.json().get("detail")
        except ValueError:
            detail = None
        if isinstance(detail, dict):
            detail = detail.get("message") or detail.get("status")
        return f"HTTP {response.status_code}: {detail or response.reason_phrase}"

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        ok_statuses: Collection[int] = (),
        **kwargs,
    ) -> httpx.Response:
        if not self.configured:
            raise ProviderError(operation, internal_message="ElevenLabs API key is not configured")

        self._circuit_breaker.before_call(operation)
        client = await self._get_client()
        start_time = time.perf_counter()

        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            self._circuit_breaker.record_failure()
            self._metrics.record_provider_call(operation, False, time.perf_counter() - start_time)
            raise ProviderError(operation, internal_message=f"{type(e).__name__}: {e}")

        duration = time.perf_counter() - start_time
        if response.is_error and response.status_code not in ok_statuses:
            # Client errors say nothing about provider health
            if response.status_code >= 500 or response.status_code == 429:
                self._circuit_breaker.record_failure()
            self._metrics.record_provider_call(operation, False, duration)
            raise ProviderError(operation, internal_message=self._error_detail(response))

        self._circuit_breaker.record_success()
        self._metrics.record_provider_call(operation, True, duration)
        return response

    @log_execution_time(logger)
    async def create_voice(
        self,
        name: str,
        samples: Sequence[VoiceSample],
        description: str = "",
    ) -> str:
        if not samples:
            raise ProviderError("create_voice", internal_message="No samples to submit")

        files = [
            ("files", (sample.filename, sample.audio, sample.content_type))
            for sample in samples
        ]
        response = await self._request(
            "create_voice",
            "POST",
            "/voices/add",
            data={"name": name, "description": description},
            files=files,
        )

        try:
            voice_id = response.json()["voice_id"]
        except (ValueError, KeyError, TypeError):
            raise ProviderError("create_voice", internal_message="Response missing voice_id")

        logger.info(
            "Created remote voice",
            extra={"voice_handle": voice_id, "sample_count": len(samples)},
        )
        return voice_id

    @log_execution_time(logger)
    async def synthesize(self, text: str, voice_handle: str) -> bytes:
        response = await self._request(
            "synthesize",
            "POST",
            f"/text-to-speech/{voice_handle}",
            json={
                "text": text,
                "model_id": self.model_id,
                "voice_settings": self.voice_settings,
            },
            headers={"Accept": "audio/mpeg"},
        )
        return response.content

    @log_execution_time(logger)
    async def delete_voice(self, voice_handle: str) -> None:
        # Already gone counts as deleted
        response = await self._request(
            "delete_voice",
            "DELETE",
            f"/voices/{voice_handle}",
            ok_statuses=(404,),
        )
        logger.info(
            "Deleted remote voice",
            extra={"voice_handle": voice_handle, "status_code": response.status_code},
        )

    def get_health_info(self) -> Dict[str, Any]:
        return {
            "provider": "elevenlabs",
            "configured": self.configured,
            "circuit_breaker_state": self._circuit_breaker.state,
        }
