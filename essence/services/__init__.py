"""Domain services of the voice legacy API."""

from essence.services.slots import RecordingSlotStore
from essence.services.provider import VoiceProviderGateway, ElevenLabsGateway, VoiceSample
from essence.services.lifecycle import VoiceLifecycleController, decide_transition
from essence.services.synthesis import MessageSynthesisService, estimate_duration
from essence.services.legacy import LegacyService
from essence.services.circuit_breaker import CircuitBreaker

__all__ = [
    "RecordingSlotStore",
    "VoiceProviderGateway",
    "ElevenLabsGateway",
    "VoiceSample",
    "VoiceLifecycleController",
    "decide_transition",
    "MessageSynthesisService",
    "estimate_duration",
    "LegacyService",
    "CircuitBreaker",
]
