"""
Pydantic models for API request/response schemas.
"""

import base64
import binascii
import re
from datetime import datetime
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class VoiceModelStatus(str, Enum):
    """Status of a profile's cloned voice."""
    NOT_SUBMITTED = "not_submitted"  # No recordings yet
    TRAINING = "training"            # Some recordings, or creation pending
    READY = "ready"                  # Remote voice exists, messages allowed


class MessageCategory(str, Enum):
    BIRTHDAY = "birthday"
    ADVICE = "advice"
    STORY = "story"
    LOVE = "love"
    OTHER = "other"


_DATA_URL_PREFIX = re.compile(r"^data:audio/[a-z0-9.+-]+;base64,", re.IGNORECASE)


def decode_audio(value: str) -> bytes:
    """Decode base64 audio, accepting an optional ``data:audio/...;base64,`` prefix."""
    cleaned = _DATA_URL_PREFIX.sub("", value.strip())
    try:
        decoded = base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 audio: {e}")
    if not decoded:
        raise ValueError("Audio payload is empty")
    return decoded


def encode_audio(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


# ============================================================================
# Profiles
# ============================================================================

class ProfileCreate(BaseModel):
    """Request to create a profile."""
    name: str = Field(..., min_length=1, max_length=100)
    relation: str = Field(..., min_length=1, max_length=100)
    notes: str = Field(default="", max_length=2000)


class ProfileUpdate(BaseModel):
    """Editable profile fields. Voice status is server-controlled."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    relation: Optional[str] = Field(default=None, min_length=1, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=2000)

    model_config = ConfigDict(extra="forbid")


class ProfileResponse(BaseModel):
    """Profile details."""
    id: str
    name: str
    relation: str
    notes: str
    voice_model_status: VoiceModelStatus
    has_voice: bool
    recordings_count: int = 0
    messages_count: int = 0
    created_at: datetime
    updated_at: datetime


class ProfileList(BaseModel):
    profiles: List[ProfileResponse]
    total: int


class VoiceStatusResponse(BaseModel):
    voice_model_status: VoiceModelStatus
    recording_count: int
    total_required: int


# ============================================================================
# Recordings
# ============================================================================

class RecordingUpload(BaseModel):
    """One training recording for a slot."""
    prompt_text: str = Field(..., min_length=1, description="Prompt the user read aloud")
    audio_base64: str = Field(..., description="Base64 encoded audio, data URL prefix allowed")
    quality: str = Field(default="good", max_length=32)

    @field_validator("audio_base64")
    @classmethod
    def validate_audio(cls, v):
        decode_audio(v)
        return v

    def audio_bytes(self) -> bytes:
        return decode_audio(self.audio_base64)


class RecordingResponse(BaseModel):
    slot_index: int
    prompt_text: str
    quality: str
    audio_base64: str
    created_at: datetime


class RecordingList(BaseModel):
    recordings: List[RecordingResponse]
    total_required: int


class RecordSlotResponse(BaseModel):
    recording: RecordingResponse
    voice_model_status: VoiceModelStatus


class ClearSlotResponse(BaseModel):
    removed: bool
    voice_model_status: VoiceModelStatus


# ============================================================================
# Messages
# ============================================================================

class MessageCreate(BaseModel):
    """Request to synthesize a message. Length limits are enforced by the service."""
    title: str = Field(..., min_length=1, max_length=200)
    category: MessageCategory = MessageCategory.OTHER
    content: str
    is_private: bool = False


class MessageResponse(BaseModel):
    id: str
    profile_id: Optional[str]
    title: str
    category: MessageCategory
    content: str
    duration: int
    is_private: bool
    has_audio: bool
    created_at: datetime


class MessageList(BaseModel):
    messages: List[MessageResponse]
    total: int


# ============================================================================
# Training prompts
# ============================================================================

class TrainingPrompt(BaseModel):
    slot_index: int
    text: str


class TrainingPromptList(BaseModel):
    prompts: List[TrainingPrompt]
    total_required: int
