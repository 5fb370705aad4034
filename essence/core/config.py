"""
Application configuration with Pydantic settings.

Supports:
- Environment variables (prefixed with ESSENCE_)
- .env files
- Validation
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # General
    service_name: str = Field(default="essence-voice", description="Service name")
    environment: str = Field(default="development", description="Deployment environment")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Server
    api_host: str = Field(default="0.0.0.0", description="Bind address")
    api_port: int = Field(default=8000, description="Bind port")
    api_workers: int = Field(
        default=1,
        ge=1,
        description=(
            "Uvicorn worker processes. Voice creation is serialized per process only; "
            "with more than one worker a duplicate remote voice can be created and is then released"
        ),
    )

    # CORS
    cors_origins: List[str] = Field(
        default=["*"],
        description="Allowed CORS origins",
    )

    # Database
    database_url: str = Field(
        default="postgresql://localhost:5432/essence",
        description="Database URL (postgresql:// is upgraded to asyncpg)",
    )

    # Authentication
    jwt_secret: Optional[str] = Field(
        default=None,
        description="JWT signing secret",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT algorithm")
    jwt_issuer: Optional[str] = Field(
        default=None,
        description="JWT issuer",
    )

    # Voice provider (ElevenLabs)
    elevenlabs_api_key: Optional[str] = Field(
        default=None,
        description="ElevenLabs API key",
    )
    elevenlabs_base_url: str = Field(
        default="https://api.elevenlabs.io/v1",
        description="ElevenLabs API base URL",
    )
    elevenlabs_model_id: str = Field(
        default="eleven_monolingual_v1",
        description="Text-to-speech model",
    )
    voice_stability: float = Field(default=0.5, ge=0.0, le=1.0)
    voice_similarity_boost: float = Field(default=0.8, ge=0.0, le=1.0)
    voice_style: float = Field(default=0.0, ge=0.0, le=1.0)
    voice_use_speaker_boost: bool = Field(default=True)

    # Provider call policy
    provider_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout applied to every provider call",
    )
    provider_failure_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive failures before the provider circuit opens",
    )
    provider_recovery_timeout_seconds: float = Field(
        default=30.0,
        description="Seconds before an open provider circuit is retried",
    )

    # Voice training
    training_slot_count: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Number of recordings required to clone a voice",
    )
    max_message_length: int = Field(
        default=2000,
        ge=1,
        description="Maximum characters of a synthesized message",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ESSENCE_",
        case_sensitive=False,
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
