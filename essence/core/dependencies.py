"""
Dependency Injection Container.

This provides:
- Centralized dependency management
- Easy testing with overrides
- Lazy initialization
- Proper lifecycle management
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict

from fastapi import Request

from essence.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Ref:
    """Factory argument resolved to another registered dependency."""
    name: str


class Container:
    """
    Dependency injection container.

    Usage:
        container = Container()
        container.register("database", DatabaseManager, database_url=url)
        container.register("profiles", ProfileRepository, db=Ref("database"))
        profiles = await container.get("profiles")
    """

    def __init__(self):
        self._factories: Dict[str, tuple] = {}
        self._instances: Dict[str, Any] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._initialized = False

    def register(
        self,
        name: str,
        factory: Callable[..., Any],
        singleton: bool = True,
        **kwargs,
    ) -> None:
        """
        Register a dependency.

        Args:
            name: Dependency name
            factory: Class or factory function
            singleton: If True, only one instance is created
            **kwargs: Arguments to pass to factory, ``Ref`` values are resolved
        """
        self._factories[name] = (factory, singleton, kwargs)
        self._locks[name] = asyncio.Lock()

    async def get(self, name: str) -> Any:
        """Get a dependency instance, creating it on first use."""
        if name in self._instances:
            return self._instances[name]

        if name not in self._factories:
            raise KeyError(f"Dependency not registered: {name}")

        factory, singleton, kwargs = self._factories[name]

        async with self._locks[name]:
            # Double-check after acquiring lock
            if singleton and name in self._instances:
                return self._instances[name]

            resolved = {}
            for key, value in kwargs.items():
                resolved[key] = await self.get(value.name) if isinstance(value, Ref) else value

            logger.info(f"Creating dependency: {name}")
            instance = factory(**resolved)

            if hasattr(instance, "initialize"):
                await instance.initialize()

            if singleton:
                self._instances[name] = instance

            return instance

    async def initialize_all(self) -> None:
        """Initialize all registered dependencies."""
        if self._initialized:
            return

        logger.info("Initializing all dependencies...")
        for name in self._factories:
            await self.get(name)

        self._initialized = True
        logger.info("All dependencies initialized")

    async def shutdown(self) -> None:
        """Shutdown all dependencies, most recently created first."""
        logger.info("Shutting down dependencies...")

        for name, instance in reversed(list(self._instances.items())):
            if hasattr(instance, "shutdown"):
                logger.info(f"Shutting down: {name}")
                await instance.shutdown()
            elif hasattr(instance, "close"):
                await instance.close()

        self._instances.clear()
        self._initialized = False
        logger.info("All dependencies shut down")

    def override(self, name: str, instance: Any) -> None:
        """
        Override a dependency with a specific instance (for testing).

        Args:
            name: Dependency name
            instance: Instance to use
        """
        self._instances[name] = instance


def build_container(settings) -> Container:
    """
    Set up the dependency container with all services.

    Args:
        settings: Application settings

    Returns:
        Configured container
    """
    from essence.database import DatabaseManager, MessageRepository, ProfileRepository
    from essence.services.legacy import LegacyService
    from essence.services.lifecycle import VoiceLifecycleController
    from essence.services.provider import ElevenLabsGateway
    from essence.services.slots import RecordingSlotStore
    from essence.services.synthesis import MessageSynthesisService

    container = Container()

    container.register("database", DatabaseManager, database_url=settings.database_url)
    container.register("profiles", ProfileRepository, db=Ref("database"))
    container.register("messages", MessageRepository, db=Ref("database"))
    container.register(
        "slots",
        RecordingSlotStore,
        db=Ref("database"),
        slot_count=settings.training_slot_count,
    )

    # External voice provider
    container.register(
        "voice_provider",
        ElevenLabsGateway,
        api_key=settings.elevenlabs_api_key,
        base_url=settings.elevenlabs_base_url,
        model_id=settings.elevenlabs_model_id,
        voice_settings={
            "stability": settings.voice_stability,
            "similarity_boost": settings.voice_similarity_boost,
            "style": settings.voice_style,
            "use_speaker_boost": settings.voice_use_speaker_boost,
        },
        timeout=settings.provider_timeout_seconds,
        failure_threshold=settings.provider_failure_threshold,
        recovery_timeout=settings.provider_recovery_timeout_seconds,
    )

    container.register(
        "lifecycle",
        VoiceLifecycleController,
        profiles=Ref("profiles"),
        slots=Ref("slots"),
        provider=Ref("voice_provider"),
        provider_timeout=settings.provider_timeout_seconds,
    )
    container.register(
        "synthesis",
        MessageSynthesisService,
        provider=Ref("voice_provider"),
        max_length=settings.max_message_length,
        provider_timeout=settings.provider_timeout_seconds,
    )
    container.register(
        "legacy",
        LegacyService,
        profiles=Ref("profiles"),
        messages=Ref("messages"),
        slots=Ref("slots"),
        controller=Ref("lifecycle"),
        synthesis=Ref("synthesis"),
    )

    return container


def get_container(request: Request) -> Container:
    return request.app.state.container


async def get_legacy_service(request: Request):
    """FastAPI dependency for the owner-facing service."""
    return await get_container(request).get("legacy")
