"""
Database models and repositories for profiles, recordings and messages.

Uses SQLAlchemy with async support. PostgreSQL (asyncpg) in production,
SQLite (aiosqlite) for local development and tests.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional, List, Any, Dict, Mapping, Iterable
from contextlib import asynccontextmanager

from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, Text, LargeBinary,
    ForeignKey, Enum as SQLEnum, Index, UniqueConstraint,
    select, update, delete, func,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from essence.core.logging import get_logger
from essence.models import VoiceModelStatus, MessageCategory

logger = get_logger(__name__)

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


# =============================================================================
# Models
# =============================================================================

class Profile(Base):
    """A person whose voice is being preserved."""

    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    owner_id = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    relation = Column(String(255), nullable=False)
    notes = Column(Text, nullable=False, default="")

    # Server-controlled voice state
    voice_model_status = Column(
        SQLEnum(VoiceModelStatus, name="voice_model_status", values_callable=_enum_values),
        default=VoiceModelStatus.NOT_SUBMITTED,
        nullable=False,
    )
    voice_handle = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class RecordingSlot(Base):
    """One training recording, at most one row per (profile, slot)."""

    __tablename__ = "recording_slots"

    id = Column(String(36), primary_key=True, default=new_id)
    profile_id = Column(
        String(36),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    slot_index = Column(Integer, nullable=False)
    prompt_text = Column(Text, nullable=False)
    audio = Column(LargeBinary, nullable=False)
    quality = Column(String(32), nullable=False, default="good")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("profile_id", "slot_index", name="uq_recording_slots_profile_slot"),
    )


class Message(Base):
    """A synthesized message. Survives its profile with profile_id set to NULL."""

    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=new_id)
    owner_id = Column(String(255), nullable=False, index=True)
    profile_id = Column(
        String(36),
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
    )
    title = Column(String(255), nullable=False)
    category = Column(
        SQLEnum(MessageCategory, name="message_category", values_callable=_enum_values),
        default=MessageCategory.OTHER,
        nullable=False,
    )
    content = Column(Text, nullable=False)
    audio = Column(LargeBinary, nullable=True)
    duration = Column(Integer, nullable=False, default=0)
    is_private = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_messages_profile_created", "profile_id", "created_at"),
    )


# =============================================================================
# Database Manager
# =============================================================================

class DatabaseManager:
    """
    Async database manager.
    """

    def __init__(self, database_url: str):
        # Convert sync URL to async
        if database_url.startswith("postgresql://"):
            database_url = database_url.replace(
                "postgresql://", "postgresql+asyncpg://"
            )
        elif database_url.startswith("sqlite://"):
            database_url = database_url.replace("sqlite://", "sqlite+aiosqlite://")

        engine_kwargs: Dict[str, Any] = {"echo": False}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in database_url or database_url.endswith("://"):
                # One shared connection, otherwise every session sees an empty database
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_size"] = 10
            engine_kwargs["max_overflow"] = 20

        self.engine = create_async_engine(database_url, **engine_kwargs)
        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    async def initialize(self) -> None:
        """Called by the dependency container."""
        await self.create_tables()

    async def shutdown(self) -> None:
        await self.engine.dispose()

    async def create_tables(self):
        """Create all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(select(1))

    @asynccontextmanager
    async def session(self):
        """Get a database session."""
        async with self.async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise


# =============================================================================
# Repository Classes
# =============================================================================

class ProfileRepository:
    """Owner-scoped persistence of profiles."""

    # Fields update() accepts. voice_* are only written by the lifecycle controller.
    UPDATABLE_FIELDS = frozenset({"name", "relation", "notes", "voice_model_status", "voice_handle"})

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def create(
        self,
        owner_id: str,
        name: str,
        relation: str,
        notes: str = "",
    ) -> Profile:
        """Create a new profile with no voice."""
        async with self.db.session() as session:
            profile = Profile(
                owner_id=owner_id,
                name=name,
                relation=relation,
                notes=notes or "",
                voice_model_status=VoiceModelStatus.NOT_SUBMITTED,
            )
            session.add(profile)
            await session.flush()
            return profile

    async def get(self, profile_id: str, owner_id: str) -> Optional[Profile]:
        """Get a profile, or None when absent or owned by someone else."""
        async with self.db.session() as session:
            result = await session.execute(
                select(Profile).where(
                    Profile.id == profile_id,
                    Profile.owner_id == owner_id,
                )
            )
            return result.scalar_one_or_none()

    async def get_by_id(self, profile_id: str) -> Optional[Profile]:
        """Unscoped lookup for internal callers that already checked ownership."""
        async with self.db.session() as session:
            return await session.get(Profile, profile_id)

    async def list_for_owner(self, owner_id: str) -> List[Profile]:
        """All profiles of an owner, newest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(Profile)
                .where(Profile.owner_id == owner_id)
                .order_by(Profile.created_at.desc())
            )
            return list(result.scalars().all())

    async def update(
        self,
        profile_id: str,
        owner_id: str,
        fields: Mapping[str, Any],
    ) -> Optional[Profile]:
        """
        Partially update a profile.

        Keys absent from ``fields`` are left untouched; a key present with
        value None clears the column (used to drop a voice handle).
        """
        unknown = set(fields) - self.UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)}")

        async with self.db.session() as session:
            result = await session.execute(
                select(Profile).where(
                    Profile.id == profile_id,
                    Profile.owner_id == owner_id,
                )
            )
            profile = result.scalar_one_or_none()
            if profile is None:
                return None

            for key, value in fields.items():
                setattr(profile, key, value)
            profile.updated_at = utcnow()
            await session.flush()
            return profile

    async def promote_voice(self, profile_id: str, voice_handle: str) -> bool:
        """
        Store a voice handle and mark the profile ready, only if no handle is set.

        Returns False when another writer stored a handle first. Profile locks
        are per process, so with several workers two of them can each create a
        remote voice; this update picks one and the caller releases the other.
        """
        async with self.db.session() as session:
            result = await session.execute(
                update(Profile)
                .where(
                    Profile.id == profile_id,
                    Profile.voice_handle.is_(None),
                )
                .values(
                    voice_handle=voice_handle,
                    voice_model_status=VoiceModelStatus.READY,
                    updated_at=utcnow(),
                )
            )
            return result.rowcount == 1

    async def delete(self, profile_id: str, owner_id: str) -> bool:
        """Delete a profile with its recordings; its messages are orphaned."""
        async with self.db.session() as session:
            result = await session.execute(
                select(Profile).where(
                    Profile.id == profile_id,
                    Profile.owner_id == owner_id,
                )
            )
            profile = result.scalar_one_or_none()
            if profile is None:
                return False

            # Explicit so behaviour does not depend on FK enforcement (SQLite)
            await session.execute(
                delete(RecordingSlot).where(RecordingSlot.profile_id == profile_id)
            )
            await session.execute(
                update(Message)
                .where(Message.profile_id == profile_id)
                .values(profile_id=None)
            )
            await session.delete(profile)
            return True


class MessageRepository:
    """Owner-scoped persistence of synthesized messages."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def create(
        self,
        owner_id: str,
        profile_id: str,
        title: str,
        category: MessageCategory,
        content: str,
        audio: Optional[bytes],
        duration: int,
        is_private: bool = False,
    ) -> Message:
        async with self.db.session() as session:
            message = Message(
                owner_id=owner_id,
                profile_id=profile_id,
                title=title,
                category=category,
                content=content,
                audio=audio,
                duration=duration,
                is_private=is_private,
            )
            session.add(message)
            await session.flush()
            return message

    async def get(self, message_id: str, owner_id: str) -> Optional[Message]:
        async with self.db.session() as session:
            result = await session.execute(
                select(Message).where(
                    Message.id == message_id,
                    Message.owner_id == owner_id,
                )
            )
            return result.scalar_one_or_none()

    async def list_for_profile(self, profile_id: str, owner_id: str) -> List[Message]:
        """Messages of a profile, newest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(Message)
                .where(
                    Message.profile_id == profile_id,
                    Message.owner_id == owner_id,
                )
                .order_by(Message.created_at.desc())
            )
            return list(result.scalars().all())

    async def counts_by_profile(self, profile_ids: Iterable[str]) -> Dict[str, int]:
        profile_ids = list(profile_ids)
        if not profile_ids:
            return {}
        async with self.db.session() as session:
            result = await session.execute(
                select(Message.profile_id, func.count())
                .where(Message.profile_id.in_(profile_ids))
                .group_by(Message.profile_id)
            )
            return {profile_id: count for profile_id, count in result.all()}

    async def delete(self, message_id: str, owner_id: str) -> bool:
        async with self.db.session() as session:
            result = await session.execute(
                delete(Message).where(
                    Message.id == message_id,
                    Message.owner_id == owner_id,
                )
            )
            return result.rowcount > 0
