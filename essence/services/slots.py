"""
Recording slot bookkeeping.

A profile has a fixed number of training slots, indexed 0..N-1. Each slot
holds at most one recording; uploading to a filled slot overwrites it.
"""

from typing import Dict, Iterable, List

from sqlalchemy import select, delete, func
from sqlalchemy.dialects import postgresql, sqlite

from essence.core.errors import InvalidSlotIndexError
from essence.core.logging import get_logger
from essence.database import DatabaseManager, RecordingSlot, utcnow, new_id

logger = get_logger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class RecordingSlotStore:
    """Per-profile recording slots with upsert semantics."""

    def __init__(self, db: DatabaseManager, slot_count: int = 3):
        if slot_count < 1:
            raise ValueError("slot_count must be at least 1")
        self.db = db
        self.slot_count = slot_count

    def validate_index(self, slot_index: int) -> None:
        if not 0 <= slot_index < self.slot_count:
            raise InvalidSlotIndexError(slot_index, self.slot_count)

    async def upsert(
        self,
        profile_id: str,
        slot_index: int,
        text: str,
        audio: bytes,
        quality: str = "good",
    ) -> RecordingSlot:
        """Insert the slot's recording, or atomically overwrite the existing one."""
        self.validate_index(slot_index)

        try:
            dialect_insert = _UPSERT_DIALECTS[self.db.dialect]
        except KeyError:
            raise RuntimeError(f"Unsupported database dialect: {self.db.dialect}")

        now = utcnow()
        stmt = dialect_insert(RecordingSlot).values(
            id=new_id(),
            profile_id=profile_id,
            slot_index=slot_index,
            prompt_text=text,
            audio=audio,
            quality=quality,
            created_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["profile_id", "slot_index"],
            set_={
                "prompt_text": stmt.excluded.prompt_text,
                "audio": stmt.excluded.audio,
                "quality": stmt.excluded.quality,
                "created_at": stmt.excluded.created_at,
            },
        )

        async with self.db.session() as session:
            await session.execute(stmt)
            result = await session.execute(
                select(RecordingSlot).where(
                    RecordingSlot.profile_id == profile_id,
                    RecordingSlot.slot_index == slot_index,
                )
            )
            slot = result.scalar_one()

        logger.info(
            "Recording saved",
            extra={
                "profile_id": profile_id,
                "slot_index": slot_index,
                "audio_bytes": len(audio),
            },
        )
        return slot

    async def remove(self, profile_id: str, slot_index: int) -> bool:
        """Delete the slot's recording. Returns whether a row was removed."""
        self.validate_index(slot_index)

        async with self.db.session() as session:
            result = await session.execute(
                delete(RecordingSlot).where(
                    RecordingSlot.profile_id == profile_id,
                    RecordingSlot.slot_index == slot_index,
                )
            )
            removed = result.rowcount > 0

        if removed:
            logger.info(
                "Recording removed",
                extra={"profile_id": profile_id, "slot_index": slot_index},
            )
        return removed

    async def count(self, profile_id: str) -> int:
        """Number of filled slots."""
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count())
                .select_from(RecordingSlot)
                .where(RecordingSlot.profile_id == profile_id)
            )
            return result.scalar_one()

    async def counts_by_profile(self, profile_ids: Iterable[str]) -> Dict[str, int]:
        profile_ids = list(profile_ids)
        if not profile_ids:
            return {}
        async with self.db.session() as session:
            result = await session.execute(
                select(RecordingSlot.profile_id, func.count())
                .where(RecordingSlot.profile_id.in_(profile_ids))
                .group_by(RecordingSlot.profile_id)
            )
            return {profile_id: count for profile_id, count in result.all()}

    async def list_ordered_by_slot(self, profile_id: str) -> List[RecordingSlot]:
        """Filled slots in ascending slot order, the order samples are submitted in."""
        async with self.db.session() as session:
            result = await session.execute(
                select(RecordingSlot)
                .where(RecordingSlot.profile_id == profile_id)
                .order_by(RecordingSlot.slot_index.asc())
            )
            return list(result.scalars().all())
