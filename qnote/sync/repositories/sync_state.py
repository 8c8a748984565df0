"""
Sync State Repositories.

Data access for tombstones, pending public-copy removals and per-user
sync flags.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from qnote.sync.models.sync_state import PendingUnpublish, SyncFlag, Tombstone
from qnote.sync.repositories.base import BaseRepository


class TombstoneRepository(BaseRepository[Tombstone]):
    """Repository for deletion records awaiting remote confirmation."""

    model = Tombstone
    key_column = "note_id"

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def all_keys(self, user_id: str | None = None) -> set[tuple[str, str]]:
        """
        Get tombstone keys, optionally for a single user.

        Returns:
            Set of (user_id, note_id) pairs
        """
        query = select(Tombstone.user_id, Tombstone.note_id)
        if user_id is not None:
            query = query.where(Tombstone.user_id == user_id)
        result = await self.session.execute(query)
        return {(row.user_id, row.note_id) for row in result}

    async def add(self, user_id: str, note_id: str) -> None:
        """Record a tombstone; adding an existing one is a no-op."""
        if await self.get_or_none(user_id, note_id) is None:
            self.session.add(Tombstone(user_id=user_id, note_id=note_id))
            await self.session.flush()


class PendingUnpublishRepository(BaseRepository[PendingUnpublish]):
    """Repository for public copies that still have to be removed remotely."""

    model = PendingUnpublish
    key_column = "public_id"

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def for_user(self, user_id: str) -> dict[str, str | None]:
        """Map of public_id to the note it belonged to."""
        return {row.public_id: row.note_id for row in await self.list_for_user(user_id)}

    async def add(self, user_id: str, public_id: str, note_id: str | None = None) -> None:
        """Record a pending removal; adding an existing one is a no-op."""
        if await self.get_or_none(user_id, public_id) is None:
            self.session.add(PendingUnpublish(user_id=user_id, public_id=public_id, note_id=note_id))
            await self.session.flush()


class SyncFlagRepository(BaseRepository[SyncFlag]):
    """Repository for named per-user boolean flags."""

    model = SyncFlag
    key_column = "name"

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_value(self, user_id: str, name: str) -> bool:
        """Get a flag value; unknown flags are False."""
        flag = await self.get_or_none(user_id, name)
        return bool(flag and flag.value)

    async def set_value(self, user_id: str, name: str, value: bool) -> None:
        """Set a flag value."""
        await self.upsert(user_id, name, value=value)
