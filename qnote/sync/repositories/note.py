"""
Note Repository.

Data access layer for cached notes. Handles all database operations
for the CachedNote model.
"""

from datetime import datetime

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from qnote.sync.models.note import CachedNote
from qnote.sync.repositories.base import BaseRepository
from qnote.sync.schemas.note import Note, SyncState


class NoteRepository(BaseRepository[CachedNote]):
    """
    Repository for CachedNote model.

    Inherits user-scoped CRUD from BaseRepository and adds note-specific
    queries. Listings are ordered by timestamp descending with id as a
    tiebreaker, which is also the keyset used for cursor pagination.
    """

    model = CachedNote
    key_column = "id"

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def save(self, note: Note) -> CachedNote:
        """Insert or overwrite the cached copy of a note."""
        return await self.upsert(
            note.user_id,
            note.id,
            content=note.content,
            timestamp=note.timestamp,
            is_pinned=note.is_pinned,
            sync_state=note.sync_state.value,
            needs_sync=note.needs_sync,
            is_public=note.is_public,
            public_id=note.public_id,
        )

    async def get_page(
        self,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
    ) -> list[CachedNote]:
        """
        Get one page of a user's notes, newest first.

        Args:
            user_id: Owner of the notes
            limit: Maximum number of notes to return
            offset: Number of notes to skip

        Returns:
            List of cached notes
        """
        result = await self.session.execute(
            self._scoped(user_id)
            .order_by(CachedNote.timestamp.desc(), CachedNote.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def get_page_after(
        self,
        user_id: str,
        after: tuple[datetime, str] | None,
        limit: int = 20,
    ) -> list[CachedNote]:
        """
        Get the notes that sort after a keyset position, newest first.

        Args:
            user_id: Owner of the notes
            after: (timestamp, id) of the last note already seen, or None
            limit: Maximum number of notes to return

        Returns:
            List of cached notes
        """
        query = self._scoped(user_id)
        if after is not None:
            timestamp, note_id = after
            query = query.where(
                or_(
                    CachedNote.timestamp < timestamp,
                    and_(CachedNote.timestamp == timestamp, CachedNote.id < note_id),
                )
            )
        result = await self.session.execute(
            query.order_by(CachedNote.timestamp.desc(), CachedNote.id.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def get_pending(self, user_id: str) -> list[CachedNote]:
        """Get notes with an outstanding push or not yet in agreement with remote."""
        result = await self.session.execute(
            self._scoped(user_id).where(
                or_(
                    CachedNote.needs_sync == True,  # noqa: E712
                    CachedNote.sync_state != SyncState.SYNCED.value,
                )
            )
        )
        return list(result.scalars().all())

    async def delete_unpinned(self, user_id: str) -> list[str]:
        """
        Delete all unpinned notes of a user.

        Returns:
            Ids of the deleted notes
        """
        result = await self.session.execute(
            select(CachedNote.id).where(
                CachedNote.user_id == user_id,
                CachedNote.is_pinned == False,  # noqa: E712
            )
        )
        note_ids = list(result.scalars().all())
        if note_ids:
            await self.session.execute(
                delete(CachedNote).where(
                    CachedNote.user_id == user_id,
                    CachedNote.id.in_(note_ids),
                )
            )
        return note_ids
