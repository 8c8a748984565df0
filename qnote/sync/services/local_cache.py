"""
Local Cache Service.

Durable storage of notes, tombstones, pending public-copy removals and
sync flags in SQLite. Every
call runs in its own transaction, so a note's fields are always written
together. Writes are serialized by a lock; reads never wait for it, and
WAL mode keeps reads going while a batch write commits.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from qnote.sync.core.database import create_session_factory, init_schema
from qnote.sync.core.exceptions import ValidationError
from qnote.sync.core.pagination import (
    PagedResult,
    decode_keyset_cursor,
    encode_keyset_cursor,
)
from qnote.sync.repositories.note import NoteRepository
from qnote.sync.repositories.sync_state import (
    PendingUnpublishRepository,
    SyncFlagRepository,
    TombstoneRepository,
)
from qnote.sync.schemas.note import Note
from qnote.sync.services.base import BaseService

T = TypeVar("T")


class LocalCache(BaseService):
    """
    Local persistence for the sync core, scoped by user id.

    Raises LocalStorageError from any operation the database rejects.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        super().__init__()
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create cache tables if needed."""
        await self._execute_db_operation("initialize", init_schema(self._engine))
        self._log_debug("Local cache ready")

    async def close(self) -> None:
        """Dispose the engine and its connections."""
        await self._engine.dispose()

    async def _run(
        self,
        operation: str,
        work: Callable[[AsyncSession], Awaitable[T]],
        write: bool = False,
    ) -> T:
        async def _in_transaction() -> T:
            async with self._session_factory() as session:
                async with session.begin():
                    return await work(session)

        if not write:
            return await self._execute_db_operation(operation, _in_transaction())
        async with self._write_lock:
            return await self._execute_db_operation(operation, _in_transaction())

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    async def fetch(self, user_id: str, page: int = 0, page_size: int = 20) -> list[Note]:
        """
        Fetch one page of a user's notes, newest first.

        Args:
            user_id: Owner of the notes
            page: Zero-based page number
            page_size: Notes per page

        Returns:
            List of notes
        """
        if page < 0 or page_size < 1:
            raise ValidationError(
                "Invalid page",
                details={"page": page, "page_size": page_size},
            )

        async def work(session: AsyncSession) -> list[Note]:
            rows = await NoteRepository(session).get_page(
                user_id, limit=page_size, offset=page * page_size
            )
            return [Note.model_validate(row) for row in rows]

        return await self._run("fetch", work)

    async def fetch_page(
        self,
        user_id: str,
        cursor: str | None = None,
        page_size: int = 20,
    ) -> PagedResult[Note]:
        """
        Fetch the page of notes following a cursor, newest first.

        Args:
            user_id: Owner of the notes
            cursor: Cursor from the previous page, or None for the first page
            page_size: Notes per page

        Returns:
            PagedResult whose next_cursor is None on the last page

        Raises:
            ValidationError: If the cursor is malformed
        """
        try:
            after = decode_keyset_cursor(cursor) if cursor else None
        except ValueError as e:
            raise ValidationError("Invalid cursor", details={"cursor": cursor}) from e

        async def work(session: AsyncSession) -> list[Note]:
            rows = await NoteRepository(session).get_page_after(
                user_id, after, limit=page_size + 1
            )
            return [Note.model_validate(row) for row in rows]

        notes = await self._run("fetch_page", work)
        has_more = len(notes) > page_size
        notes = notes[:page_size]
        next_cursor = None
        if has_more:
            last = notes[-1]
            next_cursor = encode_keyset_cursor(last.timestamp, last.id)
        return PagedResult(items=notes, limit=page_size, has_more=has_more, next_cursor=next_cursor)

    async def load_all(self, user_id: str) -> list[Note]:
        """Load every note of a user."""

        async def work(session: AsyncSession) -> list[Note]:
            rows = await NoteRepository(session).list_for_user(user_id)
            return [Note.model_validate(row) for row in rows]

        return await self._run("load_all", work)

    async def get(self, user_id: str, note_id: str) -> Note | None:
        """Get one note, or None if it is not cached."""

        async def work(session: AsyncSession) -> Note | None:
            row = await NoteRepository(session).get_or_none(user_id, note_id)
            return Note.model_validate(row) if row is not None else None

        return await self._run("get", work)

    async def pending(self, user_id: str) -> list[Note]:
        """Notes with an outstanding push or not yet synced."""

        async def work(session: AsyncSession) -> list[Note]:
            rows = await NoteRepository(session).get_pending(user_id)
            return [Note.model_validate(row) for row in rows]

        return await self._run("pending", work)

    async def put(self, note: Note) -> None:
        """Insert or overwrite a note by (user_id, id)."""

        async def work(session: AsyncSession) -> None:
            await NoteRepository(session).save(note)

        await self._run("put", work, write=True)

    async def put_batch(self, notes: list[Note]) -> None:
        """Insert or overwrite several notes in a single transaction."""
        if not notes:
            return

        async def work(session: AsyncSession) -> None:
            repo = NoteRepository(session)
            for note in notes:
                await repo.save(note)

        await self._run("put_batch", work, write=True)
        self._log_debug("Batch written", count=len(notes))

    async def delete(self, note_id: str, user_id: str) -> bool:
        """Delete a note. Returns False if it was not cached."""

        async def work(session: AsyncSession) -> bool:
            return await NoteRepository(session).delete(user_id, note_id)

        return await self._run("delete", work, write=True)

    async def delete_unpinned(self, user_id: str) -> list[str]:
        """Delete every unpinned note of a user and return their ids."""

        async def work(session: AsyncSession) -> list[str]:
            return await NoteRepository(session).delete_unpinned(user_id)

        return await self._run("delete_unpinned", work, write=True)

    # -------------------------------------------------------------------------
    # Tombstones, pending unpublishes and flags
    # -------------------------------------------------------------------------

    async def tombstones(self, user_id: str | None = None) -> set[tuple[str, str]]:
        """Tombstone keys as (user_id, note_id), optionally for one user."""

        async def work(session: AsyncSession) -> set[tuple[str, str]]:
            return await TombstoneRepository(session).all_keys(user_id)

        return await self._run("tombstones", work)

    async def add_tombstone(self, user_id: str, note_id: str) -> None:
        async def work(session: AsyncSession) -> None:
            await TombstoneRepository(session).add(user_id, note_id)

        await self._run("add_tombstone", work, write=True)

    async def remove_tombstone(self, user_id: str, note_id: str) -> None:
        async def work(session: AsyncSession) -> None:
            await TombstoneRepository(session).delete(user_id, note_id)

        await self._run("remove_tombstone", work, write=True)

    async def pending_unpublishes(self, user_id: str) -> dict[str, str | None]:
        """Public copies awaiting removal, as public_id -> note_id."""

        async def work(session: AsyncSession) -> dict[str, str | None]:
            return await PendingUnpublishRepository(session).for_user(user_id)

        return await self._run("pending_unpublishes", work)

    async def add_pending_unpublish(self, user_id: str, public_id: str, note_id: str | None = None) -> None:
        async def work(session: AsyncSession) -> None:
            await PendingUnpublishRepository(session).add(user_id, public_id, note_id)

        await self._run("add_pending_unpublish", work, write=True)

    async def remove_pending_unpublish(self, user_id: str, public_id: str) -> None:
        async def work(session: AsyncSession) -> None:
            await PendingUnpublishRepository(session).delete(user_id, public_id)

        await self._run("remove_pending_unpublish", work, write=True)

    async def get_flag(self, user_id: str, name: str) -> bool:
        async def work(session: AsyncSession) -> bool:
            return await SyncFlagRepository(session).get_value(user_id, name)

        return await self._run("get_flag", work)

    async def set_flag(self, user_id: str, name: str, value: bool) -> None:
        async def work(session: AsyncSession) -> None:
            await SyncFlagRepository(session).set_value(user_id, name, value)

        await self._run("set_flag", work, write=True)
