"""
Note Store.

Canonical in-memory list of the signed-in user's notes and the projections
the UI renders. Every mutation is applied to memory first and then written
through to the local cache; a cache failure raises an alert but never
rolls back the in-memory state.

Ordering: pinned notes before unpinned ones; newest first within each
group. Recomputed after every mutation.
"""

from qnote.sync.core.concurrency import BackgroundTasks
from qnote.sync.core.exceptions import AuthenticationError, LocalStorageError, ValidationError
from qnote.sync.events.publishers import AlertPublisher
from qnote.sync.events.schemas import LocalStorageFailed, PublicCopyFailed
from qnote.sync.schemas.note import Note, SyncState
from qnote.sync.services.base import BaseService
from qnote.sync.services.connectivity import ConnectivitySignal
from qnote.sync.services.local_cache import LocalCache
from qnote.sync.services.remote_gateway import RemoteGateway
from qnote.sync.services.sync_state import SyncEngineState


def sort_notes(notes: list[Note]) -> list[Note]:
    """Pinned first, then timestamp descending. Ties fall back to id."""
    newest_first = sorted(notes, key=lambda n: (n.timestamp, n.id), reverse=True)
    return sorted(newest_first, key=lambda n: not n.is_pinned)


class NoteStore(BaseService):
    """
    In-memory note collection for one user, backed by the LocalCache.

    The store never pushes notes to the remote store; that is the sync
    engine's job. It only talks to the remote side for public copy removal
    and bulk unpinned deletion, and leaves either pending in the sync state
    when it cannot be done now.
    """

    def __init__(
        self,
        cache: LocalCache,
        state: SyncEngineState,
        connectivity: ConnectivitySignal,
        gateway: RemoteGateway,
        publisher: AlertPublisher,
        background: BackgroundTasks | None = None,
    ) -> None:
        super().__init__()
        self._cache = cache
        self._state = state
        self._connectivity = connectivity
        self._gateway = gateway
        self._publisher = publisher
        self._background = background or BackgroundTasks("note-store")
        self._user_id: str | None = None
        self._notes: dict[str, Note] = {}
        self._sorted: list[Note] = []

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def notes(self) -> list[Note]:
        """The sorted projection."""
        return list(self._sorted)

    @property
    def background(self) -> BackgroundTasks:
        return self._background

    def get(self, note_id: str) -> Note | None:
        return self._notes.get(note_id)

    def _resort(self) -> None:
        self._sorted = sort_notes(list(self._notes.values()))

    def _storage_failed(self, operation: str, error: LocalStorageError, note_id: str | None = None) -> None:
        self._publisher.publish(
            LocalStorageFailed(
                source="note-store",
                payload={"operation": operation, "note_id": note_id, "error": error.message},
            )
        )

    async def load(self, user_id: str) -> list[Note]:
        """
        Load a user's notes from the local cache.

        A note cached mid-push (syncing) is treated as not synced with an
        outstanding push. Storage errors yield an empty list.

        Args:
            user_id: User whose notes to load

        Returns:
            Sorted projection
        """
        self._user_id = user_id
        self._notes = {}
        try:
            cached = await self._cache.load_all(user_id)
        except LocalStorageError as e:
            self._storage_failed("load", e)
            self._resort()
            return []

        for note in cached:
            if note.sync_state is SyncState.SYNCING:
                note = note.replace(sync_state=SyncState.NOT_SYNCED, needs_sync=True)
            self._notes[note.id] = note
        self._resort()
        self._log_operation("Notes loaded", user_id=user_id, count=len(self._notes))
        return self.notes

    def clear(self) -> None:
        """Drop all in-memory notes (sign-out). The cache is untouched."""
        self._user_id = None
        self._notes = {}
        self._sorted = []

    def _check_owner(self, note: Note) -> None:
        if self._user_id is None:
            raise AuthenticationError("No signed-in user")
        if note.user_id != self._user_id:
            raise ValidationError(
                "Note belongs to another user",
                details={"note_id": note.id},
            )

    def set_transient(self, note: Note) -> None:
        """Replace a note in memory only. Used for the in-flight syncing state."""
        self._check_owner(note)
        self._notes[note.id] = note
        self._resort()

    async def upsert(self, note: Note) -> Note:
        """
        Insert or replace a note by id and write it through to the cache.

        Raises:
            AuthenticationError: If no user is signed in
            ValidationError: If the note belongs to another user
        """
        self._check_owner(note)
        self._notes[note.id] = note
        self._resort()
        try:
            await self._cache.put(note)
        except LocalStorageError as e:
            self._storage_failed("upsert", e, note_id=note.id)
        return note

    async def upsert_many(self, notes: list[Note]) -> None:
        """Insert or replace several notes and write them in one cache batch."""
        if not notes:
            return
        for note in notes:
            self._check_owner(note)
            self._notes[note.id] = note
        self._resort()
        try:
            await self._cache.put_batch(notes)
        except LocalStorageError as e:
            self._storage_failed("upsert_many", e)

    async def forget(self, note_id: str) -> None:
        """
        Drop a note that no longer exists remotely.

        Unlike remove(), this records no tombstone and leaves the public
        copy alone: the deletion already happened elsewhere.
        """
        if self._user_id is None or self._notes.pop(note_id, None) is None:
            return
        self._resort()
        try:
            await self._cache.delete(note_id, self._user_id)
        except LocalStorageError as e:
            self._storage_failed("forget", e, note_id=note_id)

    async def remove(self, note_id: str) -> Note | None:
        """
        Remove a note from memory and the cache.

        Offline removals record a tombstone. Public notes also get their
        public copy removed, see request_unpublish().

        Returns:
            The removed note, or None if it was not present
        """
        if self._user_id is None:
            return None
        note = self._notes.pop(note_id, None)
        self._resort()
        try:
            await self._cache.delete(note_id, self._user_id)
        except LocalStorageError as e:
            self._storage_failed("remove", e, note_id=note_id)

        if not self._connectivity.online:
            await self._state.add_tombstone(note_id)

        if note is not None and note.is_public and note.public_id:
            await self.request_unpublish(note.public_id, note_id)

        self._log_debug("Note removed", note_id=note_id)
        return note

    async def request_unpublish(self, public_id: str, note_id: str | None = None) -> None:
        """
        Remove a public copy as soon as possible.

        Online the removal runs in the background. Offline it is recorded in
        the sync state and done by the next reconciliation.
        """
        if not self._connectivity.online:
            await self._state.add_pending_unpublish(public_id, note_id)
            return
        self._background.spawn(
            self.unpublish(public_id, note_id),
            name=f"unpublish-{public_id}",
        )

    async def unpublish(self, public_id: str, note_id: str | None = None) -> bool:
        """
        Remove a public copy now.

        A failed removal raises an alert and stays pending for the next
        reconciliation.

        Returns:
            True if the public copy is gone
        """
        result = await self._gateway.unpublish_note(public_id, note_id=note_id)
        if result.ok:
            if public_id in self._state.pending_unpublishes:
                await self._state.remove_pending_unpublish(public_id)
        else:
            await self._state.add_pending_unpublish(public_id, note_id)
            self._publisher.publish(
                PublicCopyFailed(
                    source="note-store",
                    payload={
                        "note_id": note_id,
                        "public_id": public_id,
                        "operation": "unpublish",
                        "error": result.error.message,
                    },
                )
            )
        return result.ok

    async def remove_unpinned(self) -> list[str]:
        """
        Delete every unpinned note locally and, when possible, remotely.

        Offline, or when the remote deletion fails, the bulk deletion is
        left pending for the next reconciliation.

        Returns:
            Ids of the removed notes
        """
        if self._user_id is None:
            return []
        user_id = self._user_id
        removed = [note for note in self._notes.values() if not note.is_pinned]
        for note in removed:
            del self._notes[note.id]
        self._resort()

        try:
            await self._cache.delete_unpinned(user_id)
        except LocalStorageError as e:
            self._storage_failed("remove_unpinned", e)

        for note in removed:
            if note.is_public and note.public_id:
                await self.request_unpublish(note.public_id, note.id)

        if self._connectivity.online:
            result = await self._gateway.delete_unpinned(user_id)
            if not result.ok:
                await self._state.set_bulk_unpinned_pending(True)
        else:
            await self._state.set_bulk_unpinned_pending(True)

        self._log_operation("Unpinned notes removed", user_id=user_id, count=len(removed))
        return [note.id for note in removed]

    def query(self, search_text: str = "") -> list[Note]:
        """Case-insensitive substring search on content. Blank text returns everything."""
        if not search_text.strip():
            return self.notes
        needle = search_text.casefold()
        return [note for note in self._sorted if needle in note.content.casefold()]
