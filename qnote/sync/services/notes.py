"""
Notes Session.

The boundary the UI layer talks to. Mutations are applied to the note
store right away and their sync runs in the background, so the UI never
waits on the network. ``wait_idle()`` lets callers (and tests) wait for
that background work to settle.
"""

from uuid import uuid4

from qnote.sync.core.concurrency import BackgroundTasks
from qnote.sync.core.exceptions import AuthenticationError, NotFoundError
from qnote.sync.core.utils import utc_now
from qnote.sync.events.publishers import AlertPublisher
from qnote.sync.schemas.note import Note, SyncState
from qnote.sync.services.base import BaseService
from qnote.sync.services.connectivity import ConnectivityMonitor, ConnectivitySignal
from qnote.sync.services.local_cache import LocalCache
from qnote.sync.services.note_store import NoteStore
from qnote.sync.services.remote_gateway import RemoteGateway
from qnote.sync.services.sync_engine import PullReport, ReconcileReport, SyncEngine
from qnote.sync.services.sync_state import SyncEngineState


class NotesSession(BaseService):
    """
    Note operations for the signed-in user.

    Usage:
        session = await create_session()
        await session.sign_in("user-1")
        note = await session.create_note("Buy milk")
        visible = session.list_visible("milk")
        await session.close()
    """

    def __init__(
        self,
        cache: LocalCache,
        store: NoteStore,
        state: SyncEngineState,
        engine: SyncEngine,
        gateway: RemoteGateway,
        connectivity: ConnectivitySignal,
        publisher: AlertPublisher,
        monitor: ConnectivityMonitor | None = None,
    ) -> None:
        super().__init__()
        self.cache = cache
        self.store = store
        self.state = state
        self.engine = engine
        self.gateway = gateway
        self.connectivity = connectivity
        self.alerts = publisher
        self.monitor = monitor
        self._background = BackgroundTasks("notes-session")

    @property
    def user_id(self) -> str | None:
        return self.store.user_id

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Create the cache schema, listen for connectivity and start probing."""
        await self.cache.initialize()
        self.engine.start()
        if self.monitor is not None:
            self.monitor.start()

    async def wait_idle(self) -> None:
        """Wait until background syncs, deletions and reconciliations are done."""
        while True:
            await self._background.drain()
            await self.store.background.drain()
            await self.engine.wait_idle()
            if not (len(self._background) or len(self.store.background) or self.engine.busy):
                return

    async def close(self) -> None:
        """Stop background work and release the cache and remote connections."""
        if self.monitor is not None:
            await self.monitor.stop()
        await self._background.drain()
        await self.engine.stop()
        await self.store.background.drain()
        await self.gateway.close()
        await self.cache.close()
        self._log_operation("Session closed")

    async def sign_in(self, user_id: str) -> list[Note]:
        """
        Make a user active: load their notes and sync bookkeeping.

        Online, a reconciliation is started in the background.

        Returns:
            The user's sorted notes
        """
        self._validate_required({"user_id": user_id}, ["user_id"])
        if self.user_id is not None:
            await self.sign_out()
        notes = await self.store.load(user_id)
        await self.state.activate(user_id)
        self._log_operation("User signed in", user_id=user_id, notes=len(notes))
        if self.connectivity.online:
            self.engine.schedule_reconcile()
        return notes

    async def sign_out(self) -> None:
        """Finish pending background and sync work, then forget the active user."""
        user_id = self.user_id
        await self.wait_idle()
        self.state.deactivate()
        self.store.clear()
        self._log_operation("User signed out", user_id=user_id)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _require_user(self) -> str:
        if self.user_id is None:
            raise AuthenticationError("Sign in to edit notes")
        return self.user_id

    def _current(self, note: Note) -> Note:
        current = self.store.get(note.id)
        if current is None:
            raise NotFoundError(f"Note {note.id} not found")
        return current

    def _sync_in_background(self, note_id: str) -> None:
        self._background.spawn(self.engine.sync_note(note_id), name=f"sync-{note_id}")

    async def create_note(self, content: str) -> Note:
        """
        Create a note from the given text.

        Raises:
            AuthenticationError: If no user is signed in
            ValidationError: If the text is blank
        """
        user_id = self._require_user()
        self._validate_required({"content": content}, ["content"])
        note = Note(user_id=user_id, content=content.strip(), timestamp=utc_now())
        await self.store.upsert(note)
        self._log_operation("Note created", note_id=note.id)
        self._sync_in_background(note.id)
        return note

    async def update_note(self, note: Note) -> Note:
        """
        Save an edited note.

        Only content and pin state are taken from ``note``. A content change
        bumps the timestamp. Saving without changes does nothing and
        starts no sync.

        Raises:
            AuthenticationError: If no user is signed in
            NotFoundError: If the note does not exist
            ValidationError: If the content is blank
        """
        self._require_user()
        current = self._current(note)
        self._validate_required({"content": note.content}, ["content"])
        content = note.content.strip()

        content_changed = content != current.content
        if not content_changed and note.is_pinned == current.is_pinned:
            return current

        updated = current.replace(
            content=content,
            is_pinned=note.is_pinned,
            timestamp=utc_now() if content_changed else current.timestamp,
            sync_state=SyncState.NOT_SYNCED,
            needs_sync=True,
        )
        await self.store.upsert(updated)
        self._log_debug("Note updated", note_id=note.id, content_changed=content_changed)
        self._sync_in_background(note.id)
        return updated

    async def delete_note(self, note: Note) -> None:
        """Delete a note locally and, in the background, remotely."""
        self._require_user()
        removed = await self.store.remove(note.id)
        if removed is None:
            return
        self._log_operation("Note deleted", note_id=note.id)
        if self.connectivity.online:
            self._background.spawn(
                self.engine.propagate_delete(note.id), name=f"delete-{note.id}"
            )

    async def toggle_pin(self, note: Note) -> Note:
        """Flip the pin state. The timestamp is kept."""
        self._require_user()
        current = self._current(note)
        updated = current.replace(
            is_pinned=not current.is_pinned,
            sync_state=SyncState.NOT_SYNCED,
            needs_sync=True,
        )
        await self.store.upsert(updated)
        self._sync_in_background(note.id)
        return updated

    async def toggle_public(self, note: Note) -> Note:
        """
        Publish a private note or unpublish a public one.

        Publishing assigns a new public id; the public copy is written by
        the next push. Unpublishing removes the public copy right away when
        online; offline, or if that fails, the next reconciliation does it.
        """
        self._require_user()
        current = self._current(note)
        if current.is_public:
            public_id = current.public_id
            updated = current.replace(
                is_public=False,
                public_id=None,
                sync_state=SyncState.NOT_SYNCED,
                needs_sync=True,
            )
            await self.store.upsert(updated)
            if self.connectivity.online:
                await self.store.unpublish(public_id, note.id)
            else:
                await self.store.request_unpublish(public_id, note.id)
        else:
            updated = current.replace(
                is_public=True,
                public_id=str(uuid4()),
                sync_state=SyncState.NOT_SYNCED,
                needs_sync=True,
            )
            await self.store.upsert(updated)

        self._log_operation("Note visibility changed", note_id=note.id, is_public=updated.is_public)
        self._sync_in_background(note.id)
        return updated

    async def delete_unpinned_notes(self) -> list[str]:
        """Delete every unpinned note of the active user."""
        self._require_user()
        return await self.store.remove_unpinned()

    # -------------------------------------------------------------------------
    # Queries and sync
    # -------------------------------------------------------------------------

    def list_visible(self, search_text: str = "") -> list[Note]:
        """Notes to show, pinned first and newest first, filtered by text."""
        return self.store.query(search_text)

    def current_sync_indicator(self, note: Note) -> SyncState:
        """Sync state to display for a note, reflecting in-flight pushes."""
        if self.engine.is_syncing(note.id):
            return SyncState.SYNCING
        current = self.store.get(note.id)
        return current.sync_state if current is not None else note.sync_state

    async def sync(self) -> ReconcileReport:
        """Push everything pending now."""
        return await self.engine.reconcile()

    async def refresh(self) -> PullReport:
        """Pull the remote note list into the store."""
        return await self.engine.pull()
