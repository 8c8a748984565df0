"""
In-Memory Remote Store.

Process-local remote store used for development and tests. Records every
call so tests can assert which remote operations happened, and can be
switched to unavailable to simulate an unreachable backend.
"""

from datetime import datetime

from qnote.sync.core.exceptions import RemoteStoreError
from qnote.sync.core.logging import get_logger
from qnote.sync.remote.base import RemoteStore
from qnote.sync.schemas.note import Note
from qnote.sync.schemas.remote import PublicNoteDocument, RemoteNoteDocument

logger = get_logger(__name__)


class InMemoryRemoteStore(RemoteStore):
    """
    Remote store backed by dictionaries.

    Attributes:
        notes: user_id -> note_id -> document
        public_notes: public_id -> published copy
        calls: (operation, key) tuples in call order
    """

    def __init__(self) -> None:
        self.notes: dict[str, dict[str, RemoteNoteDocument]] = {}
        self.public_notes: dict[str, PublicNoteDocument] = {}
        self.calls: list[tuple[str, str]] = []
        self._available = True
        self._transient = True

    @property
    def name(self) -> str:
        return "memory"

    def set_available(self, available: bool, transient: bool = True) -> None:
        """Make every following call succeed or fail."""
        self._available = available
        self._transient = transient

    def _record(self, operation: str, key: str) -> None:
        self.calls.append((operation, key))
        if not self._available:
            raise RemoteStoreError(
                f"Remote store unavailable: {operation}",
                transient=self._transient,
            )

    async def put_note(self, user_id: str, note: Note) -> None:
        self._record("put_note", note.id)
        self.notes.setdefault(user_id, {})[note.id] = RemoteNoteDocument.from_note(note)

    async def delete_note(self, user_id: str, note_id: str) -> None:
        self._record("delete_note", note_id)
        self.notes.get(user_id, {}).pop(note_id, None)

    async def list_notes(
        self,
        user_id: str,
        limit: int,
        start_after: tuple[datetime, str] | None = None,
    ) -> list[RemoteNoteDocument]:
        self._record("list_notes", user_id)
        documents = sorted(
            self.notes.get(user_id, {}).values(),
            key=lambda doc: (doc.timestamp, doc.id),
            reverse=True,
        )
        if start_after is not None:
            documents = [doc for doc in documents if (doc.timestamp, doc.id) < start_after]
        return documents[:limit]

    async def delete_unpinned(self, user_id: str) -> None:
        self._record("delete_unpinned", user_id)
        user_notes = self.notes.get(user_id, {})
        for note_id in [nid for nid, doc in user_notes.items() if not doc.is_pinned]:
            del user_notes[note_id]

    async def publish_note(
        self,
        public_id: str,
        content: str,
        timestamp: datetime,
        user_id: str,
    ) -> None:
        self._record("publish_note", public_id)
        self.public_notes[public_id] = PublicNoteDocument(
            content=content,
            timestamp=timestamp,
            user_id=user_id,
        )

    async def unpublish_note(self, public_id: str) -> None:
        self._record("unpublish_note", public_id)
        self.public_notes.pop(public_id, None)

    def calls_of(self, operation: str) -> list[str]:
        """Keys passed to one operation, in call order."""
        return [key for op, key in self.calls if op == operation]
