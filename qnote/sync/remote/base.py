"""
Remote Store Interface.

Defines the contract for the remote note store. The sync engine talks to
the remote store exclusively through this interface, always via the
RemoteGateway which adds timeout, retry and circuit breaking.

Documents live under users/{user_id}/notes/{note_id}; published copies
live under public_notes/{public_id}.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from qnote.sync.schemas.note import Note
from qnote.sync.schemas.remote import RemoteNoteDocument


class RemoteStore(ABC):
    """
    Base class for remote note stores.

    Every method raises RemoteStoreError on failure. Deleting a document
    that does not exist is a success.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier used in logs (e.g. 'memory', 'http')."""
        ...

    @abstractmethod
    async def put_note(self, user_id: str, note: Note) -> None:
        """Create or overwrite users/{user_id}/notes/{note.id}."""
        ...

    @abstractmethod
    async def delete_note(self, user_id: str, note_id: str) -> None:
        """Delete users/{user_id}/notes/{note_id}."""
        ...

    @abstractmethod
    async def list_notes(
        self,
        user_id: str,
        limit: int,
        start_after: tuple[datetime, str] | None = None,
    ) -> list[RemoteNoteDocument]:
        """
        List one page of a user's notes.

        Ordered by timestamp descending, then id descending. ``start_after``
        is the (timestamp, id) of the last document of the previous page.
        """
        ...

    @abstractmethod
    async def delete_unpinned(self, user_id: str) -> None:
        """Delete every unpinned note of a user."""
        ...

    @abstractmethod
    async def publish_note(
        self,
        public_id: str,
        content: str,
        timestamp: datetime,
        user_id: str,
    ) -> None:
        """Create or overwrite the public copy public_notes/{public_id}."""
        ...

    @abstractmethod
    async def unpublish_note(self, public_id: str) -> None:
        """Delete the public copy public_notes/{public_id}."""
        ...

    async def close(self) -> None:
        """Release connections held by the store."""
        return None
