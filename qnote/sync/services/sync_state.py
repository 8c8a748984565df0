"""
Sync Engine State.

Explicit, user-scoped bookkeeping shared by the note store and the sync
engine: the tombstone set, public copies waiting for removal, and the
pending bulk unpinned-deletion flag.
State is held in memory for the active user and written through to an
injected persistence port (the LocalCache in production).
"""

from typing import Protocol

from qnote.sync.core.exceptions import LocalStorageError
from qnote.sync.core.logging import get_logger
from qnote.sync.events.publishers import AlertPublisher
from qnote.sync.events.schemas import LocalStorageFailed

logger = get_logger(__name__)

BULK_UNPINNED_PENDING = "bulk_unpinned_deletion_pending"


class SyncStatePort(Protocol):
    """Persistence needed by SyncEngineState."""

    async def tombstones(self, user_id: str | None = None) -> set[tuple[str, str]]: ...

    async def add_tombstone(self, user_id: str, note_id: str) -> None: ...

    async def remove_tombstone(self, user_id: str, note_id: str) -> None: ...

    async def pending_unpublishes(self, user_id: str) -> dict[str, str | None]: ...

    async def add_pending_unpublish(self, user_id: str, public_id: str, note_id: str | None = None) -> None: ...

    async def remove_pending_unpublish(self, user_id: str, public_id: str) -> None: ...

    async def get_flag(self, user_id: str, name: str) -> bool: ...

    async def set_flag(self, user_id: str, name: str, value: bool) -> None: ...


class SyncEngineState:
    """
    Tombstones and pending flags of the signed-in user.

    Persistence failures keep the in-memory value and raise a
    LocalStorageFailed alert; they never propagate.
    """

    def __init__(self, port: SyncStatePort, publisher: AlertPublisher) -> None:
        self._port = port
        self._publisher = publisher
        self._user_id: str | None = None
        self._tombstones: set[str] = set()
        self._pending_unpublishes: dict[str, str | None] = {}
        self._bulk_unpinned_pending = False

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def tombstones(self) -> set[str]:
        """Note ids of the active user awaiting remote deletion."""
        return set(self._tombstones)

    @property
    def pending_unpublishes(self) -> dict[str, str | None]:
        """Public copies awaiting removal, as public_id -> note_id."""
        return dict(self._pending_unpublishes)

    @property
    def bulk_unpinned_pending(self) -> bool:
        return self._bulk_unpinned_pending

    async def activate(self, user_id: str) -> None:
        """Load the persisted state of a user and make it active."""
        self._user_id = user_id
        self._tombstones = set()
        self._pending_unpublishes = {}
        self._bulk_unpinned_pending = False
        try:
            keys = await self._port.tombstones(user_id)
            self._tombstones = {note_id for _, note_id in keys}
            self._pending_unpublishes = await self._port.pending_unpublishes(user_id)
            self._bulk_unpinned_pending = await self._port.get_flag(user_id, BULK_UNPINNED_PENDING)
        except LocalStorageError as e:
            self._storage_failed("activate", e)
        logger.debug(
            "Sync state activated",
            extra={
                "user_id": user_id,
                "tombstones": len(self._tombstones),
                "pending_unpublishes": len(self._pending_unpublishes),
                "bulk_unpinned_pending": self._bulk_unpinned_pending,
            },
        )

    def deactivate(self) -> None:
        """Forget the active user's state (sign-out). Persisted state is kept."""
        self._user_id = None
        self._tombstones = set()
        self._pending_unpublishes = {}
        self._bulk_unpinned_pending = False

    def has_tombstone(self, note_id: str) -> bool:
        return note_id in self._tombstones

    async def add_tombstone(self, note_id: str) -> None:
        if self._user_id is None:
            return
        self._tombstones.add(note_id)
        try:
            await self._port.add_tombstone(self._user_id, note_id)
        except LocalStorageError as e:
            self._storage_failed("add_tombstone", e)

    async def remove_tombstone(self, note_id: str) -> None:
        if self._user_id is None:
            return
        self._tombstones.discard(note_id)
        try:
            await self._port.remove_tombstone(self._user_id, note_id)
        except LocalStorageError as e:
            self._storage_failed("remove_tombstone", e)

    async def add_pending_unpublish(self, public_id: str, note_id: str | None = None) -> None:
        if self._user_id is None:
            return
        self._pending_unpublishes[public_id] = note_id
        try:
            await self._port.add_pending_unpublish(self._user_id, public_id, note_id)
        except LocalStorageError as e:
            self._storage_failed("add_pending_unpublish", e)

    async def remove_pending_unpublish(self, public_id: str) -> None:
        if self._user_id is None:
            return
        self._pending_unpublishes.pop(public_id, None)
        try:
            await self._port.remove_pending_unpublish(self._user_id, public_id)
        except LocalStorageError as e:
            self._storage_failed("remove_pending_unpublish", e)

    async def set_bulk_unpinned_pending(self, value: bool) -> None:
        if self._user_id is None:
            return
        self._bulk_unpinned_pending = value
        try:
            await self._port.set_flag(self._user_id, BULK_UNPINNED_PENDING, value)
        except LocalStorageError as e:
            self._storage_failed("set_bulk_unpinned_pending", e)

    def _storage_failed(self, operation: str, error: LocalStorageError) -> None:
        self._publisher.publish(
            LocalStorageFailed(
                source="sync-state",
                payload={"operation": operation, "error": error.message},
            )
        )
