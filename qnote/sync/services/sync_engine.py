"""
Sync Engine.

Decides per note whether and how to reach the remote store, and brings
local and remote state back together after the device comes online.

Per-note state machine:

    notSynced --push ok--> synced
    synced --local edit--> notSynced (needs_sync)
    notSynced --push started--> syncing (memory only)
    syncing --push failed--> notSynced (needs_sync)
    syncing --push ok--> synced, or notSynced if the note changed meanwhile

Pushes for one note never interleave: a sync request that arrives while a
push is in flight waits for it and triggers exactly one follow-up push of
the latest content. The latest note is always re-read from the store
right before a remote call.

Conflicts resolve by last-write-wins on the note timestamp. Concurrent
edits on two devices are not merged.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime

from qnote.sync.core.concurrency import BackgroundTasks, gather_bounded
from qnote.sync.core.exceptions import SyncError, SyncErrorKind
from qnote.sync.core.logging import log_with_source
from qnote.sync.core.result import Err, Ok, Result
from qnote.sync.core.utils import as_naive_utc
from qnote.sync.events.publishers import AlertPublisher
from qnote.sync.events.schemas import (
    NoteExcludedFromSync,
    NoteSyncFailed,
    PublicCopyFailed,
    ReconcileCompleted,
)
from qnote.sync.schemas.note import Note, SyncState
from qnote.sync.services.base import BaseService
from qnote.sync.services.connectivity import ConnectivitySignal
from qnote.sync.services.note_store import NoteStore
from qnote.sync.services.remote_gateway import RemoteGateway
from qnote.sync.services.sync_state import SyncEngineState


@dataclass
class ReconcileReport:
    """Outcome of one reconciliation pass."""

    skipped: bool = False
    pushed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    tombstones_flushed: list[str] = field(default_factory=list)
    tombstones_kept: list[str] = field(default_factory=list)
    unpublishes_flushed: list[str] = field(default_factory=list)
    unpublishes_kept: list[str] = field(default_factory=list)
    bulk_unpinned_flushed: bool | None = None

    @property
    def clean(self) -> bool:
        """True when nothing is left pending."""
        return (
            not self.failed
            and not self.tombstones_kept
            and not self.unpublishes_kept
            and self.bulk_unpinned_flushed is not False
        )


@dataclass
class PullReport:
    """Outcome of pulling the remote note list into the store."""

    skipped: bool = False
    complete: bool = False
    fetched: int = 0
    updated: list[str] = field(default_factory=list)
    kept_local: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    error: SyncError | None = None


class SyncEngine(BaseService):
    """Pushes, pulls and reconciles notes of the signed-in user."""

    def __init__(
        self,
        store: NoteStore,
        state: SyncEngineState,
        gateway: RemoteGateway,
        connectivity: ConnectivitySignal,
        publisher: AlertPublisher,
        content_size_ceiling: int = 800_000,
        max_parallel_operations: int = 8,
        pull_page_size: int = 200,
    ) -> None:
        super().__init__()
        self._store = store
        self._state = state
        self._gateway = gateway
        self._connectivity = connectivity
        self._publisher = publisher
        self.content_size_ceiling = content_size_ceiling
        self._max_parallel = max_parallel_operations
        self._pull_page_size = pull_page_size
        self._in_flight: dict[str, asyncio.Task] = {}
        self._rerun: set[str] = set()
        self._reconcile_lock = asyncio.Lock()
        self._background = BackgroundTasks("sync-engine")
        self._unsubscribe = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Reconcile on every offline to online transition."""
        if self._unsubscribe is None:
            self._unsubscribe = self._connectivity.on_change(self._on_connectivity_change)

    @property
    def busy(self) -> bool:
        """True while a push or reconciliation is running."""
        return bool(self._in_flight) or len(self._background) > 0

    async def wait_idle(self) -> None:
        """Wait for running reconciliations and pushes."""
        await self._background.drain()
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight.values()), return_exceptions=True)

    async def stop(self) -> None:
        """Stop listening and wait for running work."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self.wait_idle()

    def _on_connectivity_change(self, online: bool) -> None:
        if online:
            self.schedule_reconcile()

    def schedule_reconcile(self) -> asyncio.Task:
        """Run a reconciliation in the background."""
        return self._background.spawn(self.reconcile(), name="reconcile")

    # -------------------------------------------------------------------------
    # Single note
    # -------------------------------------------------------------------------

    def is_oversized(self, note: Note) -> bool:
        """True if the note is too large to ever leave the device."""
        return len(note.content) > self.content_size_ceiling

    def is_syncing(self, note_id: str) -> bool:
        """True while a push of the note is in flight."""
        return note_id in self._in_flight

    async def sync_note(self, note_id: str) -> Result[Note]:
        """
        Bring the remote copy of one note up to date.

        Oversized notes are excluded without contacting the remote store.
        Offline, the note is marked pending. Otherwise it is pushed, and
        public notes also get their public copy written.

        Returns:
            Ok with the resulting note, or Err with the failure
        """
        if self._store.user_id is None:
            return Err(SyncError(SyncErrorKind.NOT_AUTHENTICATED, "No signed-in user", note_id))
        if self._store.get(note_id) is None:
            return Err(SyncError(SyncErrorKind.NOTE_MISSING, "Note not found", note_id))

        task = self._in_flight.get(note_id)
        if task is None:
            task = asyncio.get_running_loop().create_task(
                self._sync_loop(note_id), name=f"sync-{note_id}"
            )
            self._in_flight[note_id] = task
        else:
            self._rerun.add(note_id)
        return await asyncio.shield(task)

    async def _sync_loop(self, note_id: str) -> Result[Note]:
        try:
            while True:
                self._rerun.discard(note_id)
                result = await self._sync_once(note_id)
                if note_id not in self._rerun:
                    return result
        finally:
            self._in_flight.pop(note_id, None)

    async def _sync_once(self, note_id: str) -> Result[Note]:
        user_id = self._store.user_id
        note = self._store.get(note_id)
        if user_id is None:
            return Err(SyncError(SyncErrorKind.NOT_AUTHENTICATED, "No signed-in user", note_id))
        if note is None:
            return Err(SyncError(SyncErrorKind.NOTE_MISSING, "Note not found", note_id))

        if self.is_oversized(note):
            return Ok(await self._exclude(note))
        if not self._connectivity.online:
            return Ok(await self._mark_pending(note))
        if note.sync_state is SyncState.SYNCED:
            return Ok(note)

        self._store.set_transient(note.replace(sync_state=SyncState.SYNCING))
        result = await self._gateway.put_note(user_id, note)
        if result.ok and note.is_public and self._still_published(note):
            published = await self._gateway.publish_note(note)
            if not published.ok:
                self._publisher.publish(
                    PublicCopyFailed(
                        source="sync-engine",
                        payload={
                            "note_id": note_id,
                            "public_id": note.public_id,
                            "operation": "publish",
                            "error": published.error.message,
                        },
                    )
                )
                result = published

        if self._store.user_id != user_id:
            return result

        current = self._store.get(note_id)
        if current is None:
            # Deleted while the push was in flight
            await self.propagate_delete(note_id)
            if note.is_public and note.public_id:
                await self._store.request_unpublish(note.public_id, note_id)
            return Err(SyncError(SyncErrorKind.NOTE_MISSING, "Note deleted during push", note_id))

        if note.is_public and note.public_id and current.public_id != note.public_id:
            # Made private or republished while the push was in flight
            await self._store.request_unpublish(note.public_id, note_id)

        if not result.ok:
            await self._store.upsert(
                current.replace(sync_state=SyncState.NOT_SYNCED, needs_sync=True)
            )
            self._publisher.publish(
                NoteSyncFailed(
                    source="sync-engine",
                    payload={"note_id": note_id, "operation": "push", "error": result.error.message},
                )
            )
            return result

        if current.same_content_as(note):
            synced = current.replace(sync_state=SyncState.SYNCED, needs_sync=False)
        else:
            synced = current.replace(sync_state=SyncState.NOT_SYNCED, needs_sync=True)
            self._rerun.add(note_id)
        await self._store.upsert(synced)
        self._log_debug("Note pushed", note_id=note_id, sync_state=synced.sync_state.value)
        return Ok(synced)

    def _still_published(self, note: Note) -> bool:
        latest = self._store.get(note.id)
        return latest is not None and latest.public_id == note.public_id

    async def _exclude(self, note: Note) -> Note:
        excluded = note.replace(sync_state=SyncState.NOT_SYNCED, needs_sync=False)
        if excluded != note:
            await self._store.upsert(excluded)
        self._publisher.publish(
            NoteExcludedFromSync(
                source="sync-engine",
                payload={
                    "note_id": note.id,
                    "size": len(note.content),
                    "ceiling": self.content_size_ceiling,
                },
            )
        )
        return excluded

    async def _mark_pending(self, note: Note) -> Note:
        pending = note.replace(sync_state=SyncState.NOT_SYNCED, needs_sync=True)
        await self._store.upsert(pending)
        return pending

    async def propagate_delete(self, note_id: str) -> Result[None]:
        """
        Delete a removed note from the remote store.

        Offline, or when the remote deletion fails, a tombstone is recorded
        so the next reconciliation retries it.
        """
        user_id = self._store.user_id
        if user_id is None:
            return Err(SyncError(SyncErrorKind.NOT_AUTHENTICATED, "No signed-in user", note_id))
        if not self._connectivity.online:
            await self._state.add_tombstone(note_id)
            return Ok(None)

        result = await self._gateway.delete_note(user_id, note_id)
        if result.ok:
            if self._state.has_tombstone(note_id):
                await self._state.remove_tombstone(note_id)
        else:
            await self._state.add_tombstone(note_id)
            self._publisher.publish(
                NoteSyncFailed(
                    source="sync-engine",
                    payload={"note_id": note_id, "operation": "delete", "error": result.error.message},
                )
            )
        return result

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    def _needs_push(self, note: Note) -> bool:
        if note.needs_sync:
            return True
        return note.sync_state is SyncState.NOT_SYNCED and not self.is_oversized(note)

    async def _flush_tombstone(self, user_id: str, note_id: str) -> Result[None]:
        result = await self._gateway.delete_note(user_id, note_id)
        if result.ok and self._state.user_id == user_id:
            await self._state.remove_tombstone(note_id)
        return result

    async def _flush_unpublish(self, user_id: str, public_id: str, note_id: str | None) -> Result[None]:
        result = await self._gateway.unpublish_note(public_id, note_id=note_id)
        if result.ok and self._state.user_id == user_id:
            await self._state.remove_pending_unpublish(public_id)
        return result

    async def reconcile(self) -> ReconcileReport:
        """
        Flush everything pending to the remote store.

        Runs the pending bulk unpinned deletion first, then pushes pending
        notes, flushes tombstones and removes pending public copies
        concurrently with a bounded number of
        remote operations in flight. Running it again with nothing new
        pending makes no remote calls.
        """
        async with self._reconcile_lock:
            user_id = self._store.user_id
            if user_id is None or not self._connectivity.online:
                return ReconcileReport(skipped=True)

            report = ReconcileReport()

            if self._state.bulk_unpinned_pending:
                bulk = await self._gateway.delete_unpinned(user_id)
                report.bulk_unpinned_flushed = bulk.ok
                if bulk.ok:
                    await self._state.set_bulk_unpinned_pending(False)

            push_ids = [note.id for note in self._store.notes if self._needs_push(note)]
            tombstone_ids = sorted(self._state.tombstones)
            unpublishes = sorted(self._state.pending_unpublishes.items())

            results = await gather_bounded(
                [self.sync_note(note_id) for note_id in push_ids]
                + [self._flush_tombstone(user_id, note_id) for note_id in tombstone_ids]
                + [self._flush_unpublish(user_id, public_id, note_id) for public_id, note_id in unpublishes],
                limit=self._max_parallel,
            )
            push_results = results[: len(push_ids)]
            tombstone_results = results[len(push_ids): len(push_ids) + len(tombstone_ids)]
            unpublish_results = results[len(push_ids) + len(tombstone_ids):]

            for note_id, result in zip(push_ids, push_results):
                (report.pushed if result.ok else report.failed).append(note_id)
            for note_id, result in zip(tombstone_ids, tombstone_results):
                (report.tombstones_flushed if result.ok else report.tombstones_kept).append(note_id)
            for (public_id, _), result in zip(unpublishes, unpublish_results):
                (report.unpublishes_flushed if result.ok else report.unpublishes_kept).append(public_id)

            log_with_source(
                self._logger, "sync", "info", "Reconcile finished",
                user_id=user_id,
                pushed=len(report.pushed),
                failed=len(report.failed),
                tombstones_flushed=len(report.tombstones_flushed),
                tombstones_kept=len(report.tombstones_kept),
                unpublishes_flushed=len(report.unpublishes_flushed),
                unpublishes_kept=len(report.unpublishes_kept),
            )
            self._publisher.publish(
                ReconcileCompleted(
                    source="sync-engine",
                    payload={
                        "pushed": len(report.pushed),
                        "failed": len(report.failed),
                        "tombstones_flushed": len(report.tombstones_flushed),
                        "tombstones_kept": len(report.tombstones_kept),
                        "unpublishes_flushed": len(report.unpublishes_flushed),
                        "unpublishes_kept": len(report.unpublishes_kept),
                    },
                )
            )
            return report

    # -------------------------------------------------------------------------
    # Pull
    # -------------------------------------------------------------------------

    async def pull(self) -> PullReport:
        """
        Merge the remote note list into the store, last write wins.

        Pages through the remote notes with a keyset cursor. A remote note
        replaces the local one unless the local copy has unpushed changes
        and is strictly newer. Tombstoned notes stay deleted. After a
        complete pull, synced local notes missing remotely are dropped.
        """
        user_id = self._store.user_id
        if user_id is None or not self._connectivity.online:
            return PullReport(skipped=True)

        report = PullReport()
        seen: set[str] = set()
        start_after: tuple[datetime, str] | None = None

        while True:
            result = await self._gateway.list_notes(
                user_id, self._pull_page_size, start_after=start_after
            )
            if not result.ok:
                report.error = result.error
                break
            if self._store.user_id != user_id:
                return report

            documents = result.value
            report.fetched += len(documents)
            merged: list[Note] = []
            for document in documents:
                seen.add(document.id)
                if self._state.has_tombstone(document.id):
                    continue
                remote = document.to_note(user_id)
                local = self._store.get(document.id)
                if local is None:
                    merged.append(remote)
                elif self.is_syncing(document.id):
                    report.kept_local.append(document.id)
                elif (local.needs_sync or local.sync_state is not SyncState.SYNCED) and (
                    local.timestamp > remote.timestamp
                ):
                    report.kept_local.append(document.id)
                elif local.sync_state is SyncState.SYNCED and local.same_content_as(remote):
                    continue
                else:
                    merged.append(remote)

            await self._store.upsert_many(merged)
            report.updated.extend(note.id for note in merged)

            if len(documents) < self._pull_page_size:
                report.complete = True
                break
            last = documents[-1]
            start_after = (as_naive_utc(last.timestamp), last.id)

        if report.complete:
            for note in self._store.notes:
                if (
                    note.id not in seen
                    and note.sync_state is SyncState.SYNCED
                    and not note.needs_sync
                    and not self.is_syncing(note.id)
                ):
                    await self._store.forget(note.id)
                    report.removed.append(note.id)

        log_with_source(
            self._logger, "sync", "info", "Pull finished",
            user_id=user_id,
            fetched=report.fetched,
            updated=len(report.updated),
            kept_local=len(report.kept_local),
            removed=len(report.removed),
            complete=report.complete,
        )
        return report
