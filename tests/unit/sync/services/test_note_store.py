"""Unit tests for the NoteStore and its ordering."""

from unittest.mock import AsyncMock, patch

import pytest

from qnote.sync.core.exceptions import AuthenticationError, LocalStorageError, ValidationError
from qnote.sync.events.publishers import AlertPublisher
from qnote.sync.remote.memory import InMemoryRemoteStore
from qnote.sync.schemas.note import SyncState
from qnote.sync.services.connectivity import ConnectivitySignal
from qnote.sync.services.local_cache import LocalCache
from qnote.sync.services.note_store import NoteStore, sort_notes
from qnote.sync.services.sync_state import SyncEngineState

TEST_USER = "user-1"


@pytest.fixture
async def loaded_store(note_store: NoteStore, sync_state: SyncEngineState) -> NoteStore:
    await note_store.load(TEST_USER)
    await sync_state.activate(TEST_USER)
    return note_store


class TestSortNotes:
    def test_pinned_first_then_newest(self, make_note):
        a = make_note("A", minutes=1, is_pinned=True)
        b = make_note("B", minutes=5)
        c = make_note("C", minutes=3, is_pinned=True)

        assert [n.id for n in sort_notes([a, b, c])] == ["C", "A", "B"]

    def test_newer_unpinned_never_beats_pinned(self, make_note):
        old_pinned = make_note("old", minutes=0, is_pinned=True)
        new_unpinned = make_note("new", minutes=100)

        assert [n.id for n in sort_notes([new_unpinned, old_pinned])] == ["old", "new"]

    def test_equal_timestamps_are_deterministic(self, make_note):
        notes = [make_note("x"), make_note("z"), make_note("y")]

        assert [n.id for n in sort_notes(notes)] == ["z", "y", "x"]
        assert [n.id for n in sort_notes(list(reversed(notes)))] == ["z", "y", "x"]


class TestLoad:
    @pytest.mark.asyncio
    async def test_load_returns_sorted_cached_notes(self, note_store, local_cache: LocalCache, make_note):
        await local_cache.put_batch([
            make_note("a", minutes=1),
            make_note("b", minutes=2),
            make_note("p", minutes=0, is_pinned=True),
        ])

        notes = await note_store.load(TEST_USER)

        assert [n.id for n in notes] == ["p", "b", "a"]
        assert note_store.user_id == TEST_USER

    @pytest.mark.asyncio
    async def test_load_only_reads_own_notes(self, note_store, local_cache, make_note):
        await local_cache.put(make_note("mine"))
        await local_cache.put(make_note("theirs", user_id="user-2"))

        assert [n.id for n in await note_store.load(TEST_USER)] == ["mine"]

    @pytest.mark.asyncio
    async def test_syncing_notes_load_as_pending(self, note_store, local_cache, make_note):
        await local_cache.put(make_note("a", sync_state=SyncState.SYNCING, needs_sync=False))

        [note] = await note_store.load(TEST_USER)

        assert note.sync_state is SyncState.NOT_SYNCED
        assert note.needs_sync is True

    @pytest.mark.asyncio
    async def test_storage_error_yields_empty_list(self, note_store, local_cache, publisher: AlertPublisher):
        with patch.object(local_cache, "load_all", AsyncMock(side_effect=LocalStorageError("corrupt"))):
            notes = await note_store.load(TEST_USER)

        assert notes == []
        assert note_store.user_id == TEST_USER
        assert len(publisher.of_type("cache.storage.failed")) == 1

    @pytest.mark.asyncio
    async def test_clear(self, loaded_store: NoteStore, make_note):
        await loaded_store.upsert(make_note("a"))

        loaded_store.clear()

        assert loaded_store.user_id is None
        assert loaded_store.notes == []


class TestUpsert:
    @pytest.mark.asyncio
    async def test_upsert_writes_through(self, loaded_store: NoteStore, local_cache, make_note):
        note = make_note("a")
        await loaded_store.upsert(note)

        assert loaded_store.get("a") == note
        assert await local_cache.get(TEST_USER, "a") == note

    @pytest.mark.asyncio
    async def test_upsert_replaces_by_id_and_resorts(self, loaded_store: NoteStore, make_note):
        await loaded_store.upsert(make_note("a", minutes=1))
        await loaded_store.upsert(make_note("b", minutes=2))
        assert [n.id for n in loaded_store.notes] == ["b", "a"]

        await loaded_store.upsert(make_note("a", minutes=1, is_pinned=True))

        assert [n.id for n in loaded_store.notes] == ["a", "b"]
        assert len(loaded_store.notes) == 2

    @pytest.mark.asyncio
    async def test_upsert_never_contacts_remote(self, loaded_store: NoteStore, remote_store: InMemoryRemoteStore, make_note):
        await loaded_store.upsert(make_note("a"))
        assert remote_store.calls == []

    @pytest.mark.asyncio
    async def test_upsert_requires_signed_in_user(self, note_store: NoteStore, make_note):
        with pytest.raises(AuthenticationError):
            await note_store.upsert(make_note("a"))

    @pytest.mark.asyncio
    async def test_upsert_rejects_foreign_note(self, loaded_store: NoteStore, make_note):
        with pytest.raises(ValidationError):
            await loaded_store.upsert(make_note("a", user_id="user-2"))

    @pytest.mark.asyncio
    async def test_storage_failure_keeps_memory_state(self, loaded_store: NoteStore, local_cache, publisher, make_note):
        with patch.object(local_cache, "put", AsyncMock(side_effect=LocalStorageError("disk full"))):
            await loaded_store.upsert(make_note("a"))

        assert loaded_store.get("a") is not None
        [alert] = publisher.of_type("cache.storage.failed")
        assert alert.payload["note_id"] == "a"

    @pytest.mark.asyncio
    async def test_upsert_many_uses_one_batch(self, loaded_store: NoteStore, local_cache, make_note):
        put_batch = AsyncMock(side_effect=local_cache.put_batch)
        with patch.object(local_cache, "put_batch", put_batch):
            await loaded_store.upsert_many([make_note("a"), make_note("b")])

        put_batch.assert_awaited_once()
        assert {n.id for n in await local_cache.load_all(TEST_USER)} == {"a", "b"}

    @pytest.mark.asyncio
    async def test_set_transient_is_memory_only(self, loaded_store: NoteStore, local_cache, make_note):
        note = make_note("a")
        await loaded_store.upsert(note)

        loaded_store.set_transient(note.replace(sync_state=SyncState.SYNCING))

        assert loaded_store.get("a").sync_state is SyncState.SYNCING
        assert (await local_cache.get(TEST_USER, "a")).sync_state is SyncState.NOT_SYNCED


class TestRemove:
    @pytest.mark.asyncio
    async def test_offline_remove_records_tombstone(
        self, loaded_store: NoteStore, sync_state, local_cache, make_note
    ):
        await loaded_store.upsert(make_note("x"))

        removed = await loaded_store.remove("x")

        assert removed.id == "x"
        assert loaded_store.get("x") is None
        assert await local_cache.get(TEST_USER, "x") is None
        assert sync_state.has_tombstone("x")
        assert await local_cache.tombstones(TEST_USER) == {(TEST_USER, "x")}

    @pytest.mark.asyncio
    async def test_online_remove_records_no_tombstone(
        self, loaded_store: NoteStore, sync_state, connectivity: ConnectivitySignal, make_note
    ):
        await loaded_store.upsert(make_note("x"))
        connectivity.update(True)

        await loaded_store.remove("x")

        assert sync_state.tombstones == set()

    @pytest.mark.asyncio
    async def test_online_remove_public_note_unpublishes(
        self, loaded_store: NoteStore, connectivity, remote_store: InMemoryRemoteStore, sync_state, make_note
    ):
        await remote_store.publish_note("pub-1", "x", make_note("x").timestamp, TEST_USER)
        await loaded_store.upsert(make_note("x", is_public=True, public_id="pub-1"))
        connectivity.update(True)

        await loaded_store.remove("x")
        await loaded_store.background.drain()

        assert remote_store.calls_of("unpublish_note") == ["pub-1"]
        assert "pub-1" not in remote_store.public_notes
        assert sync_state.pending_unpublishes == {}

    @pytest.mark.asyncio
    async def test_offline_remove_public_note_defers_unpublish(
        self, loaded_store: NoteStore, remote_store: InMemoryRemoteStore, sync_state, local_cache, make_note
    ):
        await loaded_store.upsert(make_note("x", is_public=True, public_id="pub-1"))
        remote_store.set_available(False)

        await loaded_store.remove("x")
        await loaded_store.background.drain()

        assert remote_store.calls_of("unpublish_note") == []
        assert sync_state.pending_unpublishes == {"pub-1": "x"}
        assert await local_cache.pending_unpublishes(TEST_USER) == {"pub-1": "x"}

    @pytest.mark.asyncio
    async def test_failed_unpublish_alerts_and_stays_pending(
        self,
        loaded_store: NoteStore,
        connectivity,
        remote_store: InMemoryRemoteStore,
        sync_state,
        publisher,
        make_note,
    ):
        await loaded_store.upsert(make_note("x", is_public=True, public_id="pub-1"))
        connectivity.update(True)
        remote_store.set_available(False)

        await loaded_store.remove("x")
        await loaded_store.background.drain()

        assert loaded_store.get("x") is None
        [alert] = publisher.of_type("sync.public_copy.failed")
        assert alert.payload["public_id"] == "pub-1"
        assert sync_state.pending_unpublishes == {"pub-1": "x"}

    @pytest.mark.asyncio
    async def test_successful_unpublish_clears_pending(
        self, loaded_store: NoteStore, connectivity, sync_state
    ):
        await sync_state.add_pending_unpublish("pub-1", "x")
        connectivity.update(True)

        assert await loaded_store.unpublish("pub-1", "x") is True
        assert sync_state.pending_unpublishes == {}

    @pytest.mark.asyncio
    async def test_forget_leaves_no_tombstone(self, loaded_store: NoteStore, sync_state, local_cache, make_note):
        await loaded_store.upsert(make_note("x", is_public=True, public_id="pub-1"))

        await loaded_store.forget("x")
        await loaded_store.forget("x")

        assert loaded_store.get("x") is None
        assert await local_cache.get(TEST_USER, "x") is None
        assert sync_state.tombstones == set()
        assert len(loaded_store.background) == 0

    @pytest.mark.asyncio
    async def test_remove_without_user(self, note_store: NoteStore):
        assert await note_store.remove("x") is None


class TestRemoveUnpinned:
    @pytest.mark.asyncio
    async def test_offline_sets_pending_flag(self, loaded_store: NoteStore, sync_state, local_cache, make_note):
        await loaded_store.upsert_many([make_note("pinned", is_pinned=True), make_note("loose")])

        removed = await loaded_store.remove_unpinned()

        assert removed == ["loose"]
        assert [n.id for n in loaded_store.notes] == ["pinned"]
        assert [n.id for n in await local_cache.load_all(TEST_USER)] == ["pinned"]
        assert sync_state.bulk_unpinned_pending is True

    @pytest.mark.asyncio
    async def test_online_deletes_remotely(
        self, loaded_store: NoteStore, sync_state, connectivity, remote_store: InMemoryRemoteStore, make_note
    ):
        connectivity.update(True)
        await loaded_store.upsert(make_note("loose"))

        await loaded_store.remove_unpinned()

        assert remote_store.calls_of("delete_unpinned") == [TEST_USER]
        assert sync_state.bulk_unpinned_pending is False

    @pytest.mark.asyncio
    async def test_online_failure_sets_pending_flag(
        self, loaded_store: NoteStore, sync_state, connectivity, remote_store: InMemoryRemoteStore, make_note
    ):
        connectivity.update(True)
        remote_store.set_available(False)
        await loaded_store.upsert(make_note("loose"))

        await loaded_store.remove_unpinned()

        assert sync_state.bulk_unpinned_pending is True

    @pytest.mark.asyncio
    async def test_public_unpinned_notes_are_unpublished(
        self, loaded_store: NoteStore, connectivity, remote_store: InMemoryRemoteStore, make_note
    ):
        await loaded_store.upsert(make_note("loose", is_public=True, public_id="pub-9"))
        connectivity.update(True)

        await loaded_store.remove_unpinned()
        await loaded_store.background.drain()

        assert remote_store.calls_of("unpublish_note") == ["pub-9"]

    @pytest.mark.asyncio
    async def test_offline_public_unpinned_notes_stay_pending(
        self, loaded_store: NoteStore, sync_state, remote_store: InMemoryRemoteStore, make_note
    ):
        await loaded_store.upsert(make_note("loose", is_public=True, public_id="pub-9"))

        await loaded_store.remove_unpinned()

        assert remote_store.calls_of("unpublish_note") == []
        assert sync_state.pending_unpublishes == {"pub-9": "loose"}


class TestQuery:
    @pytest.mark.asyncio
    async def test_blank_search_returns_everything(self, loaded_store: NoteStore, make_note):
        await loaded_store.upsert_many([make_note("a", minutes=1), make_note("b", minutes=2)])

        assert [n.id for n in loaded_store.query("")] == ["b", "a"]
        assert [n.id for n in loaded_store.query("   ")] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_case_insensitive_substring(self, loaded_store: NoteStore, make_note):
        await loaded_store.upsert_many([
            make_note("milk", content="Buy MILK today"),
            make_note("bread", content="Buy bread"),
        ])

        assert [n.id for n in loaded_store.query("milk")] == ["milk"]
        assert [n.id for n in loaded_store.query("BUY")] == ["milk", "bread"]
        assert loaded_store.query("cheese") == []

    @pytest.mark.asyncio
    async def test_results_keep_sort_order(self, loaded_store: NoteStore, make_note):
        await loaded_store.upsert_many([
            make_note("old", minutes=0, content="todo", is_pinned=True),
            make_note("new", minutes=5, content="todo"),
        ])

        assert [n.id for n in loaded_store.query("todo")] == ["old", "new"]
