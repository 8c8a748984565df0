"""
Integration Tests for Offline-First Workflows.

Each test drives one or more sessions built by create_session against a
shared in-memory remote store and real SQLite cache files.
"""

from datetime import timedelta

import pytest

from qnote.sync.core.utils import utc_now
from qnote.sync.remote.memory import InMemoryRemoteStore
from qnote.sync.schemas.note import Note, SyncState


class TestCreateOffline:
    @pytest.mark.asyncio
    async def test_created_note_is_pending_and_visible(self, open_device, shared_remote: InMemoryRemoteStore):
        phone = await open_device("phone")

        note = await phone.create_note("Buy milk")
        await phone.wait_idle()

        current = phone.store.get(note.id)
        assert current.sync_state is SyncState.NOT_SYNCED
        assert current.needs_sync is True
        assert [n.id for n in phone.list_visible()] == [note.id]
        assert shared_remote.calls == []

    @pytest.mark.asyncio
    async def test_pending_note_survives_restart_and_syncs_on_sign_in(
        self, open_device, shared_remote: InMemoryRemoteStore
    ):
        phone = await open_device("phone")
        note = await phone.create_note("written on the train")
        await phone.wait_idle()
        await phone.close()

        reopened = await open_device("phone", online=True)

        assert reopened.store.get(note.id).sync_state is SyncState.SYNCED
        assert shared_remote.notes["user-1"][note.id].content == "written on the train"


class TestOversizedNotes:
    @pytest.mark.asyncio
    async def test_oversized_note_never_reaches_remote(self, open_device, shared_remote: InMemoryRemoteStore):
        phone = await open_device("phone")
        note = await phone.create_note("x" * 800_001)
        await phone.wait_idle()

        phone.connectivity.update(True)
        await phone.wait_idle()
        await phone.sync()

        current = phone.store.get(note.id)
        assert current.sync_state is SyncState.NOT_SYNCED
        assert current.needs_sync is False
        assert shared_remote.calls_of("put_note") == []
        assert phone.alerts.of_type("sync.note.excluded")


class TestReconcile:
    @pytest.mark.asyncio
    async def test_reconcile_twice_makes_no_extra_calls(self, open_device, shared_remote: InMemoryRemoteStore):
        phone = await open_device("phone")
        for text in ["one", "two", "three"]:
            await phone.create_note(text)
        first = phone.list_visible()[0]
        await phone.delete_note(first)
        await phone.wait_idle()

        phone.connectivity.update(True)
        await phone.wait_idle()
        calls_after_first = len(shared_remote.calls)
        assert calls_after_first > 0

        report = await phone.sync()

        assert len(shared_remote.calls) == calls_after_first
        assert report.pushed == []
        assert report.tombstones_flushed == []

    @pytest.mark.asyncio
    async def test_going_offline_does_not_reconcile(self, open_device):
        phone = await open_device("phone", online=True)
        reconciled = len(phone.alerts.of_type("sync.reconcile.completed"))

        phone.connectivity.update(False)
        await phone.wait_idle()

        assert len(phone.alerts.of_type("sync.reconcile.completed")) == reconciled


class TestOrdering:
    @pytest.mark.asyncio
    async def test_pinned_first_newest_first_after_restart(self, open_device):
        phone = await open_device("phone")
        base = utc_now()
        for note_id, minutes, pinned in [("A", 1, True), ("B", 5, False), ("C", 3, True)]:
            await phone.store.upsert(Note(
                id=note_id,
                user_id="user-1",
                content=note_id,
                timestamp=base + timedelta(minutes=minutes),
                is_pinned=pinned,
            ))
        assert [n.id for n in phone.list_visible()] == ["C", "A", "B"]
        await phone.close()

        reopened = await open_device("phone")

        assert [n.id for n in reopened.list_visible()] == ["C", "A", "B"]


class TestOfflineDeletion:
    @pytest.mark.asyncio
    async def test_tombstone_survives_restart_and_flushes_online(
        self, open_device, shared_remote: InMemoryRemoteStore
    ):
        phone = await open_device("phone", online=True)
        note = await phone.create_note("delete me")
        await phone.wait_idle()
        assert note.id in shared_remote.notes["user-1"]

        phone.connectivity.update(False)
        await phone.delete_note(note)
        await phone.wait_idle()

        assert phone.state.has_tombstone(note.id)
        assert phone.list_visible() == []
        assert await phone.cache.get("user-1", note.id) is None
        await phone.close()

        reopened = await open_device("phone")
        assert reopened.state.has_tombstone(note.id)

        reopened.connectivity.update(True)
        await reopened.wait_idle()

        assert not reopened.state.has_tombstone(note.id)
        assert note.id not in shared_remote.notes["user-1"]

    @pytest.mark.asyncio
    async def test_deletion_interrupted_by_lost_connection_is_not_undone(
        self, open_device, shared_remote: InMemoryRemoteStore
    ):
        phone = await open_device("phone", online=True)
        note = await phone.create_note("gone for good")
        await phone.wait_idle()

        await phone.delete_note(note)
        phone.connectivity.update(False)
        await phone.close()

        reopened = await open_device("phone", online=True)
        await reopened.refresh()

        assert note.id not in shared_remote.notes["user-1"]
        assert reopened.store.get(note.id) is None
        assert reopened.state.tombstones == set()

    @pytest.mark.asyncio
    async def test_private_offline_note_loses_public_copy_after_restart(
        self, open_device, shared_remote: InMemoryRemoteStore
    ):
        phone = await open_device("phone", online=True)
        published = await phone.toggle_public(await phone.create_note("was public"))
        await phone.wait_idle()

        phone.connectivity.update(False)
        shared_remote.set_available(False)
        await phone.toggle_public(published)
        await phone.close()
        assert published.public_id in shared_remote.public_notes

        shared_remote.set_available(True)
        reopened = await open_device("phone", online=True)

        assert shared_remote.public_notes == {}
        assert reopened.state.pending_unpublishes == {}

    @pytest.mark.asyncio
    async def test_tombstones_do_not_leak_between_users(self, open_device):
        alice = await open_device("shared-phone", user_id="alice")
        note = await alice.create_note("alice's note")
        await alice.wait_idle()
        await alice.delete_note(note)
        await alice.wait_idle()

        await alice.sign_in("bob")

        assert alice.state.tombstones == set()
        assert await alice.cache.tombstones("alice") == {("alice", note.id)}

    @pytest.mark.asyncio
    async def test_offline_bulk_unpinned_deletion_flushes_online(
        self, open_device, shared_remote: InMemoryRemoteStore
    ):
        phone = await open_device("phone", online=True)
        keep = await phone.create_note("keep")
        drop = await phone.create_note("drop")
        await phone.toggle_pin(keep)
        await phone.wait_idle()

        phone.connectivity.update(False)
        await phone.delete_unpinned_notes()
        assert phone.state.bulk_unpinned_pending is True

        phone.connectivity.update(True)
        await phone.wait_idle()

        assert phone.state.bulk_unpinned_pending is False
        assert set(shared_remote.notes["user-1"]) == {keep.id}
        assert drop.id not in shared_remote.notes["user-1"]


class TestLastWriteWins:
    @pytest.mark.asyncio
    async def test_newer_remote_edit_overwrites_synced_local_copy(self, open_device):
        phone = await open_device("phone", online=True)
        laptop = await open_device("laptop", online=True)

        note = await phone.create_note("draft")
        await phone.wait_idle()
        await laptop.refresh()
        assert laptop.store.get(note.id).content == "draft"
        assert laptop.store.get(note.id).sync_state is SyncState.SYNCED

        edited = await phone.update_note(phone.store.get(note.id).replace(content="final"))
        await phone.wait_idle()
        await laptop.refresh()

        on_laptop = laptop.store.get(note.id)
        assert on_laptop.content == "final"
        assert on_laptop.timestamp == edited.timestamp
        assert (await laptop.cache.get("user-1", note.id)).content == "final"

    @pytest.mark.asyncio
    async def test_later_local_write_overwrites_remote(self, open_device, shared_remote: InMemoryRemoteStore):
        phone = await open_device("phone", online=True)
        laptop = await open_device("laptop", online=True)
        note = await phone.create_note("v1")
        await phone.wait_idle()
        await laptop.refresh()

        laptop.connectivity.update(False)
        await laptop.update_note(laptop.store.get(note.id).replace(content="v2 from laptop"))
        await laptop.wait_idle()
        laptop.connectivity.update(True)
        await laptop.wait_idle()

        assert shared_remote.notes["user-1"][note.id].content == "v2 from laptop"

    @pytest.mark.asyncio
    async def test_deletion_on_other_device_is_pulled(self, open_device):
        phone = await open_device("phone", online=True)
        laptop = await open_device("laptop", online=True)
        note = await phone.create_note("temporary")
        await phone.wait_idle()
        await laptop.refresh()

        await phone.delete_note(phone.store.get(note.id))
        await phone.wait_idle()
        report = await laptop.refresh()

        assert report.removed == [note.id]
        assert laptop.store.get(note.id) is None


class TestPublicNotes:
    @pytest.mark.asyncio
    async def test_public_toggle_round_trip(self, open_device, shared_remote: InMemoryRemoteStore):
        phone = await open_device("phone", online=True)
        note = await phone.create_note("recipe")
        await phone.wait_idle()

        published = await phone.toggle_public(note)
        await phone.wait_idle()

        assert published.is_public is True
        assert published.public_id is not None
        copy = shared_remote.public_notes[published.public_id]
        assert copy.content == "recipe"
        assert copy.user_id == "user-1"

        unpublished = await phone.toggle_public(published)
        await phone.wait_idle()

        assert unpublished.is_public is False
        assert unpublished.public_id is None
        assert shared_remote.public_notes == {}

    @pytest.mark.asyncio
    async def test_deleting_public_note_removes_public_copy(
        self, open_device, shared_remote: InMemoryRemoteStore
    ):
        phone = await open_device("phone", online=True)
        note = await phone.toggle_public(await phone.create_note("shared"))
        await phone.wait_idle()
        assert note.public_id in shared_remote.public_notes

        await phone.delete_note(note)
        await phone.wait_idle()

        assert shared_remote.public_notes == {}
        assert note.id not in shared_remote.notes["user-1"]
