"""Unit tests for note and remote document schemas."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from qnote.sync.schemas.note import Note, SyncState
from qnote.sync.schemas.remote import PublicNoteDocument, RemoteNoteDocument


def _note(**fields) -> Note:
    values = {
        "id": "n1",
        "user_id": "user-1",
        "content": "hello",
        "timestamp": datetime(2024, 1, 1, 12, 0),
    }
    values.update(fields)
    return Note(**values)


class TestNote:
    def test_defaults(self):
        note = _note()
        assert note.sync_state is SyncState.NOT_SYNCED
        assert note.needs_sync is True
        assert note.is_pinned is False
        assert note.is_public is False
        assert note.public_id is None

    def test_generates_id_when_missing(self):
        note = Note(user_id="user-1", content="x", timestamp=datetime(2024, 1, 1))
        assert note.id

    def test_aware_timestamp_normalized_to_naive_utc(self):
        aware = datetime(2024, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        assert _note(timestamp=aware).timestamp == datetime(2024, 1, 1, 12, 0)

    def test_public_note_requires_public_id(self):
        with pytest.raises(ValidationError, match="public_id"):
            _note(is_public=True)

    def test_private_note_rejects_public_id(self):
        with pytest.raises(ValidationError, match="public_id"):
            _note(public_id="pub-1")

    def test_synced_note_cannot_need_sync(self):
        with pytest.raises(ValidationError, match="synced"):
            _note(sync_state=SyncState.SYNCED, needs_sync=True)

    def test_empty_user_id_rejected(self):
        with pytest.raises(ValidationError):
            _note(user_id="")

    def test_notes_are_frozen(self):
        note = _note()
        with pytest.raises(ValidationError):
            note.content = "changed"

    def test_replace_returns_validated_copy(self):
        note = _note()
        updated = note.replace(content="bye", is_pinned=True)

        assert updated.content == "bye"
        assert updated.is_pinned is True
        assert note.content == "hello"

    def test_replace_validates_invariants(self):
        with pytest.raises(ValidationError):
            _note().replace(is_public=True)

    def test_same_content_ignores_sync_bookkeeping(self):
        note = _note()
        synced = note.replace(sync_state=SyncState.SYNCED, needs_sync=False)
        assert note.same_content_as(synced)
        assert not note.same_content_as(note.replace(content="other"))
        assert not note.same_content_as(note.replace(is_pinned=True))

    def test_sync_state_wire_values(self):
        assert [s.value for s in SyncState] == ["notSynced", "syncing", "synced"]


class TestRemoteNoteDocument:
    def test_dumps_camel_case_aliases(self):
        note = _note(is_pinned=True, is_public=True, public_id="pub-1")
        data = RemoteNoteDocument.from_note(note).model_dump(mode="json", by_alias=True)

        assert data == {
            "id": "n1",
            "content": "hello",
            "timestamp": "2024-01-01T12:00:00",
            "isPinned": True,
            "isPublic": True,
            "publicId": "pub-1",
        }

    def test_parses_camel_case_document(self):
        document = RemoteNoteDocument.model_validate(
            {"id": "n1", "content": "x", "timestamp": "2024-01-01T12:00:00", "isPinned": True}
        )
        assert document.is_pinned is True
        assert document.is_public is False

    def test_to_note_is_synced(self):
        document = RemoteNoteDocument.from_note(_note())
        note = document.to_note("user-1")

        assert note.sync_state is SyncState.SYNCED
        assert note.needs_sync is False
        assert note.user_id == "user-1"

    def test_to_note_drops_inconsistent_public_flag(self):
        document = RemoteNoteDocument(
            id="n1", content="x", timestamp=datetime(2024, 1, 1), is_public=True,
        )
        note = document.to_note("user-1")
        assert note.is_public is False
        assert note.public_id is None


class TestPublicNoteDocument:
    def test_dumps_user_id_alias(self):
        document = PublicNoteDocument(
            content="shared", timestamp=datetime(2024, 1, 1), user_id="user-1",
        )
        data = document.model_dump(mode="json", by_alias=True)
        assert data["userId"] == "user-1"
        assert "user_id" not in data
