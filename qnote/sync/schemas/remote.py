"""
Remote Document Schemas.

JSON shapes exchanged with the remote note store. Field names follow the
remote store's camelCase documents.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from qnote.sync.schemas.note import Note, SyncState


class RemoteNoteDocument(BaseModel):
    """A note as stored under users/{user_id}/notes/{id}."""

    id: str
    content: str
    timestamp: datetime
    is_pinned: bool = Field(default=False, alias="isPinned")
    is_public: bool = Field(default=False, alias="isPublic")
    public_id: str | None = Field(default=None, alias="publicId")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_note(cls, note: Note) -> "RemoteNoteDocument":
        return cls(
            id=note.id,
            content=note.content,
            timestamp=note.timestamp,
            is_pinned=note.is_pinned,
            is_public=note.is_public,
            public_id=note.public_id,
        )

    def to_note(self, user_id: str) -> Note:
        """Build a local note that agrees with this remote document."""
        return Note(
            id=self.id,
            user_id=user_id,
            content=self.content,
            timestamp=self.timestamp,
            is_pinned=self.is_pinned,
            is_public=self.is_public and self.public_id is not None,
            public_id=self.public_id if self.is_public else None,
            sync_state=SyncState.SYNCED,
            needs_sync=False,
        )


class PublicNoteDocument(BaseModel):
    """A published copy stored under public_notes/{public_id}."""

    content: str
    timestamp: datetime
    user_id: str = Field(alias="userId")

    model_config = ConfigDict(populate_by_name=True)
