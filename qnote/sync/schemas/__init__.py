# Pydantic schemas package
from qnote.sync.schemas.note import Note, SyncState
from qnote.sync.schemas.remote import PublicNoteDocument, RemoteNoteDocument

__all__ = [
    "Note",
    "PublicNoteDocument",
    "RemoteNoteDocument",
    "SyncState",
]
