"""
Note Schemas.

The Note record shared by the store, the cache, the sync engine and the UI
boundary. Notes are immutable; every change produces a new validated
instance via ``Note.replace``.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from qnote.sync.core.utils import as_naive_utc


class SyncState(str, Enum):
    """Whether the remote store is believed to hold the local content."""

    NOT_SYNCED = "notSynced"
    SYNCING = "syncing"
    SYNCED = "synced"


class Note(BaseModel):
    """
    A single user-authored text document.

    Invariants checked at construction:
        - public_id is present if and only if is_public
        - a synced note has no outstanding push (needs_sync is False)
    """

    id: str = Field(default_factory=lambda: str(uuid4()), min_length=1)
    user_id: str = Field(min_length=1, description="Owner, immutable after creation")
    content: str = Field(description="Note text")
    timestamp: datetime = Field(description="Last modification, UTC")
    is_pinned: bool = False
    sync_state: SyncState = SyncState.NOT_SYNCED
    needs_sync: bool = True
    is_public: bool = False
    public_id: str | None = None

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return as_naive_utc(value)

    @model_validator(mode="after")
    def _check_invariants(self) -> "Note":
        if self.is_public and not self.public_id:
            raise ValueError("public note requires a public_id")
        if not self.is_public and self.public_id is not None:
            raise ValueError("public_id is only allowed on public notes")
        if self.sync_state is SyncState.SYNCED and self.needs_sync:
            raise ValueError("a synced note cannot need sync")
        return self

    def replace(self, **changes: Any) -> "Note":
        """Return a validated copy with the given fields changed."""
        return type(self).model_validate({**self.model_dump(), **changes})

    def same_content_as(self, other: "Note") -> bool:
        """True when the fields pushed to the remote store are equal."""
        return (
            self.content == other.content
            and self.timestamp == other.timestamp
            and self.is_pinned == other.is_pinned
            and self.is_public == other.is_public
            and self.public_id == other.public_id
        )
