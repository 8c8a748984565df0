"""
Sync Bookkeeping Models.

Tombstones (deletions waiting for remote confirmation), public copies
waiting for removal, and named boolean flags. All are scoped by user id.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from qnote.sync.models.base import Base, CreatedAtMixin


class Tombstone(CreatedAtMixin, Base):
    """A note deleted locally whose remote copy has not been deleted yet."""

    __tablename__ = "tombstones"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    note_id: Mapped[str] = mapped_column(String(128), primary_key=True)

    def __repr__(self) -> str:
        return f"<Tombstone(user_id={self.user_id!r}, note_id={self.note_id!r})>"


class PendingUnpublish(CreatedAtMixin, Base):
    """A public copy that must be removed from the remote store."""

    __tablename__ = "pending_unpublishes"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    public_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    note_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    def __repr__(self) -> str:
        return f"<PendingUnpublish(user_id={self.user_id!r}, public_id={self.public_id!r})>"


class SyncFlag(Base):
    """Named per-user boolean, e.g. a pending bulk deletion."""

    __tablename__ = "sync_flags"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[bool] = mapped_column(default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<SyncFlag(user_id={self.user_id!r}, name={self.name!r}, value={self.value})>"
