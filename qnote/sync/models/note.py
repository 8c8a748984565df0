"""
Cached Note Model.

Durable copy of a user's note in the local cache. Rows are keyed by
(user_id, id) so note ids only need to be unique per user.
"""

from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from qnote.sync.models.base import Base


class CachedNote(Base):
    """
    Note row in the local cache.

    Column names match the fields of the Note schema so rows can be
    validated straight into it.
    """

    __tablename__ = "notes"
    __table_args__ = (
        Index("ix_notes_user_timestamp", "user_id", "timestamp", "id"),
        Index("ix_notes_user_pending", "user_id", "needs_sync"),
    )

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_pinned: Mapped[bool] = mapped_column(default=False, nullable=False)
    sync_state: Mapped[str] = mapped_column(String(16), nullable=False)
    needs_sync: Mapped[bool] = mapped_column(default=True, nullable=False)
    is_public: Mapped[bool] = mapped_column(default=False, nullable=False)
    public_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<CachedNote(user_id={self.user_id!r}, id={self.id!r}, sync_state={self.sync_state!r})>"
