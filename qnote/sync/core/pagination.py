"""
Pagination Utilities.

Offset and keyset (cursor) pagination for note listings.

Keyset cursors encode the (timestamp, id) of the last item returned, so
fetching the next page never re-reads rows already delivered, unlike a
growing ``limit = page * per_page`` query.
"""

import base64
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar

T = TypeVar("T")


# =============================================================================
# Cursor Encoding/Decoding
# =============================================================================


def encode_cursor(value: str | int) -> str:
    """
    Encode a value as a pagination cursor.

    Args:
        value: The value to encode

    Returns:
        Base64-encoded cursor string
    """
    return base64.urlsafe_b64encode(str(value).encode()).decode()


def decode_cursor(cursor: str) -> str:
    """
    Decode a pagination cursor.

    Args:
        cursor: Base64-encoded cursor string

    Returns:
        Decoded cursor value

    Raises:
        ValueError: If cursor is invalid
    """
    try:
        return base64.urlsafe_b64decode(cursor.encode()).decode()
    except Exception as exc:
        raise ValueError(f"Invalid cursor: {cursor}") from exc


def encode_keyset_cursor(timestamp: datetime, item_id: str) -> str:
    """Encode the sort key of the last item on a page."""
    return encode_cursor(f"{timestamp.isoformat()}|{item_id}")


def decode_keyset_cursor(cursor: str) -> tuple[datetime, str]:
    """
    Decode a keyset cursor produced by encode_keyset_cursor.

    Raises:
        ValueError: If cursor is invalid
    """
    raw = decode_cursor(cursor)
    timestamp, sep, item_id = raw.partition("|")
    if not sep or not item_id:
        raise ValueError(f"Invalid cursor: {cursor}")
    try:
        return datetime.fromisoformat(timestamp), item_id
    except ValueError as exc:
        raise ValueError(f"Invalid cursor: {cursor}") from exc


# =============================================================================
# Paged Result
# =============================================================================


@dataclass
class PagedResult(Generic[T]):
    """
    Result container for paginated queries.

    ``next_cursor`` is None when there are no further pages.
    """

    items: list[T]
    limit: int
    has_more: bool
    next_cursor: str | None = None
