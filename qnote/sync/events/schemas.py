"""
Alert Schemas.

Standardized alert envelope and sync-specific alert types. Alerts are the
user-visible, non-fatal notifications raised by the sync core; the UI layer
subscribes to them through AlertPublisher.

Naming convention for event_type: domain.entity.action (dot notation)

Usage:
    from qnote.sync.events.schemas import NoteSyncFailed

    alert = NoteSyncFailed(
        source="sync-engine",
        payload={"note_id": note.id, "error": "remote unreachable"},
    )
"""

from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from qnote.sync.core.utils import utc_now


class AlertSeverity(str, Enum):
    """How prominently the UI should show an alert."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AlertEvent(BaseModel):
    """Base alert envelope. All alerts inherit from this.

    Fields:
        event_id: Unique alert identifier (auto-generated UUID)
        event_type: Alert type in dot notation (e.g. sync.note.failed)
        severity: info, warning or error
        timestamp: ISO 8601 UTC timestamp
        source: Component that raised the alert
        payload: Alert-specific data
    """

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: str
    severity: AlertSeverity = AlertSeverity.WARNING
    timestamp: str = Field(default_factory=lambda: utc_now().isoformat())
    source: str
    payload: dict = Field(default_factory=dict)


class NoteSyncFailed(AlertEvent):
    """A push or remote deletion failed; the note stays pending."""

    event_type: str = "sync.note.failed"


class NoteExcludedFromSync(AlertEvent):
    """A note is too large to sync and only exists on this device."""

    event_type: str = "sync.note.excluded"
    severity: AlertSeverity = AlertSeverity.INFO


class LocalStorageFailed(AlertEvent):
    """The local cache could not be read or written."""

    event_type: str = "cache.storage.failed"
    severity: AlertSeverity = AlertSeverity.ERROR


class PublicCopyFailed(AlertEvent):
    """Publishing or removing the public copy of a note failed."""

    event_type: str = "sync.public_copy.failed"


class ReconcileCompleted(AlertEvent):
    """A reconciliation pass finished."""

    event_type: str = "sync.reconcile.completed"
    severity: AlertSeverity = AlertSeverity.INFO


class ConnectivityChanged(AlertEvent):
    """The device went online or offline."""

    event_type: str = "connectivity.status.changed"
    severity: AlertSeverity = AlertSeverity.INFO
