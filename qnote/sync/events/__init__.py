# User-visible alerts raised by the sync core
from qnote.sync.events.publishers import AlertPublisher
from qnote.sync.events.schemas import (
    AlertEvent,
    AlertSeverity,
    ConnectivityChanged,
    LocalStorageFailed,
    NoteExcludedFromSync,
    NoteSyncFailed,
    PublicCopyFailed,
    ReconcileCompleted,
)

__all__ = [
    "AlertEvent",
    "AlertPublisher",
    "AlertSeverity",
    "ConnectivityChanged",
    "LocalStorageFailed",
    "NoteExcludedFromSync",
    "NoteSyncFailed",
    "PublicCopyFailed",
    "ReconcileCompleted",
]
