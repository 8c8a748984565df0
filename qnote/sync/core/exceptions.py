"""
Custom Exceptions.

Application-specific exception classes for consistent error handling.
"""

from enum import Enum


class ApplicationError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, code: str = "SYS_INTERNAL_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


class NotFoundError(ApplicationError):
    """Raised when a resource cannot be found."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, code="RES_NOT_FOUND")


class ValidationError(ApplicationError):
    """Raised when validation fails."""

    def __init__(self, message: str = "Validation failed", details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message, code="VAL_VALIDATION_ERROR")


class AuthenticationError(ApplicationError):
    """Raised when an operation needs a signed-in user and there is none."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message, code="AUTH_UNAUTHORIZED")


class ConflictError(ApplicationError):
    """Raised when there is a state conflict."""

    def __init__(self, message: str = "Resource conflict") -> None:
        super().__init__(message, code="RES_CONFLICT")


class ExternalServiceError(ApplicationError):
    """Raised when an external service call fails."""

    def __init__(
        self,
        message: str = "External service error",
        code: str = "SYS_EXTERNAL_SERVICE_ERROR",
    ) -> None:
        super().__init__(message, code=code)


class RemoteStoreError(ExternalServiceError):
    """Raised by remote store implementations when a request fails.

    ``transient`` marks failures worth retrying (unreachable host, timeout,
    server-side error). Rejections such as malformed requests are not.
    """

    def __init__(self, message: str = "Remote store request failed", transient: bool = True) -> None:
        self.transient = transient
        super().__init__(message, code="SYNC_REMOTE_FAILED")


class DatabaseError(ApplicationError):
    """Raised when a database operation fails."""

    def __init__(self, message: str = "Database error", code: str = "SYS_DATABASE_ERROR") -> None:
        super().__init__(message, code=code)


class LocalStorageError(DatabaseError):
    """Raised when the local note cache cannot be read or written."""

    def __init__(self, message: str = "Local storage error") -> None:
        super().__init__(message, code="SYNC_LOCAL_STORAGE_FAILED")


class SyncErrorKind(str, Enum):
    """Category of a failed sync operation, named after what raised it."""

    REMOTE_UNREACHABLE = "remote_unreachable"
    LOCAL_STORAGE = "local_storage"
    OVERSIZED = "oversized"
    NOT_AUTHENTICATED = "not_authenticated"
    NOTE_MISSING = "note_missing"


class SyncError(ApplicationError):
    """A sync operation that did not reach the remote store.

    Never fatal: the note stays local and is retried at the next
    reconciliation, or the user is informed.
    """

    def __init__(
        self,
        kind: SyncErrorKind,
        message: str,
        note_id: str | None = None,
    ) -> None:
        self.kind = kind
        self.note_id = note_id
        super().__init__(message, code=f"SYNC_{kind.name}")
