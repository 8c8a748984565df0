"""
Base Service.

Base class for sync core services providing common patterns: logging
context, error wrapping for local cache operations, and validation.

Usage:
    from qnote.sync.services.base import BaseService

    class LocalCache(BaseService):
        async def put(self, note: Note) -> None:
            await self._execute_db_operation("put", self._save(note))
"""

from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from qnote.sync.core.exceptions import LocalStorageError, ValidationError
from qnote.sync.core.logging import get_logger

T = TypeVar("T")


class BaseService:
    """
    Base class for all services.

    Provides:
    - Logging context
    - Error wrapping for local cache operations
    - Common validation patterns
    """

    def __init__(self) -> None:
        self._logger = get_logger(self.__class__.__module__)

    async def _execute_db_operation(
        self,
        operation: str,
        coro: Any,
    ) -> T:
        """
        Execute a local cache operation with error handling.

        Wraps cache operations to convert SQLAlchemy exceptions
        to application-specific exceptions.

        Args:
            operation: Description of the operation for logging
            coro: Coroutine to execute

        Returns:
            Result of the coroutine

        Raises:
            LocalStorageError: For any database error
        """
        try:
            return await coro
        except SQLAlchemyError as e:
            self._logger.error(
                "Local cache error",
                extra={"operation": operation, "error": str(e)},
            )
            raise LocalStorageError(f"Local cache operation failed: {operation}") from e

    def _validate_required(
        self,
        fields: dict[str, Any],
        field_names: list[str],
    ) -> None:
        """
        Validate that required fields are present and not empty.

        Args:
            fields: Dictionary of field names to values
            field_names: List of required field names

        Raises:
            ValidationError: If any required field is missing or empty
        """
        missing = []
        for name in field_names:
            value = fields.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)

        if missing:
            raise ValidationError(
                "Required fields missing",
                details={"missing_fields": missing},
            )

    def _log_operation(
        self,
        operation: str,
        **context: Any,
    ) -> None:
        """
        Log a service operation with context.

        Args:
            operation: Description of the operation
            **context: Additional context to include in log
        """
        self._logger.info(
            operation,
            extra={"service": self.__class__.__name__, **context},
        )

    def _log_debug(
        self,
        message: str,
        **context: Any,
    ) -> None:
        """
        Log debug information.

        Args:
            message: Debug message
            **context: Additional context to include in log
        """
        self._logger.debug(
            message,
            extra={"service": self.__class__.__name__, **context},
        )
