"""
Remote Gateway.

Resilience-wrapped access to the remote note store. Every call goes
through, outside-in:

    Circuit Breaker (aiobreaker) → Retry (tenacity) → Timeout → Call

and reports its outcome as ``Ok | Err`` instead of raising, so callers can
write reconciliation as sequential code.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

import aiobreaker
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from qnote.sync.core.exceptions import RemoteStoreError, SyncError, SyncErrorKind
from qnote.sync.core.logging import get_logger, log_with_source
from qnote.sync.core.resilience import create_circuit_breaker, log_retry
from qnote.sync.core.result import Err, Ok, Result
from qnote.sync.remote.base import RemoteStore
from qnote.sync.schemas.note import Note
from qnote.sync.schemas.remote import RemoteNoteDocument

logger = get_logger(__name__)


def _is_retryable(error: BaseException) -> bool:
    if isinstance(error, RemoteStoreError):
        return error.transient
    return isinstance(error, TimeoutError)


class RemoteGateway:
    """
    Remote store access with timeout, retry and circuit breaking.

    Usage:
        gateway = RemoteGateway(InMemoryRemoteStore())
        result = await gateway.put_note("user-1", note)
        if not result.ok:
            log(result.error)
    """

    def __init__(
        self,
        store: RemoteStore,
        breaker: aiobreaker.CircuitBreaker | None = None,
        max_attempts: int = 3,
        backoff_multiplier: float = 0.5,
        backoff_max: float = 5.0,
        timeout: float = 10.0,
    ) -> None:
        self.store = store
        self._breaker = breaker or create_circuit_breaker(f"remote-{store.name}")
        self._max_attempts = max_attempts
        self._backoff_multiplier = backoff_multiplier
        self._backoff_max = backoff_max
        self._timeout = timeout

    async def _call(
        self,
        operation: str,
        fn: Callable[..., Awaitable[Any]],
        *args: Any,
        note_id: str | None = None,
    ) -> Result:
        async def attempt() -> Any:
            async for retry_attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_attempts),
                wait=wait_exponential(multiplier=self._backoff_multiplier, max=self._backoff_max),
                retry=retry_if_exception(_is_retryable),
                before_sleep=log_retry,
                reraise=True,
            ):
                with retry_attempt:
                    async with asyncio.timeout(self._timeout):
                        return await fn(*args)

        try:
            value = await self._breaker.call_async(attempt)
        except (RemoteStoreError, aiobreaker.CircuitBreakerError, TimeoutError) as e:
            message = str(e) or e.__class__.__name__
            log_with_source(
                logger, "remote", "warning", "Remote operation failed",
                operation=operation, note_id=note_id, error=message,
            )
            return Err(SyncError(SyncErrorKind.REMOTE_UNREACHABLE, message, note_id=note_id))

        return Ok(value)

    async def put_note(self, user_id: str, note: Note) -> Result[Note]:
        result = await self._call("put_note", self.store.put_note, user_id, note, note_id=note.id)
        return Ok(note) if result.ok else result

    async def delete_note(self, user_id: str, note_id: str) -> Result[None]:
        return await self._call(
            "delete_note", self.store.delete_note, user_id, note_id, note_id=note_id
        )

    async def list_notes(
        self,
        user_id: str,
        limit: int,
        start_after: tuple[datetime, str] | None = None,
    ) -> Result[list[RemoteNoteDocument]]:
        return await self._call("list_notes", self.store.list_notes, user_id, limit, start_after)

    async def delete_unpinned(self, user_id: str) -> Result[None]:
        return await self._call("delete_unpinned", self.store.delete_unpinned, user_id)

    async def publish_note(self, note: Note) -> Result[None]:
        """Write the public copy of a public note."""
        return await self._call(
            "publish_note",
            self.store.publish_note,
            note.public_id,
            note.content,
            note.timestamp,
            note.user_id,
            note_id=note.id,
        )

    async def unpublish_note(self, public_id: str, note_id: str | None = None) -> Result[None]:
        return await self._call(
            "unpublish_note", self.store.unpublish_note, public_id, note_id=note_id
        )

    async def close(self) -> None:
        await self.store.close()
