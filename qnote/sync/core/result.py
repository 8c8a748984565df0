"""
Result Type.

Remote and sync operations report their outcome as a value instead of
raising, so reconciliation can be written as plain sequential code:

    result = await gateway.put_note(user_id, note)
    if isinstance(result, Err):
        ...
    else:
        note = result.value
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from qnote.sync.core.exceptions import SyncError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed outcome carrying the sync error."""

    error: SyncError

    @property
    def ok(self) -> bool:
        return False


Result = Ok[T] | Err
