"""
Root Pytest Fixtures.

Shared fixtures available to all test types.

Local Cache Configuration:
    Tests use a real SQLite file under tmp_path so WAL mode, transactions
    and the aiosqlite driver are exercised exactly as in production. Each
    test gets a fresh file; nothing is shared between tests.
"""

from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from qnote.sync.core.database import create_cache_engine
from qnote.sync.core.resilience import create_circuit_breaker
from qnote.sync.events.publishers import AlertPublisher
from qnote.sync.remote.memory import InMemoryRemoteStore
from qnote.sync.schemas.note import Note
from qnote.sync.services.connectivity import ConnectivitySignal
from qnote.sync.services.local_cache import LocalCache
from qnote.sync.services.note_store import NoteStore
from qnote.sync.services.notes import NotesSession
from qnote.sync.services.remote_gateway import RemoteGateway
from qnote.sync.services.sync_engine import SyncEngine
from qnote.sync.services.sync_state import SyncEngineState

TEST_USER = "user-1"
BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


# =============================================================================
# Local Cache Fixtures
# =============================================================================


@pytest.fixture
def cache_path(tmp_path: Path) -> Path:
    """Location of the SQLite cache file for one test."""
    return tmp_path / "cache" / "qnote_cache.db"


@pytest.fixture
async def cache_engine(cache_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Async engine on a fresh SQLite file."""
    engine = create_cache_engine(f"sqlite+aiosqlite:///{cache_path}")
    yield engine
    await engine.dispose()


@pytest.fixture
async def local_cache(cache_engine: AsyncEngine) -> LocalCache:
    """Initialized LocalCache with empty tables."""
    cache = LocalCache(cache_engine)
    await cache.initialize()
    return cache


# =============================================================================
# Collaborator Fixtures
# =============================================================================


@pytest.fixture
def publisher() -> AlertPublisher:
    return AlertPublisher()


@pytest.fixture
def remote_store() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()


@pytest.fixture
def connectivity() -> ConnectivitySignal:
    """Connectivity signal that starts offline."""
    return ConnectivitySignal(online=False)


@pytest.fixture
def gateway(remote_store: InMemoryRemoteStore) -> RemoteGateway:
    """
    Gateway without retries or backoff.

    The breaker threshold is high so a test that fails many calls on
    purpose never trips it.
    """
    return RemoteGateway(
        remote_store,
        breaker=create_circuit_breaker("remote-test", fail_max=1000),
        max_attempts=1,
        backoff_multiplier=0,
        backoff_max=0,
        timeout=5,
    )


@pytest.fixture
def sync_state(local_cache: LocalCache, publisher: AlertPublisher) -> SyncEngineState:
    return SyncEngineState(local_cache, publisher)


@pytest.fixture
def note_store(
    local_cache: LocalCache,
    sync_state: SyncEngineState,
    connectivity: ConnectivitySignal,
    gateway: RemoteGateway,
    publisher: AlertPublisher,
) -> NoteStore:
    return NoteStore(local_cache, sync_state, connectivity, gateway, publisher)


@pytest.fixture
def sync_engine(
    note_store: NoteStore,
    sync_state: SyncEngineState,
    gateway: RemoteGateway,
    connectivity: ConnectivitySignal,
    publisher: AlertPublisher,
) -> SyncEngine:
    return SyncEngine(note_store, sync_state, gateway, connectivity, publisher, pull_page_size=2)


@pytest.fixture
async def session(
    local_cache: LocalCache,
    note_store: NoteStore,
    sync_state: SyncEngineState,
    sync_engine: SyncEngine,
    gateway: RemoteGateway,
    connectivity: ConnectivitySignal,
    publisher: AlertPublisher,
) -> AsyncGenerator[NotesSession, None]:
    """Started NotesSession with TEST_USER signed in, offline."""
    notes_session = NotesSession(
        local_cache,
        note_store,
        sync_state,
        sync_engine,
        gateway,
        connectivity,
        publisher,
    )
    await notes_session.start()
    await notes_session.sign_in(TEST_USER)
    yield notes_session
    await notes_session.close()


# =============================================================================
# Utility Fixtures
# =============================================================================


@pytest.fixture
def make_note() -> Callable[..., Note]:
    """
    Factory for notes owned by TEST_USER.

    ``minutes`` offsets the timestamp from a fixed base time.

    Usage:
        def test_sort(make_note):
            note = make_note("n1", minutes=5, is_pinned=True)
    """

    def _make(note_id: str, minutes: int = 0, content: str | None = None, **fields: Any) -> Note:
        values: dict[str, Any] = {
            "id": note_id,
            "user_id": TEST_USER,
            "content": content if content is not None else f"content of {note_id}",
            "timestamp": BASE_TIME + timedelta(minutes=minutes),
        }
        values.update(fields)
        return Note(**values)

    return _make
