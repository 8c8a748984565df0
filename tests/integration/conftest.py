"""
Integration Test Fixtures.

Fixtures for integration tests - sessions are built by create_session from
the real YAML configuration, with each device getting its own SQLite cache
file and all devices sharing one in-memory remote store.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path

import pytest

from qnote.main import create_session
from qnote.sync.core.config import AppConfig
from qnote.sync.core.database import create_cache_engine
from qnote.sync.remote.memory import InMemoryRemoteStore
from qnote.sync.services.connectivity import ConnectivitySignal
from qnote.sync.services.notes import NotesSession

DeviceFactory = Callable[..., Awaitable[NotesSession]]


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def app_config() -> AppConfig:
    """
    Configuration loaded from config/settings.

    A fresh instance rather than the cached one, so tests may replace
    sections without leaking into other tests.
    """
    return AppConfig()


@pytest.fixture
def cache_url(tmp_path: Path) -> Callable[[str], str]:
    """Build a SQLite URL for a named cache file under tmp_path."""

    def _url(name: str = "device") -> str:
        return f"sqlite+aiosqlite:///{tmp_path / 'caches' / f'{name}.db'}"

    return _url


# =============================================================================
# Device Fixtures
# =============================================================================


@pytest.fixture
def shared_remote() -> InMemoryRemoteStore:
    """Remote store shared by every device in a test."""
    return InMemoryRemoteStore()


@pytest.fixture
async def open_device(
    app_config: AppConfig,
    shared_remote: InMemoryRemoteStore,
    cache_url: Callable[[str], str],
) -> AsyncGenerator[DeviceFactory, None]:
    """
    Open a started, signed-in session that plays one device.

    Reopening a device name reuses its cache file, like restarting the app.
    Sessions still open at teardown are closed.

    Usage:
        async def test_two_devices(open_device):
            phone = await open_device("phone", online=True)
            laptop = await open_device("laptop", online=False)
    """
    sessions: list[NotesSession] = []

    async def _open(name: str = "device", online: bool = False, user_id: str = "user-1") -> NotesSession:
        session = await create_session(
            app_config=app_config,
            remote_store=shared_remote,
            engine=create_cache_engine(cache_url(name)),
            connectivity=ConnectivitySignal(online=online),
        )
        await session.sign_in(user_id)
        await session.wait_idle()
        sessions.append(session)
        return session

    yield _open

    for session in sessions:
        await session.close()
