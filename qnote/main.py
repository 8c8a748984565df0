"""
Session Factory.

Wires the sync core together from configuration. This is the main entry
point for UI layers:

    session = await create_session()
    await session.sign_in(user_id)
"""

from sqlalchemy.ext.asyncio import AsyncEngine

from qnote.sync.core.config import AppConfig, get_app_config, get_cache_url, get_settings
from qnote.sync.core.database import create_cache_engine
from qnote.sync.core.logging import get_logger
from qnote.sync.core.resilience import create_circuit_breaker
from qnote.sync.events.publishers import AlertPublisher
from qnote.sync.remote.base import RemoteStore
from qnote.sync.remote.http import HttpRemoteStore
from qnote.sync.remote.memory import InMemoryRemoteStore
from qnote.sync.services.connectivity import (
    ConnectivityMonitor,
    ConnectivitySignal,
    http_probe,
)
from qnote.sync.services.local_cache import LocalCache
from qnote.sync.services.note_store import NoteStore
from qnote.sync.services.notes import NotesSession
from qnote.sync.services.remote_gateway import RemoteGateway
from qnote.sync.services.sync_engine import SyncEngine
from qnote.sync.services.sync_state import SyncEngineState

logger = get_logger(__name__)


def create_remote_store(app_config: AppConfig) -> RemoteStore:
    """Build the remote store selected in remote.yaml."""
    remote = app_config.remote
    if remote.backend == "http":
        return HttpRemoteStore(
            remote.base_url,
            token=get_settings().remote_api_token,
            timeout=remote.timeout_seconds,
        )
    return InMemoryRemoteStore()


async def create_session(
    app_config: AppConfig | None = None,
    remote_store: RemoteStore | None = None,
    engine: AsyncEngine | None = None,
    connectivity: ConnectivitySignal | None = None,
    monitor_connectivity: bool = False,
) -> NotesSession:
    """
    Create and start a NotesSession.

    Args:
        app_config: Configuration; loaded from config/settings when None
        remote_store: Remote store; built from remote.yaml when None
        engine: Cache engine; built from database.yaml when None
        connectivity: Shared connectivity signal; a new one when None
        monitor_connectivity: Poll the configured probe URL to drive the signal

    Returns:
        A started session with no user signed in
    """
    app_config = app_config or get_app_config()
    sync = app_config.sync

    if engine is None:
        engine = create_cache_engine(get_cache_url(), echo=app_config.database.echo)
    if remote_store is None:
        remote_store = create_remote_store(app_config)
    if connectivity is None:
        connectivity = ConnectivitySignal(online=app_config.connectivity.initially_online)

    publisher = AlertPublisher()
    cache = LocalCache(engine)
    state = SyncEngineState(cache, publisher)
    gateway = RemoteGateway(
        remote_store,
        breaker=create_circuit_breaker(
            f"remote-{remote_store.name}",
            fail_max=sync.circuit_breaker.fail_max,
            timeout_duration=sync.circuit_breaker.timeout_duration,
        ),
        max_attempts=sync.retry.max_attempts,
        backoff_multiplier=sync.retry.backoff_multiplier,
        backoff_max=sync.retry.backoff_max,
        timeout=sync.request_timeout_seconds,
    )
    store = NoteStore(cache, state, connectivity, gateway, publisher)
    sync_engine = SyncEngine(
        store,
        state,
        gateway,
        connectivity,
        publisher,
        content_size_ceiling=sync.content_size_ceiling,
        max_parallel_operations=sync.max_parallel_operations,
        pull_page_size=sync.pull_page_size,
    )

    monitor = None
    if monitor_connectivity:
        probe_config = app_config.connectivity
        monitor = ConnectivityMonitor(
            connectivity,
            http_probe(probe_config.probe_url, timeout=probe_config.probe_timeout_seconds),
            interval=probe_config.probe_interval_seconds,
        )

    session = NotesSession(
        cache,
        store,
        state,
        sync_engine,
        gateway,
        connectivity,
        publisher,
        monitor=monitor,
    )
    await session.start()
    logger.info(
        "Session created",
        extra={
            "app_name": app_config.application.name,
            "env": app_config.application.environment,
            "remote": remote_store.name,
            "online": connectivity.online,
        },
    )
    return session
