"""
Connectivity.

ConnectivitySignal holds the process-wide online/offline boolean and
notifies subscribers when it changes. ConnectivityMonitor drives the
signal by polling a probe in a background task.

Usage:
    signal = ConnectivitySignal()
    unsubscribe = signal.on_change(lambda online: print(online))

    monitor = ConnectivityMonitor(signal, http_probe(url, timeout=2), interval=5)
    monitor.start()
    ...
    await monitor.stop()
"""

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum

import httpx

from qnote.sync.core.logging import get_logger, log_with_source

logger = get_logger(__name__)

ConnectivityCallback = Callable[[bool], None]
Probe = Callable[[], Awaitable[bool]]


class ConnectivityStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class ConnectivitySignal:
    """Current online state plus change notification."""

    def __init__(self, online: bool = False) -> None:
        self._online = online
        self._callbacks: list[ConnectivityCallback] = []

    @property
    def online(self) -> bool:
        return self._online

    def current_status(self) -> ConnectivityStatus:
        return ConnectivityStatus.ONLINE if self._online else ConnectivityStatus.OFFLINE

    def on_change(self, callback: ConnectivityCallback) -> Callable[[], None]:
        """
        Register a callback invoked with the new value on every change.

        Returns:
            Function that removes the callback
        """
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def update(self, online: bool) -> None:
        """Set the current value. Subscribers only hear about actual changes."""
        if online == self._online:
            return
        self._online = online
        log_with_source(
            logger, "connectivity", "info", "Connectivity changed",
            status=self.current_status().value,
        )
        for callback in list(self._callbacks):
            try:
                callback(online)
            except Exception as e:
                log_with_source(
                    logger, "connectivity", "error", "Connectivity subscriber failed",
                    error=str(e),
                )


def http_probe(url: str, timeout: float = 2.0) -> Probe:
    """
    Build a probe that reports online when the URL answers at all.

    Any HTTP response, including an error status, means the network path
    works; only transport failures count as offline.
    """

    async def probe() -> bool:
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                await client.get(url)
            return True
        except httpx.HTTPError:
            return False

    return probe


class ConnectivityMonitor:
    """Polls a probe and feeds the result into a ConnectivitySignal."""

    def __init__(self, signal: ConnectivitySignal, probe: Probe, interval: float = 5.0) -> None:
        self.signal = signal
        self._probe = probe
        self._interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start polling on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="connectivity-monitor"
        )

    async def stop(self) -> None:
        """Stop polling and wait for the task to exit."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def check(self) -> bool:
        """Run the probe once and update the signal."""
        try:
            online = await self._probe()
        except Exception as e:
            log_with_source(logger, "connectivity", "warning", "Probe failed", error=str(e))
            online = False
        self.signal.update(online)
        return online

    async def _run(self) -> None:
        while True:
            await self.check()
            await asyncio.sleep(self._interval)
