"""Connectivity monitor -- online/offline state and transition listeners.

The monitor is the single source of truth for "are we connected?".  The
request pipeline reads it before every call; the sync coordinator
registers a listener so that an offline → online transition starts a
replay pass.

State changes come from two places: the host application reporting what
the OS says (:meth:`ConnectivityMonitor.set_online`), or active probing
through the transport (:meth:`ConnectivityMonitor.probe` and the
:meth:`ConnectivityMonitor.run` loop).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from offsync.exceptions import ConnectionError_, OffsyncError
from offsync.transport import HttpTransport

logger = logging.getLogger(__name__)

Listener = Callable[[bool], Awaitable[None]]


class ConnectivityMonitor:
    """Tracks connectivity and notifies listeners on transitions.

    Args:
        online: Initial state.
        probe_path: Path requested by :meth:`probe`.
    """

    def __init__(self, online: bool = True, probe_path: str = "/") -> None:
        self._online = online
        self._probe_path = probe_path
        self._listeners: list[Listener] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def add_listener(self, listener: Listener) -> None:
        """Register a coroutine called with the new state on every transition."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def set_online(self, online: bool) -> None:
        """Record the connectivity state, awaiting listeners on a real change.

        Repeating the current state is a no-op.  A listener that raises is
        logged and does not prevent later listeners from running.
        """
        if online == self._online:
            return
        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        for listener in list(self._listeners):
            try:
                await listener(online)
            except Exception:
                logger.exception("Connectivity listener %r failed", listener)

    async def probe(self, transport: HttpTransport) -> bool:
        """Check reachability with one request and update the state.

        Any HTTP answer, even an error status, proves the backend is
        reachable; only a network-level failure counts as offline.
        """
        try:
            await transport.request("HEAD", self._probe_path, max_retries=0)
            reachable = True
        except ConnectionError_:
            reachable = False
        except OffsyncError:
            reachable = True
        await self.set_online(reachable)
        return reachable

    async def run(
        self,
        transport: HttpTransport,
        interval: float,
        stop: Optional[asyncio.Event] = None,
    ) -> None:
        """Probe every *interval* seconds until *stop* is set or the task is cancelled."""
        while stop is None or not stop.is_set():
            await self.probe(transport)
            if stop is None:
                await asyncio.sleep(interval)
                continue
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
