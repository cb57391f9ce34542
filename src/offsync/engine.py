"""Engine factory: one explicit instance of every component.

There are no module-level singletons in offsync.  :func:`create_engine`
builds a fully wired :class:`Engine` from an
:class:`~offsync.models.EngineConfig`; tests and embedding applications
can pass their own store, httpx transport, clock or auth provider.

Example::

    config = resolve_config()
    async with create_engine(config) as engine:
        await engine.offline.enqueue_action("create", "tasks", {"title": "x"})
        await engine.connectivity.set_online(True)
        report = await engine.coordinator.sync()
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from offsync.auth import AuthProvider, BearerTokenAuth, NoAuth
from offsync.cache import CacheStore
from offsync.config import get_store_dir
from offsync.connectivity import ConnectivityMonitor
from offsync.events import EventBus
from offsync.models import EngineConfig
from offsync.offline import OfflineManager
from offsync.pipeline import RequestPipeline
from offsync.storage import DiskStore, Store
from offsync.sync import SyncCoordinator
from offsync.transport import HttpTransport

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    """All components of one offline-sync engine, wired together.

    Use as an async context manager: entering opens the transport and
    sweeps stale cache entries; leaving closes the transport and store.
    """

    config: EngineConfig
    store: Store
    api_cache: CacheStore
    static_cache: CacheStore
    user_cache: CacheStore
    offline: OfflineManager
    connectivity: ConnectivityMonitor
    transport: HttpTransport
    auth: AuthProvider
    events: EventBus
    coordinator: SyncCoordinator
    pipeline: RequestPipeline

    @property
    def caches(self) -> dict[str, CacheStore]:
        return {"api": self.api_cache, "static": self.static_cache, "user": self.user_cache}

    async def start(self) -> None:
        self.transport.open()
        for cache in self.caches.values():
            await cache.initialize()

    async def close(self) -> None:
        await self.transport.aclose()
        self.store.close()

    async def __aenter__(self) -> Engine:
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


def create_engine(
    config: EngineConfig,
    store: Optional[Store] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    auth: Optional[AuthProvider] = None,
    clock: Callable[[], float] = time.time,
    online: bool = True,
) -> Engine:
    """Build an :class:`Engine` from *config*.

    Args:
        config: Effective engine configuration.
        store: Durable backend; defaults to a :class:`~offsync.storage.DiskStore`
            in the configured store directory.
        transport: Optional httpx transport (e.g. :class:`httpx.MockTransport`).
        auth: Auth provider; defaults to a bearer token from
            ``config.token_source`` or :class:`~offsync.auth.NoAuth`.
        clock: Time source shared by the caches and the queues.
        online: Initial connectivity state.

    Raises:
        ConfigError: If ``config.token_source`` cannot be resolved.
    """
    if store is None:
        store = DiskStore(get_store_dir(config))
    if auth is None:
        if config.token_source:
            auth = BearerTokenAuth.from_source(config.token_source)
        else:
            auth = NoAuth()

    cache_cfg = config.cache
    api_cache = CacheStore(store, cache_cfg.api, cache_cfg.memory_max_items, clock)
    static_cache = CacheStore(store, cache_cfg.static, cache_cfg.memory_max_items, clock)
    user_cache = CacheStore(store, cache_cfg.user, cache_cfg.memory_max_items, clock)

    offline = OfflineManager(
        store,
        max_retries=config.sync.max_retries,
        offline_ttl=config.sync.offline_ttl_seconds,
        clock=clock,
    )
    connectivity = ConnectivityMonitor(online=online, probe_path=config.sync.probe_path)
    http = HttpTransport(config.request, base_url=config.base_url, transport=transport)
    events = EventBus()
    coordinator = SyncCoordinator(offline, http, connectivity, auth=auth, events=events)
    pipeline = RequestPipeline(
        http,
        connectivity,
        offline,
        api_cache,
        user_cache=user_cache,
        auth=auth,
        cache_enabled=cache_cfg.enabled,
        static_cache=static_cache,
    )
    logger.debug("Engine created for %s", config.base_url or "<no base url>")

    return Engine(
        config=config,
        store=store,
        api_cache=api_cache,
        static_cache=static_cache,
        user_cache=user_cache,
        offline=offline,
        connectivity=connectivity,
        transport=http,
        auth=auth,
        events=events,
        coordinator=coordinator,
        pipeline=pipeline,
    )
