"""Per-call request pipeline: network, cache or offline queue.

:class:`RequestPipeline` is what application code calls instead of the
raw transport.  For each call it decides, from the connectivity state and
the call's cache options, whether to:

* answer a GET from the response cache (or the offline data cache while
  disconnected),
* send the call through the transport, revalidating cached GETs with
  ``If-None-Match`` / ``If-Modified-Since`` when asked to, or
* capture a mutating call into the request queue and answer with an
  optimistic ``202`` so the caller can carry on offline.

Queued calls are replayed later by the
:class:`~offsync.sync.SyncCoordinator`; their outcome is published on its
event bus, never delivered back to the original caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from offsync.auth import AuthProvider
from offsync.cache import CacheStore, make_cache_key
from offsync.connectivity import ConnectivityMonitor
from offsync.exceptions import (
    AuthError,
    ConnectionError_,
    InvalidUsageError,
    NoCacheAvailableError,
)
from offsync.offline import OfflineManager
from offsync.transport import HttpTransport, TransportResponse

logger = logging.getLogger(__name__)

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
USER_URL_MARKERS = ("/auth/", "/profile")


@dataclass
class PipelineResponse:
    """What a pipeline call returns, whether live, cached or queued."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    data: Any = None
    from_cache: bool = False
    queued: bool = False
    request_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    @classmethod
    def from_transport(cls, response: TransportResponse) -> PipelineResponse:
        return cls(
            status_code=response.status_code,
            headers=dict(response.headers),
            data=response.data,
        )

    @classmethod
    def cached(cls, data: Any) -> PipelineResponse:
        return cls(status_code=200, data=data, from_cache=True)


class RequestPipeline:
    """Routes calls between the transport, the caches and the request queue.

    Args:
        transport: Open transport for live calls.
        connectivity: Monitor consulted before every call.
        offline: Request queue and offline data cache.
        api_cache: Namespace for ordinary responses.
        user_cache: Namespace for identity responses (``/auth/``,
            ``/profile``); falls back to *api_cache*.
        static_cache: Namespace for slow-changing reference data.  No URL
            is routed here automatically; callers opt in per call with
            ``cache_namespace="static"``.  Falls back to *api_cache*.
        auth: Supplies headers and the refresh-once capability.
        cache_enabled: When ``False``, ``use_cache`` is ignored.
    """

    def __init__(
        self,
        transport: HttpTransport,
        connectivity: ConnectivityMonitor,
        offline: OfflineManager,
        api_cache: CacheStore,
        user_cache: Optional[CacheStore] = None,
        auth: Optional[AuthProvider] = None,
        cache_enabled: bool = True,
        static_cache: Optional[CacheStore] = None,
    ) -> None:
        self._transport = transport
        self._connectivity = connectivity
        self._offline = offline
        self._api_cache = api_cache
        self._user_cache = user_cache or api_cache
        self._static_cache = static_cache or api_cache
        self._auth = auth
        self._cache_enabled = cache_enabled

    def cache_for(self, url: str, namespace: Optional[str] = None) -> CacheStore:
        """Pick the cache namespace for *url*, or the one named explicitly.

        Raises:
            InvalidUsageError: If *namespace* is not ``api``, ``static`` or ``user``.
        """
        if namespace is not None:
            caches = {
                "api": self._api_cache,
                "static": self._static_cache,
                "user": self._user_cache,
            }
            if namespace not in caches:
                raise InvalidUsageError(f"Unknown cache namespace: {namespace!r}")
            return caches[namespace]
        if any(marker in url for marker in USER_URL_MARKERS):
            return self._user_cache
        return self._api_cache

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        body: Any = None,
        headers: Optional[dict[str, str]] = None,
        use_cache: bool = False,
        cache_ttl: Optional[float] = None,
        persistent_cache: bool = False,
        revalidate: bool = False,
        cache_namespace: Optional[str] = None,
    ) -> PipelineResponse:
        """Perform one call with offline and caching behaviour applied.

        Args:
            method: HTTP method.
            url: Path relative to the transport's base URL.
            params: Query parameters.
            body: JSON body for mutating calls.
            headers: Extra headers; they override auth headers.
            use_cache: Serve and store GET responses through the cache.
            cache_ttl: TTL for the stored entry; defaults to the namespace TTL.
            persistent_cache: Also write the entry to the durable tier.
            revalidate: Send a conditional request even when a valid
                entry exists.
            cache_namespace: ``api``, ``static`` or ``user``; overrides the
                URL-based choice of cache.

        Returns:
            A :class:`PipelineResponse`.  Queued mutations come back with
            ``status_code=202`` and ``queued=True``.

        Raises:
            NoCacheAvailableError: A cached GET while offline found nothing.
            ConnectionError_: An uncached read could not reach the network.
            StorageError: A mutation could not be queued.
            InvalidUsageError: An unknown *cache_namespace*.
            OffsyncError: Any other transport failure of a live call.
        """
        method = method.upper()

        if method in MUTATING_METHODS:
            return await self._mutate(method, url, params, body, headers)
        if use_cache and self._cache_enabled and method == "GET":
            cache = self.cache_for(url, cache_namespace)
            return await self._cached_get(
                cache, url, params, headers, cache_ttl, persistent_cache, revalidate
            )
        if not self._connectivity.is_online:
            raise ConnectionError_(f"Offline: cannot {method} {url}")
        response = await self._send(method, url, headers, params=params)
        return PipelineResponse.from_transport(response)

    async def get(self, url: str, **kwargs: Any) -> PipelineResponse:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, body: Any = None, **kwargs: Any) -> PipelineResponse:
        return await self.request("POST", url, body=body, **kwargs)

    async def put(self, url: str, body: Any = None, **kwargs: Any) -> PipelineResponse:
        return await self.request("PUT", url, body=body, **kwargs)

    async def patch(self, url: str, body: Any = None, **kwargs: Any) -> PipelineResponse:
        return await self.request("PATCH", url, body=body, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> PipelineResponse:
        return await self.request("DELETE", url, **kwargs)

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    async def _mutate(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]],
        body: Any,
        headers: Optional[dict[str, str]],
    ) -> PipelineResponse:
        if not self._connectivity.is_online:
            return await self._enqueue(method, url, body, headers)
        try:
            response = await self._send(method, url, headers, params=params, body=body)
        except ConnectionError_ as exc:
            logger.info("%s %s unreachable (%s); queueing", method, url, exc)
            return await self._enqueue(method, url, body, headers)
        return PipelineResponse.from_transport(response)

    async def _enqueue(
        self,
        method: str,
        url: str,
        body: Any,
        headers: Optional[dict[str, str]],
    ) -> PipelineResponse:
        request_id = await self._offline.enqueue_request(
            url, method, body=body, headers=self._merge_headers(headers)
        )
        return PipelineResponse(
            status_code=202,
            data={"success": True, "queued": True, "id": request_id},
            queued=True,
            request_id=request_id,
        )

    # ------------------------------------------------------------------ #
    # Cached reads
    # ------------------------------------------------------------------ #

    async def _cached_get(
        self,
        cache: CacheStore,
        url: str,
        params: Optional[dict[str, Any]],
        headers: Optional[dict[str, str]],
        cache_ttl: Optional[float],
        persistent: bool,
        revalidate: bool,
    ) -> PipelineResponse:
        key = make_cache_key("GET", url, params)

        cached = await cache.get(key)
        if not self._connectivity.is_online:
            if cached is not None:
                return PipelineResponse.cached(cached)
            return await self._offline_fallback(key, url)
        if cached is not None and not revalidate:
            return PipelineResponse.cached(cached)

        extra = dict(headers or {})
        if cached is not None:
            etag = await cache.get_etag(key)
            last_modified = await cache.get_last_modified(key)
            if etag:
                extra["If-None-Match"] = etag
            if last_modified:
                extra["If-Modified-Since"] = last_modified

        try:
            response = await self._send("GET", url, extra, params=params)
        except ConnectionError_:
            if cached is not None:
                logger.debug("GET %s unreachable; serving cached copy", url)
                return PipelineResponse.cached(cached)
            data = await self._offline.get_cached_data(key)
            if data is None:
                raise
            logger.debug("GET %s unreachable; serving offline copy", url)
            return PipelineResponse.cached(data)

        if response.not_modified:
            if cached is None:
                cached = await self._offline.get_cached_data(key)
            await cache.touch(key, ttl=cache_ttl)
            return PipelineResponse(
                status_code=200, headers=dict(response.headers), data=cached, from_cache=True
            )

        if 200 <= response.status_code < 300:
            await cache.set(
                key,
                response.data,
                ttl=cache_ttl,
                persistent=persistent,
                etag=response.etag,
                last_modified=response.last_modified,
            )
            await self._offline.cache_data(key, response.data)
        return PipelineResponse.from_transport(response)

    async def _offline_fallback(self, key: str, url: str) -> PipelineResponse:
        data = await self._offline.get_cached_data(key)
        if data is None:
            raise NoCacheAvailableError(f"Offline and no cached data for GET {url}")
        return PipelineResponse.cached(data)

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    def _merge_headers(self, headers: Optional[dict[str, str]]) -> dict[str, str]:
        merged: dict[str, str] = {}
        if self._auth is not None:
            merged.update(self._auth.headers())
        merged.update(headers or {})
        return merged

    async def _send(
        self,
        method: str,
        url: str,
        headers: Optional[dict[str, str]],
        params: Optional[dict[str, Any]] = None,
        body: Any = None,
    ) -> TransportResponse:
        """Send through the transport, refreshing auth once on a 401."""
        try:
            return await self._transport.request(
                method, url, headers=self._merge_headers(headers), params=params, body=body
            )
        except AuthError as exc:
            if self._auth is None or exc.status_code != 401:
                raise
            if not await self._auth.refresh():
                raise
            logger.debug("Credential refreshed; retrying %s %s", method, url)
            return await self._transport.request(
                method, url, headers=self._merge_headers(headers), params=params, body=body
            )
