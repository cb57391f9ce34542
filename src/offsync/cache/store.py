"""Two-tier response cache with TTL expiry and conditional-request metadata.

:class:`CacheStore` keeps entries in a volatile in-process dict and,
when asked to, in the ``response_cache`` collection of a durable
:class:`~offsync.storage.Store`.  Reads check the volatile tier first and
promote durable hits into it.  Expired entries are removed by the read
that notices them.

Durable keys are prefixed with the namespace prefix, which lets several
stores (API responses, static data, user identity) share one collection
while :meth:`CacheStore.clear` only ever touches its own keys.

The durable tier is best-effort: write and read failures are logged and
the cache carries on volatile-only.

See Also:
    :class:`~offsync.models.CacheNamespaceConfig` -- prefix and default TTL.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Optional

from pydantic import ValidationError

from offsync.exceptions import StorageError
from offsync.models import CacheEntry, CacheNamespaceConfig, CacheStats
from offsync.storage import Store

logger = logging.getLogger(__name__)

RESPONSE_CACHE = "response_cache"


class CacheStore:
    """Volatile + durable cache for JSON-serialisable values.

    Args:
        store: Durable backend shared with the rest of the engine.
        namespace: Prefix and default TTL of this cache.
        memory_max_items: Volatile-tier cap.  When exceeded, the entries
            with the oldest ``stored_at`` are evicted (insertion recency,
            not access recency).
        clock: Returns the current time in seconds.

    Example::

        cache = CacheStore(store, CacheNamespaceConfig(prefix="app_api_", ttl_seconds=300))
        await cache.initialize()
        await cache.set(key, {"items": []}, etag='"v1"', persistent=True)
        body = await cache.get(key)
    """

    def __init__(
        self,
        store: Store,
        namespace: CacheNamespaceConfig,
        memory_max_items: int = 100,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._namespace = namespace
        self._max_items = memory_max_items
        self._clock = clock
        self._memory: dict[str, CacheEntry] = {}

    @property
    def prefix(self) -> str:
        return self._namespace.prefix

    @property
    def default_ttl(self) -> int:
        return self._namespace.ttl_seconds

    async def initialize(self) -> int:
        """Sweep expired and unreadable durable entries of this namespace.

        Called once at engine start; the durable tier is not swept
        continuously.

        Returns:
            Number of durable entries removed.
        """
        now = self._clock()
        removed = 0
        try:
            for full_key, record in await self._store.items(RESPONSE_CACHE):
                if not full_key.startswith(self.prefix):
                    continue
                entry = self._parse(full_key, record)
                if entry is None or entry.is_expired(now):
                    await self._store.delete(RESPONSE_CACHE, full_key)
                    removed += 1
        except StorageError as exc:
            logger.warning("Cache sweep for %s failed: %s", self.prefix, exc)
        if removed:
            logger.debug("Swept %d stale entries from %s", removed, self.prefix)
        return removed

    async def set(
        self,
        key: str,
        data: Any,
        ttl: Optional[float] = None,
        persistent: bool = False,
        etag: Optional[str] = None,
        last_modified: Optional[str] = None,
    ) -> None:
        """Store *data* under *key*.

        Args:
            key: Caller-supplied fingerprint.
            data: JSON-serialisable value.
            ttl: Lifetime in seconds; defaults to the namespace TTL.
            persistent: Also write the durable tier.
            etag: ``ETag`` of the response, for ``If-None-Match``.
            last_modified: ``Last-Modified`` of the response, for
                ``If-Modified-Since``.

        Raises:
            ValueError: If *ttl* is not positive.
        """
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        now = self._clock()
        entry = CacheEntry(
            key=key,
            data=data,
            stored_at=now,
            expires_at=now + ttl,
            etag=etag,
            last_modified=last_modified,
        )
        # Re-inserting moves the key to the end of the dict.
        self._memory.pop(key, None)
        self._memory[key] = entry
        self._evict()

        if persistent:
            try:
                await self._store.put(
                    RESPONSE_CACHE, self.prefix + key, entry.model_dump(by_alias=True)
                )
            except StorageError as exc:
                logger.warning("Cache persistence failed for %s: %s", key, exc)

    async def get(self, key: str) -> Any:
        """Return the cached value, or ``None`` on a miss or expiry."""
        entry = self._memory.get(key)
        if entry is None:
            entry = await self._load_durable(key)
            if entry is not None:
                self._memory[key] = entry
                self._evict()
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            await self.delete(key)
            return None
        return entry.data

    async def has(self, key: str) -> bool:
        return await self.get(key) is not None

    async def delete(self, key: str) -> None:
        """Remove *key* from both tiers."""
        self._memory.pop(key, None)
        try:
            await self._store.delete(RESPONSE_CACHE, self.prefix + key)
        except StorageError as exc:
            logger.warning("Cache delete failed for %s: %s", key, exc)

    async def clear(self) -> None:
        """Remove every entry of this namespace from both tiers."""
        self._memory.clear()
        try:
            for full_key in await self._store.keys(RESPONSE_CACHE):
                if full_key.startswith(self.prefix):
                    await self._store.delete(RESPONSE_CACHE, full_key)
        except StorageError as exc:
            logger.warning("Cache clear for %s failed: %s", self.prefix, exc)

    async def touch(self, key: str, ttl: Optional[float] = None) -> bool:
        """Restart the TTL of an existing entry, e.g. after a 304 response.

        The entry keeps its body and validators and is rewritten to the
        durable tier only if it was persisted there before.

        Returns:
            ``False`` if there was no entry to refresh.
        """
        durable = await self._load_durable(key)
        entry = self._memory.get(key) or durable
        if entry is None:
            return False
        await self.set(
            key,
            entry.data,
            ttl=ttl,
            persistent=durable is not None,
            etag=entry.etag,
            last_modified=entry.last_modified,
        )
        return True

    async def get_etag(self, key: str) -> Optional[str]:
        """Return the stored ``ETag`` without checking expiry."""
        entry = await self._peek(key)
        return entry.etag if entry else None

    async def get_last_modified(self, key: str) -> Optional[str]:
        """Return the stored ``Last-Modified`` without checking expiry."""
        entry = await self._peek(key)
        return entry.last_modified if entry else None

    async def get_stats(self) -> CacheStats:
        """Count entries in both tiers and estimate durable size in bytes."""
        persistent = 0
        size = 0
        try:
            for full_key, record in await self._store.items(RESPONSE_CACHE):
                if full_key.startswith(self.prefix):
                    persistent += 1
                    size += len(json.dumps(record, ensure_ascii=False).encode("utf-8"))
        except StorageError as exc:
            logger.warning("Cache stats for %s unavailable: %s", self.prefix, exc)
        return CacheStats(
            memory_items=len(self._memory),
            persistent_items=persistent,
            total_size=size,
        )

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _peek(self, key: str) -> Optional[CacheEntry]:
        return self._memory.get(key) or await self._load_durable(key)

    async def _load_durable(self, key: str) -> Optional[CacheEntry]:
        full_key = self.prefix + key
        try:
            record = await self._store.get(RESPONSE_CACHE, full_key)
        except StorageError as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
            return None
        if record is None:
            return None
        entry = self._parse(full_key, record)
        if entry is None:
            await self.delete(key)
        return entry

    def _parse(self, full_key: str, record: dict[str, Any]) -> Optional[CacheEntry]:
        try:
            return CacheEntry.model_validate(record)
        except ValidationError:
            logger.warning("Discarding malformed cache entry %s", full_key)
            return None

    def _evict(self) -> None:
        overflow = len(self._memory) - self._max_items
        if overflow <= 0:
            return
        oldest = sorted(self._memory.items(), key=lambda item: item[1].stored_at)
        for key, _ in oldest[:overflow]:
            del self._memory[key]
