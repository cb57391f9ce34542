"""Durable store backed by :mod:`diskcache`.

Each collection lives in its own :class:`diskcache.Cache` directory under
a common root, so clearing one collection never touches another.  Eviction
is disabled: a queued mutation must never disappear because the store grew
past a size limit.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import diskcache

from offsync.exceptions import StorageError
from offsync.storage.base import Store


@contextmanager
def _backend_errors(collection: str) -> Iterator[None]:
    """Translate diskcache / SQLite failures into StorageError."""
    try:
        yield
    except (sqlite3.Error, diskcache.Timeout) as exc:
        raise StorageError(f"diskcache failure in '{collection}': {exc}") from exc


class DiskStore(Store):
    """Filesystem-backed :class:`~offsync.storage.base.Store`.

    Args:
        directory: Root directory; one sub-directory per collection is
            created lazily on first use.
        indexes: Collection/index declaration (see
            :class:`~offsync.storage.base.Store`).

    Example::

        store = DiskStore("/var/lib/app/offsync")
        await store.put("offline_queue", "abc", {"id": "abc", "timestamp": 1.0})
        await store.get_all_by_index("offline_queue", "timestamp")
    """

    def __init__(
        self,
        directory: str | Path,
        indexes: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> None:
        super().__init__(indexes)
        self._directory = Path(directory)
        self._caches: dict[str, diskcache.Cache] = {}

    @property
    def directory(self) -> Path:
        """Root directory of the store."""
        return self._directory

    def _cache(self, collection: str) -> diskcache.Cache:
        cache = self._caches.get(collection)
        if cache is None:
            with _backend_errors(collection):
                cache = diskcache.Cache(
                    str(self._directory / collection),
                    eviction_policy="none",
                )
            self._caches[collection] = cache
        return cache

    def _raw_get(self, collection: str, key: str) -> Optional[str]:
        with _backend_errors(collection):
            return self._cache(collection).get(key)

    def _raw_set(self, collection: str, key: str, text: str) -> None:
        with _backend_errors(collection):
            self._cache(collection).set(key, text)

    def _raw_delete(self, collection: str, key: str) -> None:
        with _backend_errors(collection):
            self._cache(collection).delete(key)

    def _raw_keys(self, collection: str) -> list[str]:
        # diskcache iterates in rowid order, i.e. first insertion.
        with _backend_errors(collection):
            return list(self._cache(collection))

    def _raw_count(self, collection: str) -> int:
        with _backend_errors(collection):
            return len(self._cache(collection))

    def _raw_clear(self, collection: str) -> None:
        with _backend_errors(collection):
            self._cache(collection).clear()

    def close(self) -> None:
        """Close every open :class:`diskcache.Cache`."""
        for cache in self._caches.values():
            cache.close()
        self._caches.clear()
