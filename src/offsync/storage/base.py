"""Abstract durable store with named collections and secondary indexes.

Every component that persists state (the response cache's durable tier,
the action and request queues, the offline data cache) talks to a
:class:`Store`.  The interface is deliberately small -- get, put, delete,
full scans, index scans and counts -- so any key-value backend that
survives a restart can satisfy it.

Records are JSON objects.  Backends only move JSON *text* around through
the ``_raw_*`` primitives; encoding, decoding and corruption handling live
here so that every backend behaves the same when a stored value turns out
to be unreadable: the entry is deleted, a warning is logged, and the read
reports "not found".

All public methods are coroutines.  Backends run them inline on the event
loop; the ``async`` signature marks the suspension points callers must
expect, not a thread hand-off.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, Optional

from offsync.exceptions import StorageError

logger = logging.getLogger(__name__)

Record = dict[str, Any]

DEFAULT_INDEXES: dict[str, tuple[str, ...]] = {
    "offline_actions": ("status", "entity"),
    "offline_queue": ("timestamp",),
    "cached_data": (),
    "response_cache": (),
}
"""Collections known to offsync and the record fields each one indexes."""


class Store(ABC):
    """Durable key-value store partitioned into collections.

    Args:
        indexes: Mapping of collection name to the record fields that may
            be used with :meth:`get_all_by_index` and :meth:`count_by_index`.
            Only collections listed here can be used.

    Subclasses implement the synchronous ``_raw_*`` primitives over JSON
    text and :meth:`close`.  Primitive failures should surface as
    :class:`OSError` or be wrapped in
    :class:`~offsync.exceptions.StorageError`; both are reported to
    callers as ``StorageError``.
    """

    def __init__(self, indexes: Optional[Mapping[str, Sequence[str]]] = None) -> None:
        source = DEFAULT_INDEXES if indexes is None else indexes
        self._indexes: dict[str, tuple[str, ...]] = {
            name: tuple(fields) for name, fields in source.items()
        }

    @property
    def collections(self) -> list[str]:
        """Names of the collections this store accepts."""
        return list(self._indexes)

    # ------------------------------------------------------------------ #
    # Backend primitives
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _raw_get(self, collection: str, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def _raw_set(self, collection: str, key: str, text: str) -> None:
        ...

    @abstractmethod
    def _raw_delete(self, collection: str, key: str) -> None:
        ...

    @abstractmethod
    def _raw_keys(self, collection: str) -> list[str]:
        """Return keys in insertion order."""
        ...

    @abstractmethod
    def _raw_count(self, collection: str) -> int:
        ...

    @abstractmethod
    def _raw_clear(self, collection: str) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        """Release backend resources.  Safe to call more than once."""
        ...

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def get(self, collection: str, key: str) -> Optional[Record]:
        """Return the record stored under *key*, or ``None``.

        A record that cannot be decoded is deleted and reported as missing.
        """
        self._check_collection(collection)
        text = self._call(self._raw_get, collection, key)
        if text is None:
            return None
        return self._decode(collection, key, text)

    async def put(self, collection: str, key: str, record: Record) -> None:
        """Insert or replace the record stored under *key*.

        Raises:
            StorageError: If the record is not JSON-serialisable or the
                backend write fails.
        """
        self._check_collection(collection)
        try:
            text = json.dumps(record, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageError(
                f"Record {collection}/{key} is not JSON-serialisable: {exc}"
            ) from exc
        self._call(self._raw_set, collection, key, text)

    async def delete(self, collection: str, key: str) -> None:
        """Remove *key*; a missing key is not an error."""
        self._check_collection(collection)
        self._call(self._raw_delete, collection, key)

    async def keys(self, collection: str) -> list[str]:
        """Return every key of *collection* in insertion order."""
        self._check_collection(collection)
        return self._call(self._raw_keys, collection)

    async def items(self, collection: str) -> list[tuple[str, Record]]:
        """Return ``(key, record)`` pairs in insertion order, skipping corrupt entries."""
        self._check_collection(collection)
        pairs: list[tuple[str, Record]] = []
        for key in self._call(self._raw_keys, collection):
            text = self._call(self._raw_get, collection, key)
            if text is None:
                continue
            record = self._decode(collection, key, text)
            if record is not None:
                pairs.append((key, record))
        return pairs

    async def get_all(self, collection: str) -> list[Record]:
        """Return every readable record of *collection* in insertion order."""
        return [record for _, record in await self.items(collection)]

    async def items_by_index(
        self,
        collection: str,
        index: str,
        value: Any = None,
    ) -> list[tuple[str, Record]]:
        """Scan *collection* through one of its secondary indexes.

        Args:
            collection: Collection to scan.
            index: Indexed record field.
            value: When given, only records whose field equals *value* are
                returned; otherwise every record carrying the field is.

        Returns:
            ``(key, record)`` pairs ordered by the indexed field (ties keep
            insertion order).  Values of different JSON types never compare
            with each other: numbers sort before strings, strings before
            anything else.

        Raises:
            StorageError: If *index* is not declared for *collection*.
        """
        self._check_index(collection, index)
        matches = [
            (key, record)
            for key, record in await self.items(collection)
            if index in record and (value is None or record[index] == value)
        ]
        return sorted(matches, key=lambda pair: _index_order(pair[1][index]))

    async def get_all_by_index(
        self,
        collection: str,
        index: str,
        value: Any = None,
    ) -> list[Record]:
        """Like :meth:`items_by_index`, without the keys."""
        return [record for _, record in await self.items_by_index(collection, index, value)]

    async def count(self, collection: str) -> int:
        """Return the number of entries in *collection*."""
        self._check_collection(collection)
        return self._call(self._raw_count, collection)

    async def count_by_index(self, collection: str, index: str, value: Any) -> int:
        """Return how many records of *collection* have ``index == value``."""
        return len(await self.get_all_by_index(collection, index, value))

    async def clear(self, collection: str) -> None:
        """Remove every entry of *collection*."""
        self._check_collection(collection)
        self._call(self._raw_clear, collection)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _check_collection(self, collection: str) -> None:
        if collection not in self._indexes:
            raise StorageError(f"Unknown collection: {collection}")

    def _check_index(self, collection: str, index: str) -> None:
        self._check_collection(collection)
        if index not in self._indexes[collection]:
            raise StorageError(f"Collection '{collection}' has no index '{index}'")

    def _call(self, fn: Any, *args: Any) -> Any:
        """Invoke a backend primitive, normalising failures to StorageError."""
        try:
            return fn(*args)
        except StorageError:
            raise
        except OSError as exc:
            raise StorageError(f"Storage backend failure: {exc}") from exc

    def _decode(self, collection: str, key: str, text: str) -> Optional[Record]:
        """Parse stored JSON; delete and drop entries that are not JSON objects."""
        try:
            record = json.loads(text)
        except (json.JSONDecodeError, TypeError):
            record = None
        if isinstance(record, dict):
            return record
        logger.warning("Dropping corrupt record %s/%s", collection, key)
        self._call(self._raw_delete, collection, key)
        return None


def _index_order(value: Any) -> tuple[int, Any]:
    """Total sort key over JSON values for index scans."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value)
    if isinstance(value, str):
        return (1, value)
    return (2, json.dumps(value, sort_keys=True, default=str))
