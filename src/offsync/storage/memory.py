"""In-process :class:`~offsync.storage.base.Store` used by tests and ephemeral engines.

Values are kept as JSON text exactly like the disk backend, so decoding
and corruption handling are exercised identically.  Nothing survives the
process.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Optional

from offsync.storage.base import Store


class MemoryStore(Store):
    """Dictionary-backed store; insertion order is preserved by ``dict``."""

    def __init__(self, indexes: Optional[Mapping[str, Sequence[str]]] = None) -> None:
        super().__init__(indexes)
        self._data: dict[str, dict[str, str]] = {name: {} for name in self._indexes}

    def _raw_get(self, collection: str, key: str) -> Optional[str]:
        return self._data[collection].get(key)

    def _raw_set(self, collection: str, key: str, text: str) -> None:
        self._data[collection][key] = text

    def _raw_delete(self, collection: str, key: str) -> None:
        self._data[collection].pop(key, None)

    def _raw_keys(self, collection: str) -> list[str]:
        return list(self._data[collection])

    def _raw_count(self, collection: str) -> int:
        return len(self._data[collection])

    def _raw_clear(self, collection: str) -> None:
        self._data[collection].clear()

    def close(self) -> None:
        pass
