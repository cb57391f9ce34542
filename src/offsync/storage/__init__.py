"""Durable key-value storage for offsync.

:class:`Store` is the capability interface every persistent component
depends on.  :class:`DiskStore` persists through :mod:`diskcache`;
:class:`MemoryStore` keeps everything in process and is intended for
tests and throwaway engines.
"""

from offsync.storage.base import DEFAULT_INDEXES, Record, Store
from offsync.storage.disk import DiskStore
from offsync.storage.memory import MemoryStore

__all__ = ["DEFAULT_INDEXES", "DiskStore", "MemoryStore", "Record", "Store"]
