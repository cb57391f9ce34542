"""Two-tier response caching for offsync.

This package provides :class:`CacheStore`, a volatile + durable cache for
response bodies keyed by request fingerprints (:func:`make_cache_key`),
with TTL expiry and ``ETag`` / ``Last-Modified`` metadata for conditional
revalidation.

Several stores coexist, one per namespace in
:class:`~offsync.models.CacheConfig`; the
:class:`~offsync.pipeline.RequestPipeline` routes each URL to one of them.
"""

from offsync.cache.keys import make_cache_key
from offsync.cache.store import RESPONSE_CACHE, CacheStore

__all__ = ["CacheStore", "RESPONSE_CACHE", "make_cache_key"]
