"""Request fingerprints used as cache keys.

A fingerprint is the SHA-256 of ``METHOD|URL|params|body`` with params and
body serialised using sorted keys, so identical requests always resolve to
the same entry regardless of argument ordering.  GET bodies are ignored:
they carry no meaning for a read and must not fragment the cache.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Optional


def make_cache_key(
    method: str,
    url: str,
    params: Optional[dict[str, Any]] = None,
    body: Any = None,
) -> str:
    """Generate a cache key from method, URL, sorted params and (non-GET) body."""
    method = method.upper()
    parts = [method, url]
    if params:
        parts.append(json.dumps(params, sort_keys=True, default=str))
    if body is not None and method != "GET":
        parts.append(json.dumps(body, sort_keys=True, default=str))
    raw = "|".join(parts)
    return hashlib.sha256(raw.encode()).hexdigest()
