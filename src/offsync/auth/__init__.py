"""Authentication hooks for offsync.

- :class:`AuthProvider` -- abstract source of request headers with an
  optional single refresh.
- :class:`NoAuth` -- attaches nothing.
- :class:`BearerTokenAuth` -- bearer token from a literal value, an
  ``env:`` / ``file:`` source, or a refresh coroutine.

Typical usage::

    from offsync.auth import BearerTokenAuth

    auth = BearerTokenAuth.from_source("env:API_TOKEN")
    pipeline = RequestPipeline(..., auth=auth)
"""

from offsync.auth.base import AuthProvider, NoAuth
from offsync.auth.bearer import BearerTokenAuth

__all__ = ["AuthProvider", "BearerTokenAuth", "NoAuth"]
