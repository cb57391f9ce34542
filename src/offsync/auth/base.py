"""Abstract base class for request authentication.

Token management itself is outside offsync; the engine only needs two
things from it:

- the headers to attach to an outgoing call (captured into queued
  requests at enqueue time, fetched fresh for action replay), and
- a single refresh attempt when a live call comes back 401, after which
  the :class:`~offsync.pipeline.RequestPipeline` retries exactly once.

To plug in a token source, subclass :class:`AuthProvider` and implement
:meth:`~AuthProvider.headers`; override :meth:`~AuthProvider.refresh` if
the credential can be renewed.

See Also:
    :class:`offsync.auth.bearer.BearerTokenAuth` for the built-in provider.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AuthProvider(ABC):
    """Supplies authentication headers for outgoing requests."""

    @abstractmethod
    def headers(self) -> dict[str, str]:
        """Return headers to merge into the next request.

        Returns:
            A header mapping such as ``{"Authorization": "Bearer ..."}``.
            May be empty when no credential is available.
        """
        ...

    async def refresh(self) -> bool:
        """Try to renew the credential after an authentication failure.

        The default implementation cannot refresh anything.

        Returns:
            ``True`` if a new credential is now available and the failed
            request is worth retrying once.
        """
        return False


class NoAuth(AuthProvider):
    """Provider for backends that need no credentials."""

    def headers(self) -> dict[str, str]:
        return {}
