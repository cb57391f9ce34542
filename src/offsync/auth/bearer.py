"""Bearer token authentication.

This module provides :class:`BearerTokenAuth`, which injects an
``Authorization: Bearer <token>`` header.  The token is either given
directly or resolved from a source descriptor (``env:MY_TOKEN``,
``file:~/.token``).  Refreshing re-resolves the source, which picks up a
token rotated by another process, or delegates to a caller-supplied
coroutine for real refresh-token flows.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from offsync.auth.base import AuthProvider
from offsync.config import resolve_credential
from offsync.exceptions import ConfigError

logger = logging.getLogger(__name__)

Refresher = Callable[[], Awaitable[Optional[str]]]


class BearerTokenAuth(AuthProvider):
    """Authenticate via Bearer token in the Authorization header.

    Args:
        token: The current token, or ``None`` if not yet known.
        source: Credential source re-read on refresh.
        refresher: Coroutine returning a new token (or ``None`` on failure);
            takes precedence over *source* when refreshing.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        source: Optional[str] = None,
        refresher: Optional[Refresher] = None,
    ) -> None:
        self._token = token
        self._source = source
        self._refresher = refresher

    @classmethod
    def from_source(cls, source: str) -> BearerTokenAuth:
        """Build a provider whose token is read from *source*.

        Raises:
            ConfigError: If the source cannot be resolved.
        """
        return cls(token=resolve_credential(source), source=source)

    @property
    def token(self) -> Optional[str]:
        return self._token

    def headers(self) -> dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    async def refresh(self) -> bool:
        """Obtain a new token; succeed only if it differs from the rejected one."""
        old = self._token
        new: Optional[str] = None
        if self._refresher is not None:
            new = await self._refresher()
        elif self._source is not None:
            try:
                new = resolve_credential(self._source)
            except ConfigError as exc:
                logger.warning("Token refresh from %s failed: %s", self._source, exc)
                return False
        if not new or new == old:
            return False
        self._token = new
        return True
