"""Asynchronous HTTP transport with error classification and retry.

This module provides :class:`HttpTransport`, the only component of offsync
that touches the network.  It wraps :class:`httpx.AsyncClient` and turns
every outcome into either a :class:`~offsync.transport.response.TransportResponse`
or a typed :class:`~offsync.exceptions.OffsyncError` whose ``retryable``
flag tells the sync coordinator whether the failure should consume a
retry or reject the queued item outright:

============================  ======================  =========
Outcome                       Exception               Retryable
============================  ======================  =========
2xx / 3xx (including 304)     -- (response returned)  --
401 / 403                     ``AuthError``           yes
404                           ``NotFoundError``       no
408 / 429 / 5xx               ``ServerError``         yes
other 4xx                     ``ClientError``         no
any httpx transport error  ``ConnectionError_``    yes
============================  ======================  =========

Retryable failures are retried in place with exponential backoff (1 s,
2 s, 4 s, ...) up to ``max_retries`` times.  Replay passes call with
``max_retries=0`` because the queue's own counter is their retry budget.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import httpx

from offsync.exceptions import (
    AuthError,
    ClientError,
    ConnectionError_,
    NotFoundError,
    OffsyncError,
    ServerError,
)
from offsync.models import RequestConfig
from offsync.output import get_output
from offsync.transport.response import TransportResponse, extract_response_data

RETRYABLE_STATUSES = frozenset({408, 429})


class HttpTransport:
    """Asynchronous HTTP transport for live calls and replays.

    Must be used as an async context manager (or opened with
    :meth:`open` and closed with :meth:`aclose`).

    Args:
        config: Timeout, SSL and retry settings.
        base_url: Prefix for relative request URLs.  Absolute URLs are
            sent as-is.
        transport: Optional custom :mod:`httpx` transport, e.g.
            :class:`httpx.MockTransport` in tests.

    Example::

        async with HttpTransport(RequestConfig(), base_url="https://api.example.com") as t:
            response = await t.request("GET", "/tasks")
    """

    def __init__(
        self,
        config: Optional[RequestConfig] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config or RequestConfig()
        self._base_url = base_url or ""
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> HttpTransport:
        self.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    def open(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request method
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, Any]] = None,
        body: Any = None,
        max_retries: Optional[int] = None,
    ) -> TransportResponse:
        """Send one request, retrying retryable failures.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE, HEAD).
            url: Path relative to ``base_url`` or an absolute URL.
            headers: Request headers.
            params: Query parameters.
            body: JSON-serialisable body; omitted when ``None``.
            max_retries: Overrides the configured retry count.

        Returns:
            The decoded response (status < 400).

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ClientError: On other non-retryable 4xx.
            ServerError: On 5xx / 408 / 429 after all retries.
            ConnectionError_: On any httpx transport error (timeout, refused
                or dropped connection) after all retries.
        """
        assert self._client is not None, "Transport not open -- use as async context manager"

        retries = self._config.max_retries if max_retries is None else max_retries
        output = get_output()

        kwargs: dict[str, Any] = {
            "method": method.upper(),
            "url": url,
            "headers": headers or {},
            "params": params or {},
        }
        if body is not None:
            kwargs["json"] = body

        for attempt in range(retries + 1):
            try:
                response = await self._client.request(**kwargs)
                self._map_response_error(response)
                return TransportResponse.from_httpx(response)
            except httpx.TransportError as exc:
                error: OffsyncError = ConnectionError_(
                    f"{method.upper()} {url} failed: {exc}"
                )
                cause: Exception = exc
            except OffsyncError as exc:
                if not exc.retryable or isinstance(exc, AuthError):
                    raise
                error = exc
                cause = exc

            if attempt >= retries:
                if error is cause:
                    raise error
                raise error from cause

            delay = 2 ** attempt
            output.debug(
                f"{error}, retrying in {delay}s (attempt {attempt + 1}/{retries})"
            )
            await asyncio.sleep(delay)

        raise ServerError("Request failed after all retries")  # pragma: no cover

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        # Try to extract an error message from the response body.
        detail = extract_response_data(response)
        if isinstance(detail, dict):
            msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
        elif detail is not None:
            msg = str(detail)[:200]
        else:
            msg = ""

        prefix = f"HTTP {status}"
        full_msg = f"{prefix}: {msg}" if msg else prefix

        if status in (401, 403):
            raise AuthError(full_msg, status_code=status)
        if status == 404:
            raise NotFoundError(full_msg, status_code=status)
        if status >= 500 or status in RETRYABLE_STATUSES:
            raise ServerError(full_msg, status_code=status)
        raise ClientError(full_msg, status_code=status)
