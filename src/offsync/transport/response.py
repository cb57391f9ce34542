"""Transport-neutral response container.

The pipeline, the sync coordinator and the cache never handle
:class:`httpx.Response` objects directly; they get a
:class:`TransportResponse` whose body has already been decoded by
:func:`extract_response_data`.  This keeps cached and optimistic responses
shaped exactly like live ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx


@dataclass
class TransportResponse:
    """Status, lower-cased headers and decoded body of an HTTP response."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    data: Any = None

    @property
    def not_modified(self) -> bool:
        return self.status_code == 304

    @property
    def etag(self) -> str | None:
        return self.headers.get("etag")

    @property
    def last_modified(self) -> str | None:
        return self.headers.get("last-modified")

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> TransportResponse:
        return cls(
            status_code=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            data=extract_response_data(response),
        )


def extract_response_data(response: httpx.Response) -> Any:
    """Extract the body from an HTTP response.

    Attempts to parse the body as JSON first.  If that fails (e.g. the
    response is HTML or plain text), returns the raw text.  Returns
    ``None`` for responses with no content.

    Args:
        response: The :class:`httpx.Response` to extract data from.

    Returns:
        A JSON-decoded object (``dict``, ``list``, etc.), a ``str`` of raw
        text, or ``None`` if the body is empty.
    """
    # Handle empty body
    if not response.content:
        return None

    # Try JSON first
    try:
        return response.json()
    except ValueError:
        pass

    # Fall back to text
    return response.text
