"""HTTP transport for offsync.

:class:`HttpTransport` wraps :class:`httpx.AsyncClient`, classifies
failures as retryable or permanent, and returns
:class:`TransportResponse` objects with the body already decoded.

Example::

    from offsync.transport import HttpTransport

    async with HttpTransport(config.request, base_url=config.base_url) as transport:
        resp = await transport.request("GET", "/tasks")
"""

from offsync.transport.http import HttpTransport
from offsync.transport.response import TransportResponse, extract_response_data

__all__ = ["HttpTransport", "TransportResponse", "extract_response_data"]
