"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~offsync.exceptions.OffsyncError` subclass.
Shell wrappers can inspect the exit code of ``offsync sync`` to decide
whether a failed pass is worth retrying without parsing stderr.

Example::

    $ offsync sync
    $ echo $?
    6   # EXIT_CONNECTION_ERROR -- backend unreachable, work stays queued
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""Authentication or authorisation failed."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an HTTP 5xx server error or asked us to back off."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_CLIENT_ERROR = 7
"""The remote API permanently rejected the request (HTTP 4xx other than auth)."""

EXIT_STORAGE_ERROR = 8
"""The durable store could not be read or written."""

EXIT_NO_CACHE = 9
"""An offline read found nothing cached to serve."""
