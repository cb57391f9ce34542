"""Exception hierarchy for offsync.

All exceptions inherit from :class:`OffsyncError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`offsync.exit_codes`
and a ``retryable`` flag.  The sync coordinator reads ``retryable`` to
decide whether a failed replay consumes a retry or is rejected outright,
so transient network trouble and permanent server refusals never share a
retry budget.

Subclass hierarchy::

    OffsyncError (exit 1)
    +-- InvalidUsageError      (exit 2)
    +-- AuthError              (exit 3, retryable)
    +-- NotFoundError          (exit 4)
    +-- ServerError            (exit 5, retryable)
    +-- ConnectionError_       (exit 6, retryable)
    +-- ClientError            (exit 7)
    +-- StorageError           (exit 8)
    +-- NoCacheAvailableError  (exit 9)
    +-- ConfigError            (exit 1)
"""

from offsync.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CLIENT_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NO_CACHE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
    EXIT_STORAGE_ERROR,
)


class OffsyncError(Exception):
    """Base exception for all offsync errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
        status_code: HTTP status that produced the error, when there was one.
    """

    exit_code: int = EXIT_GENERIC_FAILURE
    retryable: bool = False

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code
        self.status_code = status_code


class InvalidUsageError(OffsyncError):
    """Raised for invalid CLI arguments or malformed queue operations."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(OffsyncError):
    """Raised when the API answers 401 / 403.

    Retryable during replay: the token captured at enqueue time may have
    gone stale and can be refreshed before the next pass.
    """

    exit_code = EXIT_AUTH_FAILURE
    retryable = True


class NotFoundError(OffsyncError):
    """Raised when the API returns HTTP 404 (resource not found)."""

    exit_code = EXIT_NOT_FOUND


class ServerError(OffsyncError):
    """Raised on HTTP 5xx, 408 and 429 responses."""

    exit_code = EXIT_SERVER_ERROR
    retryable = True


class ConnectionError_(OffsyncError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR
    retryable = True


class ClientError(OffsyncError):
    """Raised when the API permanently rejects a request (4xx other than auth/404)."""

    exit_code = EXIT_CLIENT_ERROR


class StorageError(OffsyncError):
    """Raised when the durable store cannot complete a read or write."""

    exit_code = EXIT_STORAGE_ERROR


class NoCacheAvailableError(OffsyncError):
    """Raised for an offline read with no cached response in any tier."""

    exit_code = EXIT_NO_CACHE


class ConfigError(OffsyncError):
    """Raised for configuration problems (invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE
