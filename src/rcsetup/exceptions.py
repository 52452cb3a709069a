"""Exception hierarchy for rcsetup.

All exceptions inherit from :class:`RcsetupError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`rcsetup.exit_codes`.
The top-level error handler in :func:`rcsetup.app.main` catches
``RcsetupError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    RcsetupError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- ValidationError     (exit 2)
    +-- ConfigError         (exit 7)
    +-- APIError            (exit 5)
    |   +-- AuthError       (exit 3)
    |   +-- NotFoundError   (exit 4)
    |   +-- ConflictError   (exit 5)
    |   +-- ServerError     (exit 5)
    +-- ConnectionError_    (exit 6)
    +-- ProvisioningError   (exit 8)
    +-- UserCancelled       (exit 0)

A 409 is surfaced as :class:`ConflictError` by the low-level client only;
:class:`~rcsetup.client.revenuecat.RevenueCatClient` turns it into an
``AlreadyExisted`` result, so it never reaches the orchestrator.
"""

from __future__ import annotations

from typing import Any, Optional

from rcsetup.exit_codes import (
    EXIT_API_ERROR,
    EXIT_AUTH_FAILURE,
    EXIT_CONFIG_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_PROVISIONING_ERROR,
    EXIT_SUCCESS,
)


class RcsetupError(Exception):
    """Base exception for all rcsetup errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`rcsetup.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(RcsetupError):
    """Raised for invalid CLI arguments or missing required options."""

    exit_code = EXIT_INVALID_USAGE


class ValidationError(RcsetupError):
    """Raised when local input fails a format or reference check.

    Validation happens before any network call and is never retried.

    Args:
        message: Description of the problem (may span several lines).
        field: Dotted path of the offending setup-file field, when a single
            field is at fault.
    """

    exit_code = EXIT_INVALID_USAGE

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConfigError(RcsetupError):
    """Raised for unreadable setup files, invalid JSON/YAML, or bad credential sources."""

    exit_code = EXIT_CONFIG_ERROR


class APIError(RcsetupError):
    """Raised when the remote API answers with a non-2xx status.

    Args:
        message: Human-readable summary, usually ``HTTP <status>: <message>``.
        status_code: The HTTP status code, or ``None`` for malformed
            success responses.
        body: The decoded response body (dict, list or text).
    """

    exit_code = EXIT_API_ERROR

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AuthError(APIError):
    """Raised on HTTP 401 / 403 (invalid or under-scoped API key)."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(APIError):
    """Raised on HTTP 404."""

    exit_code = EXIT_NOT_FOUND


class ConflictError(APIError):
    """Raised on HTTP 409 -- the resource already exists."""


class ServerError(APIError):
    """Raised on an HTTP 5xx server error."""


class ConnectionError_(RcsetupError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ProvisioningError(RcsetupError):
    """Raised when a prerequisite resource id cannot be resolved remotely."""

    exit_code = EXIT_PROVISIONING_ERROR


class UserCancelled(RcsetupError):
    """Raised when the user declines to continue.

    Not a failure: :func:`rcsetup.app.main` prints a warning and exits
    with :data:`~rcsetup.exit_codes.EXIT_SUCCESS`.
    """

    exit_code = EXIT_SUCCESS
