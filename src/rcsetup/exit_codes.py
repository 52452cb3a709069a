"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~rcsetup.exceptions.RcsetupError` subclass.
CI scripts can inspect the exit code to tell a rejected API key from a
typo in the setup file without parsing stderr.

Example::

    $ rcsetup provision
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the API key was rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully (or the user cancelled it)."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments, or the setup file failed identifier validation."""

EXIT_AUTH_FAILURE = 3
"""The API key was rejected (HTTP 401/403)."""

EXIT_NOT_FOUND = 4
"""A referenced remote resource does not exist (HTTP 404)."""

EXIT_API_ERROR = 5
"""The remote API returned an error status (4xx other than the above, or 5xx)."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_CONFIG_ERROR = 7
"""The setup file or a credential source could not be read or parsed."""

EXIT_PROVISIONING_ERROR = 8
"""A prerequisite resource (project or app) could not be resolved."""

EXIT_CANCELLED = 130
"""The process was interrupted with Ctrl-C."""
