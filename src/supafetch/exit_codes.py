"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a failure category.  :class:`~supafetch.exceptions.SupafetchError`
subclasses carry one as a class attribute, and
:attr:`~supafetch.fetcher.errors.FetchError.exit_code` maps a semantic error
code onto one, so shell wrappers can branch on ``$?`` without parsing
stderr.

Example::

    $ supafetch request storage /bucket/missing
    $ echo $?
    4   # EXIT_NOT_FOUND -- the service answered 404
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command or request builder was given invalid arguments."""

EXIT_AUTH_FAILURE = 3
"""Authentication or authorisation failed (HTTP 401 / 403)."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The service answered with an HTTP error status."""

EXIT_CONNECTION_ERROR = 6
"""A transport-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_DECODE_ERROR = 7
"""The response body could not be decoded."""

EXIT_FILE_ERROR = 8
"""A local file could not be read (e.g. during upload)."""
