"""Exception hierarchy for supafetch.

All exceptions inherit from :class:`SupafetchError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`supafetch.exit_codes`.

These exceptions are *raised* for programmer and configuration errors
(bad builder arguments, missing client settings), which fail fast before
any network traffic.  Failures of an actual HTTP exchange are instead
*returned* as :class:`~supafetch.fetcher.errors.FetchError` values, which
also subclass :class:`SupafetchError` so callers may choose to raise them.

Subclass hierarchy::

    SupafetchError (exit 1)
    +-- InvalidRequestError (exit 2)
    +-- ConfigError         (exit 1)
    |   +-- MissingConfigError
    +-- DecodeError         (exit 7)
    +-- FileError           (exit 8)
    +-- FetchError          (exit code derived from the error code)
"""

from __future__ import annotations

import errno as errno_mod
import os
from typing import Optional

from supafetch.exit_codes import (
    EXIT_DECODE_ERROR,
    EXIT_FILE_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
)


class SupafetchError(Exception):
    """Base exception for all supafetch errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidRequestError(SupafetchError):
    """Raised when a request builder step receives an invalid argument."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(SupafetchError):
    """Raised for invalid client options or unreadable configuration files."""

    exit_code = EXIT_GENERIC_FAILURE


class MissingConfigError(ConfigError):
    """Raised when a required client setting (URL or API key) is blank.

    Args:
        key: The missing setting, ``"url"`` or ``"key"``.
        source: Optional description of where the setting was looked up.
    """

    _HINTS = {
        "url": "SUPABASE_URL",
        "key": "SUPABASE_KEY",
    }

    def __init__(self, key: str, source: Optional[str] = None):
        self.key = key
        self.source = source
        env_var = self._HINTS.get(key, key.upper())
        message = f"Missing Supabase {key}: set {env_var} or pass it explicitly"
        if source:
            message = f"{message} (looked in {source})"
        super().__init__(message)


class DecodeError(SupafetchError):
    """Raised by body decoders when a response body cannot be decoded."""

    exit_code = EXIT_DECODE_ERROR


class FileError(SupafetchError):
    """Raised when a local file operation fails, typically during upload.

    Wraps the underlying :class:`OSError` and records which action was
    being attempted so the message reads like
    ``could not read file stats "a.txt": no such file or directory``.

    Args:
        reason: Lower-case errno name such as ``"enoent"``.
        action: What was being attempted (``"read file stats"``).
        path: The file path involved.
        description: Human-readable cause.
    """

    exit_code = EXIT_FILE_ERROR

    def __init__(self, reason: str, action: str, path: str, description: str):
        self.reason = reason
        self.action = action
        self.path = path
        self.description = description
        super().__init__(f'could not {action} "{path}": {description}')

    @classmethod
    def from_os_error(cls, exc: OSError, action: str, path: str | os.PathLike) -> FileError:
        """Build a :class:`FileError` from an :class:`OSError`."""
        return cls(
            reason=os_error_reason(exc),
            action=action,
            path=os.fspath(path),
            description=(exc.strerror or str(exc)).lower(),
        )


def os_error_reason(exc: OSError) -> str:
    """Return the lower-case errno name of *exc* (``"enoent"``), or ``"file_error"``."""
    if exc.errno is not None and exc.errno in errno_mod.errorcode:
        return errno_mod.errorcode[exc.errno].lower()
    return "file_error"
