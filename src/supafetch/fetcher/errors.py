"""Structured errors and the pluggable error parser.

Every failure of an HTTP exchange reaches the caller as a
:class:`FetchError`: a semantic ``code`` (an :class:`ErrorCode` member,
or the lower-case errno name for filesystem failures), a human-readable
``message``, the ``service`` that was called, and a ``metadata`` mapping
with the request context.

Error parsers turn a failure *source* plus the originating request into
a :class:`FetchError`.  :class:`HTTPErrorParser`, the default, dispatches
on the type of the source:

* :class:`~supafetch.fetcher.response.Response` -- status table lookup
  (:func:`parse_status`).
* :class:`~supafetch.exceptions.FileError` / :class:`OSError` -- code
  from the failure reason.
* :class:`httpx.TransportError` -- ``transport_error``; any other
  :class:`httpx.HTTPError` -- ``http_error``.
* :class:`FetchError` -- kept, enriched with request metadata.
* anything else -- ``unexpected``, with the raw value in metadata.

Service integrations (storage, auth...) register their own parser on a
request with :meth:`~supafetch.fetcher.Request.with_error_parser`; it
replaces this dispatch entirely for that request.
"""

from __future__ import annotations

import enum
import logging
import traceback
from abc import ABC, abstractmethod
from collections.abc import Mapping
from functools import singledispatchmethod
from typing import TYPE_CHECKING, Any, Optional, Union

import httpx

from supafetch.exceptions import FileError, SupafetchError, os_error_reason
from supafetch.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_DECODE_ERROR,
    EXIT_FILE_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)
from supafetch.fetcher.headers import without
from supafetch.fetcher.response import Response
from supafetch.models import Service

if TYPE_CHECKING:
    from supafetch.fetcher.request import Request

logger = logging.getLogger(__name__)


class ErrorCode(str, enum.Enum):
    """Semantic error codes produced by the built-in parser and pipeline."""

    UNEXPECTED = "unexpected"
    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    RESOURCE_ALREADY_EXISTS = "resource_already_exists"
    MISSING_CONTENT_LENGTH = "missing_content_length"
    CONTENT_TOO_LARGE = "content_too_large"
    INVALID_RANGE = "invalid_range"
    UNPROCESSABLE_ENTITY = "unprocessable_entity"
    RESOURCE_LOCKED = "resource_locked"
    TOO_MANY_REQUESTS = "too_many_requests"
    SERVER_ERROR = "server_error"
    NOT_IMPLEMENTED = "not_implemented"
    SERVICE_UNAVAILABLE = "service_unavailable"
    GATEWAY_TIMEOUT = "gateway_timeout"
    TRANSPORT_ERROR = "transport_error"
    HTTP_ERROR = "http_error"
    DECODE_ERROR = "decode_error"
    NON_IMPLEMENTED_FUNCTION = "non_implemented_function"


Code = Union[ErrorCode, str]

_STATUS_CODES: dict[int, ErrorCode] = {
    400: ErrorCode.BAD_REQUEST,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.METHOD_NOT_ALLOWED,
    409: ErrorCode.RESOURCE_ALREADY_EXISTS,
    411: ErrorCode.MISSING_CONTENT_LENGTH,
    413: ErrorCode.CONTENT_TOO_LARGE,
    416: ErrorCode.INVALID_RANGE,
    422: ErrorCode.UNPROCESSABLE_ENTITY,
    423: ErrorCode.RESOURCE_LOCKED,
    429: ErrorCode.TOO_MANY_REQUESTS,
    500: ErrorCode.SERVER_ERROR,
    501: ErrorCode.NOT_IMPLEMENTED,
    503: ErrorCode.SERVICE_UNAVAILABLE,
    504: ErrorCode.GATEWAY_TIMEOUT,
}

_EXIT_CODES: dict[ErrorCode, int] = {
    ErrorCode.UNAUTHORIZED: EXIT_AUTH_FAILURE,
    ErrorCode.FORBIDDEN: EXIT_AUTH_FAILURE,
    ErrorCode.NOT_FOUND: EXIT_NOT_FOUND,
    ErrorCode.TRANSPORT_ERROR: EXIT_CONNECTION_ERROR,
    ErrorCode.HTTP_ERROR: EXIT_CONNECTION_ERROR,
    ErrorCode.DECODE_ERROR: EXIT_DECODE_ERROR,
    ErrorCode.NON_IMPLEMENTED_FUNCTION: EXIT_INVALID_USAGE,
    ErrorCode.UNEXPECTED: EXIT_GENERIC_FAILURE,
}


def parse_status(status: int) -> ErrorCode:
    """Map an HTTP status to its :class:`ErrorCode`; unknown statuses are ``UNEXPECTED``."""
    return _STATUS_CODES.get(status, ErrorCode.UNEXPECTED)


def code_name(code: Code) -> str:
    """Return the plain string form of *code*."""
    return code.value if isinstance(code, ErrorCode) else str(code)


def humanize_error_code(code: Code) -> str:
    """Turn ``"resource_already_exists"`` into ``"Resource Already Exists"``."""
    words = code_name(code).replace("-", "_").split("_")
    return " ".join(word.capitalize() for word in words if word)


def _as_code(code: Code) -> Code:
    if isinstance(code, ErrorCode):
        return code
    try:
        return ErrorCode(code)
    except ValueError:
        return code


class FetchError(SupafetchError):
    """A structured failure returned by the fetcher.

    The fetcher *returns* these instead of raising them; use
    :func:`~supafetch.fetcher.fetch.unwrap` or ``raise`` to turn one into an
    exception.

    Args:
        code: Semantic error code.  Strings matching an :class:`ErrorCode`
            value are converted to the enum member.
        message: Human-readable description; defaults to the humanized code.
        service: The service the failing request targeted.
        metadata: Extra context (request path, bodies, redacted headers...).
    """

    def __init__(
        self,
        code: Code = ErrorCode.UNEXPECTED,
        message: Optional[str] = None,
        service: Optional[Service] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ):
        self.code = _as_code(code)
        self.message = message if message is not None else humanize_error_code(self.code)
        self.service = Service(service) if service is not None else None
        self.metadata: dict[str, Any] = dict(metadata or {})
        super().__init__(self.message)

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        if isinstance(self.code, ErrorCode):
            if self.code in _EXIT_CODES:
                return _EXIT_CODES[self.code]
            return EXIT_SERVER_ERROR
        return EXIT_FILE_ERROR

    def with_metadata(self, extra: Mapping[str, Any]) -> FetchError:
        """Return a copy whose metadata is *extra* overlaid by this error's own.

        Keys already present on the error win, so context added by an outer
        layer never hides the more specific values set where it was created.
        """
        return FetchError(
            code=self.code,
            message=self.message,
            service=self.service,
            metadata={**extra, **self.metadata},
        )

    def __reduce__(self):
        return (type(self), (self.code, self.message, self.service, self.metadata))

    def __repr__(self) -> str:
        service = self.service.value if self.service else None
        text = f"FetchError(code={code_name(self.code)!r}, message={self.message!r}, service={service!r}"
        if self.metadata:
            text += f", metadata={self.metadata!r}"
        return text + ")"


# --- Metadata helpers ---


def make_default_http_metadata(ctx: Optional[Request]) -> dict[str, Any]:
    """Build error metadata from the request being executed.

    Returns ``path`` (the URL with the service base URL stripped),
    ``req_body`` and ``headers``.  The ``authorization`` header is removed
    here, whatever its casing, so errors can be logged or displayed as-is.
    An absent request yields an empty mapping.
    """
    if ctx is None:
        return {}
    url = ctx.url or ""
    base_url = ctx.client.service_url(ctx.service) if ctx.service is not None else ""
    path = url.replace(base_url, "", 1) if base_url else url
    return {
        "path": path,
        "req_body": ctx.body,
        "headers": without(ctx.headers, "authorization"),
    }


def _service_of(ctx: Optional[Request]) -> Optional[Service]:
    return ctx.service if ctx is not None else None


def decode_failure(exc: BaseException, ctx: Optional[Request]) -> FetchError:
    """Build the ``decode_error`` raised when a body decoder fails."""
    metadata = make_default_http_metadata(ctx)
    metadata["reason"] = str(exc)
    metadata["traceback"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return FetchError(
        code=ErrorCode.DECODE_ERROR,
        message=f"Failed to decode response body: {exc}",
        service=_service_of(ctx),
        metadata=metadata,
    )


# --- Parsers ---


class ErrorParser(ABC):
    """Base class for error parsers.

    A parser is any callable ``(source, context) -> FetchError``; this
    base class makes instances callable through :meth:`parse`.
    """

    @abstractmethod
    def parse(self, source: Any, context: Optional[Request] = None) -> FetchError:
        """Convert *source* into a :class:`FetchError` using *context*."""

    def __call__(self, source: Any, context: Optional[Request] = None) -> FetchError:
        return self.parse(source, context)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class HTTPErrorParser(ErrorParser):
    """Default parser: dispatch on the failure source type.

    The HTTP metadata format is::

        {
            "path": "URL path below the service base URL",
            "req_body": b"request body as sent",
            "headers": [("content-type", "application/json")],  # no authorization
            "resp_status": 404,
            "resp_body": {"message": "decoded response body"},
        }
    """

    @singledispatchmethod
    def parse(self, source: Any, context: Optional[Request] = None) -> FetchError:
        logger.debug("Unrecognized failure source %r", type(source).__name__)
        metadata = make_default_http_metadata(context)
        metadata["raw_error"] = source
        return FetchError(ErrorCode.UNEXPECTED, service=_service_of(context), metadata=metadata)

    @parse.register(Response)
    def _from_response(self, source: Response, context: Optional[Request] = None) -> FetchError:
        metadata = make_default_http_metadata(context)
        metadata.update(resp_status=source.status, resp_body=source.body)
        return FetchError(parse_status(source.status), service=_service_of(context), metadata=metadata)

    @parse.register(FetchError)
    def _from_fetch_error(self, source: FetchError, context: Optional[Request] = None) -> FetchError:
        return source.with_metadata(make_default_http_metadata(context))

    @parse.register(FileError)
    def _from_file_error(self, source: FileError, context: Optional[Request] = None) -> FetchError:
        metadata = make_default_http_metadata(context)
        metadata.update(file_path=source.path, action=source.action)
        return FetchError(
            code=source.reason,
            message=str(source),
            service=_service_of(context),
            metadata=metadata,
        )

    @parse.register(OSError)
    def _from_os_error(self, source: OSError, context: Optional[Request] = None) -> FetchError:
        metadata = make_default_http_metadata(context)
        if source.filename is not None:
            metadata["file_path"] = source.filename
        description = (source.strerror or str(source)).lower()
        return FetchError(
            code=os_error_reason(source),
            message=f"could not upload file: {description}",
            service=_service_of(context),
            metadata=metadata,
        )

    @parse.register(httpx.TransportError)
    def _from_transport_error(
        self, source: httpx.TransportError, context: Optional[Request] = None
    ) -> FetchError:
        return FetchError(
            code=ErrorCode.TRANSPORT_ERROR,
            message=_exception_message(source),
            service=_service_of(context),
            metadata=make_default_http_metadata(context),
        )

    @parse.register(httpx.HTTPError)
    def _from_http_error(self, source: httpx.HTTPError, context: Optional[Request] = None) -> FetchError:
        return FetchError(
            code=ErrorCode.HTTP_ERROR,
            message=_exception_message(source),
            service=_service_of(context),
            metadata=make_default_http_metadata(context),
        )


def _exception_message(exc: BaseException) -> str:
    return str(exc) or humanize_error_code(type(exc).__name__.lower())


DEFAULT_ERROR_PARSER = HTTPErrorParser()
