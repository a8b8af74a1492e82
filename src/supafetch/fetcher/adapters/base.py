"""Transport adapter interface.

A transport adapter performs the network I/O for a
:class:`~supafetch.fetcher.Request`.  Only :meth:`TransportAdapter.request`
is mandatory; the other operations return a ``non_implemented_function``
:class:`~supafetch.fetcher.errors.FetchError` unless overridden, so a
minimal backend is still a valid (if limited) configuration.

Adapters return whatever native response their HTTP library produces
(the fetcher normalizes it with
:func:`~supafetch.fetcher.response.to_response`), or a
:class:`~supafetch.fetcher.errors.FetchError`.  Transport failures are
raised as the library's own exceptions; local file failures as
:class:`~supafetch.exceptions.FileError`.
"""

from __future__ import annotations

import logging
import mimetypes
import os
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Optional

from supafetch.exceptions import FileError
from supafetch.fetcher.body import StreamBody, iter_file
from supafetch.fetcher.errors import ErrorCode, FetchError
from supafetch.fetcher.headers import Pairs
from supafetch.fetcher.response import Response, to_response

if TYPE_CHECKING:
    from supafetch.fetcher.request import Request

logger = logging.getLogger(__name__)

OnResponse = Callable[[int, Pairs, Any], Any]
"""Handler for partially consumed responses: ``(status, headers, body) -> result``."""


def not_implemented_error(adapter: Any, function: str) -> FetchError:
    """Build the error returned when *adapter* lacks an optional operation."""
    name = type(adapter).__name__
    return FetchError(
        code=ErrorCode.NON_IMPLEMENTED_FUNCTION,
        message=f"{name} doesn't implement {function}",
        metadata={"function": function, "http_client": name},
    )


class TransportAdapter(ABC):
    """Base class for HTTP backends used by the fetcher."""

    @abstractmethod
    def request(self, req: Request, **options: Any) -> Any:
        """Send *req* and return the complete native response."""

    def request_async(self, req: Request, **options: Any) -> Any:
        """Send *req* on a background worker and wait for the full response."""
        return not_implemented_error(self, "request_async")

    def stream(self, req: Request, on_response: Optional[OnResponse] = None, **options: Any) -> Any:
        """Stream the response to *req*.

        Without *on_response* the body is consumed into one response.  With
        it, the handler is called with ``(status, headers, body)`` where
        ``body`` is a lazy iterable of byte chunks; see
        :func:`apply_on_response` for the handler's return contract.
        """
        return not_implemented_error(self, "stream")

    def upload(self, req: Request, filepath: str | os.PathLike, **options: Any) -> Any:
        """Send the file at *filepath* as the body of *req*."""
        return not_implemented_error(self, "upload")

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def prepare_upload(req: Request, filepath: str | os.PathLike) -> Request:
    """Attach the file at *filepath* to *req* as a streamed body.

    Sets ``content-type`` from the file name and ``content-length`` from
    the file size; the contents are read in chunks only when sent.

    Raises:
        FileError: If the file cannot be stat'ed (missing, no permission...).
    """
    try:
        size = os.stat(filepath).st_size
    except OSError as exc:
        raise FileError.from_os_error(exc, "read file stats", filepath) from exc
    content_type = mimetypes.guess_type(os.fspath(filepath))[0] or "application/octet-stream"
    logger.debug("Uploading %s (%s, %d bytes)", filepath, content_type, size)
    return req.with_body(StreamBody(iter_file(filepath))).with_headers(
        {"content-length": str(size), "content-type": content_type}
    )


def apply_on_response(
    req: Request,
    on_response: OnResponse,
    status: int,
    headers: Pairs,
    body: Any,
) -> Any:
    """Invoke a streaming handler and normalize what it returns.

    * ``None`` -- success; a response with the received status and
      headers and no body.
    * a :class:`~supafetch.fetcher.errors.FetchError` -- returned as-is.
    * a :class:`~supafetch.fetcher.response.Response` or any native
      response :func:`~supafetch.fetcher.response.to_response` understands
      -- success with that response.
    * anything else -- an ``unexpected`` error carrying the raw value.
    """
    result = on_response(status, headers, body)
    if result is None:
        return Response(status=status, headers=headers, body=None)
    if isinstance(result, FetchError):
        return result
    try:
        return to_response(result)
    except TypeError:
        return FetchError(
            code=ErrorCode.UNEXPECTED,
            message="Stream handler returned an unexpected value",
            service=req.service,
            metadata={"raw_error": result},
        )
