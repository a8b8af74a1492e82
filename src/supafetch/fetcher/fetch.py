"""Fetcher operations: dispatch a request and normalize the outcome.

Each operation sends a :class:`~supafetch.fetcher.Request` through its
transport adapter and returns **either** a decoded
:class:`~supafetch.fetcher.Response` or a
:class:`~supafetch.fetcher.errors.FetchError`.  Exceptions raised by the
transport or by a streaming handler are converted by the request's error
parser rather than propagated (transport and filesystem failures get their
own codes, anything else is ``unexpected``); only invalid requests (no URL)
raise.

All operations share :func:`handle_response`:

1. a :class:`FetchError` from a lower layer is enriched with request
   metadata and returned;
2. the native response is normalized with
   :func:`~supafetch.fetcher.response.to_response`;
3. the body is decoded, whatever the status;
4. a status ``>= 400`` is turned into an error by the error parser.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional, Union

from supafetch.exceptions import InvalidRequestError
from supafetch.fetcher.adapters.base import OnResponse
from supafetch.fetcher.errors import (
    ErrorCode,
    FetchError,
    decode_failure,
    make_default_http_metadata,
)
from supafetch.fetcher.request import Request
from supafetch.fetcher.response import Response, to_response

logger = logging.getLogger(__name__)

Result = Union[Response, FetchError]


def _require_url(req: Request) -> None:
    if not isinstance(req, Request):
        raise InvalidRequestError(f"Expected a Request, got {type(req).__name__}")
    if not req.url:
        raise InvalidRequestError("Request URL is not set; call a with_<service>_url step first")


def _as_error(value: Any, req: Request) -> FetchError:
    if isinstance(value, FetchError):
        return value
    return FetchError(
        code=ErrorCode.UNEXPECTED,
        message="Error parser returned a non-error value",
        service=req.service,
        metadata={**make_default_http_metadata(req), "raw_error": value},
    )


def _convert(exc: BaseException, req: Request) -> FetchError:
    logger.debug("Converting %s raised by %r", type(exc).__name__, req.http_client)
    return _as_error(req.error_parser(exc, req), req)


def handle_response(result: Any, req: Request) -> Result:
    """Turn whatever a transport returned into a :class:`Response` or error.

    Args:
        result: A native response, a :class:`Response`, or a
            :class:`FetchError` produced by a lower layer.
        req: The request that produced *result*; used as error context.
    """
    if isinstance(result, FetchError):
        return result.with_metadata(make_default_http_metadata(req))

    try:
        response = to_response(result)
    except TypeError:
        return _as_error(req.error_parser(result, req), req)

    try:
        decoded = response.decode_body(req.body_decoder, req.body_decoder_opts)
    except Exception as exc:  # any decoder failure is reported, never raised
        if not response.is_error:
            logger.debug("Body decoder failed for %s: %s", req.url, exc)
            return decode_failure(exc, req)
        error = _as_error(req.error_parser(response, req), req)
        return error.with_metadata({"decode_error": str(exc)})

    if decoded.is_error:
        logger.debug("%s %s returned status %d", req.method.value, req.url, decoded.status)
        return _as_error(req.error_parser(decoded, req), req)
    return decoded


def request(req: Request, **options: Any) -> Result:
    """Send *req* synchronously and return the decoded response or an error."""
    _require_url(req)
    try:
        result = req.http_client.request(req, **options)
    except Exception as exc:  # converted by the error parser, never raised
        return _convert(exc, req)
    return handle_response(result, req)


def request_async(req: Request, **options: Any) -> Result:
    """Like :func:`request`, using the transport's background dispatch."""
    _require_url(req)
    try:
        result = req.http_client.request_async(req, **options)
    except Exception as exc:
        return _convert(exc, req)
    return handle_response(result, req)


def stream(req: Request, on_response: Optional[OnResponse] = None, **options: Any) -> Result:
    """Stream the response to *req*.

    Without *on_response* the body is buffered and the result is the same
    as :func:`request`.  With it, the handler receives
    ``(status, headers, body)`` where ``body`` is a lazy iterable of byte
    chunks, and whatever it returns goes through :func:`handle_response`::

        def save(status, headers, body):
            with open("export.csv", "wb") as fh:
                for chunk in body:
                    fh.write(chunk)

        fetch.stream(req.with_body_decoder(None), save)
    """
    _require_url(req)
    try:
        result = req.http_client.stream(req, on_response, **options)
    except Exception as exc:
        return _convert(exc, req)
    return handle_response(result, req)


def upload(req: Request, filepath: Union[str, os.PathLike], **options: Any) -> Result:
    """Send the file at *filepath* as the body of *req*.

    A missing or unreadable file yields a :class:`FetchError` whose code
    is the errno name (``"enoent"``) and whose message names the failed
    action.
    """
    _require_url(req)
    try:
        result = req.http_client.upload(req, filepath, **options)
    except Exception as exc:
        return _convert(exc, req)
    return handle_response(result, req)


def unwrap(result: Result) -> Response:
    """Return *result* if it is a :class:`Response`; raise it if it is an error."""
    if isinstance(result, FetchError):
        raise result
    return result
