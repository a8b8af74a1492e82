"""HTTP fetcher stack shared by the Supabase service integrations.

Build a :class:`Request` from a client, then dispatch it with one of the
operations in :mod:`supafetch.fetcher.fetch`::

    from supafetch.fetcher import FetchError, Request, fetch

    req = Request.new(client).with_storage_url("/bucket").with_method("GET")
    result = fetch.request(req)
    if isinstance(result, FetchError):
        ...

Subpackages:
    adapters: Transport adapter interface and the httpx backend.
"""

from supafetch.fetcher.headers import merge_headers, merge_query
from supafetch.fetcher.response import Response, to_response
from supafetch.fetcher.errors import ErrorCode, ErrorParser, FetchError, HTTPErrorParser, parse_status
from supafetch.fetcher.decoder import BodyDecoder, JSONDecoder, TextDecoder
from supafetch.fetcher.body import StreamBody
from supafetch.fetcher.adapters import HTTPXAdapter, TransportAdapter
from supafetch.fetcher.request import Request
from supafetch.fetcher import fetch

__all__ = [
    "BodyDecoder",
    "ErrorCode",
    "ErrorParser",
    "FetchError",
    "HTTPErrorParser",
    "HTTPXAdapter",
    "JSONDecoder",
    "Request",
    "Response",
    "StreamBody",
    "TextDecoder",
    "TransportAdapter",
    "fetch",
    "merge_headers",
    "merge_query",
    "parse_status",
    "to_response",
]
