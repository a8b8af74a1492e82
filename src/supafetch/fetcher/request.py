"""Immutable, chainable HTTP request builder.

A :class:`Request` describes one pending call to a Supabase service.  It
is created from a :class:`~supafetch.models.Client` with
:meth:`Request.new` and refined by ``with_*`` steps.  Every step returns
a **new** request; earlier values are never modified, so a partially
built request can be shared and extended safely::

    base = Request.new(client).with_storage_url("/object/avatars")
    listing = base.with_method("POST").with_body({"prefix": "users/"})
    download = base.with_storage_url("/object/avatars/me.png")

Builder arguments are validated eagerly; a bad method, path, decoder or
parser raises :class:`~supafetch.exceptions.InvalidRequestError` instead
of producing a malformed request.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional, Union
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, TypeAdapter

from supafetch.exceptions import InvalidRequestError
from supafetch.fetcher.adapters.base import TransportAdapter
from supafetch.fetcher.adapters.httpx_adapter import HTTPXAdapter
from supafetch.fetcher.body import StreamBody
from supafetch.fetcher.decoder import JSONDecoder
from supafetch.fetcher.errors import DEFAULT_ERROR_PARSER
from supafetch.fetcher.headers import Pairs, PairsInput, find_value, merge_headers, merge_query, without
from supafetch.models import Client, HTTPMethod, Service, join_url

Decoder = Callable[..., Any]
Parser = Callable[..., Any]


Body = Union[bytes, StreamBody, None]

DEFAULT_DECODER = JSONDecoder()
DEFAULT_HTTP_CLIENT = HTTPXAdapter(httpx.Client())
"""Process-wide adapter used when a request names none; one shared connection pool."""

_JSON_VALUES: TypeAdapter[Any] = TypeAdapter(Any)


def _jsonable(value: Any) -> Any:
    return _JSON_VALUES.dump_python(value, mode="json")


def _encode_body(body: Any) -> Body:
    if body is None or isinstance(body, StreamBody):
        return body
    if isinstance(body, BaseModel):
        return body.model_dump_json(by_alias=True).encode()
    if isinstance(body, (Mapping, list, tuple)):
        try:
            return json.dumps(body, separators=(",", ":"), default=_jsonable).encode()
        except (TypeError, ValueError) as exc:
            raise InvalidRequestError(f"Request body is not JSON serializable: {exc}") from exc
    if isinstance(body, str):
        return body.encode()
    if isinstance(body, (bytes, bytearray, memoryview)):
        return bytes(body)
    raise InvalidRequestError(f"Unsupported request body type: {type(body).__name__}")


def _check_path(path: Any) -> str:
    if not isinstance(path, str):
        raise InvalidRequestError(f"Service path must be a string, got {type(path).__name__}")
    if "://" in path:
        raise InvalidRequestError(f"Service path must be relative, got {path!r}")
    if not path.isprintable():
        raise InvalidRequestError(f"Service path contains non-printable characters: {path!r}")
    try:
        httpx.URL(path)
    except httpx.InvalidURL as exc:
        raise InvalidRequestError(f"Invalid service path {path!r}: {exc}") from exc
    return path


@dataclass(frozen=True, repr=False)
class Request:
    """One pending HTTP call to a Supabase service.

    Attributes:
        client: The client configuration the request was created from.
        url: Target URL; set through a ``with_<service>_url`` step.
        service: The service the URL belongs to.
        method: HTTP method, ``GET`` unless changed.
        headers: ``(name, value)`` pairs; names are unique ignoring case.
        query: Query-string ``(name, value)`` pairs.
        body: ``None``, encoded bytes, or a :class:`StreamBody`.
        options: Per-request transport options (e.g. ``timeout``).
        body_decoder: Decoder run on the response body, or ``None``.
        body_decoder_opts: Options passed to the decoder.
        error_parser: Parser turning failures into
            :class:`~supafetch.fetcher.errors.FetchError` values.
        http_client: The transport adapter that performs the call.
    """

    client: Client
    url: Optional[str] = None
    service: Optional[Service] = None
    method: HTTPMethod = HTTPMethod.GET
    headers: Pairs = ()
    query: Pairs = ()
    body: Body = None
    options: Mapping[str, Any] = field(default_factory=dict)
    body_decoder: Optional[Decoder] = DEFAULT_DECODER
    body_decoder_opts: Mapping[str, Any] = field(default_factory=dict)
    error_parser: Parser = DEFAULT_ERROR_PARSER
    http_client: TransportAdapter = DEFAULT_HTTP_CLIENT

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #

    @classmethod
    def new(cls, client: Client, http_client: Optional[TransportAdapter] = None) -> Request:
        """Start a request from *client*.

        Seeds the headers with the client's global headers plus
        ``authorization: Bearer <access_token>``.

        Without *http_client* the request uses :data:`DEFAULT_HTTP_CLIENT`,
        an :class:`HTTPXAdapter` over one :class:`httpx.Client` shared by the
        whole process, so connections are reused across requests.  Pass an
        adapter over your own client to control pool limits and lifetime.
        """
        if not isinstance(client, Client):
            raise InvalidRequestError(f"Expected a Client, got {type(client).__name__}")
        headers = merge_headers(
            client.global_.headers,
            {"authorization": f"Bearer {client.access_token}"},
        )
        request = cls(client=client, headers=headers)
        if http_client is not None:
            request = request.with_http_client(http_client)
        return request

    # ------------------------------------------------------------------ #
    # Service URLs
    # ------------------------------------------------------------------ #

    def with_service_url(self, service: Union[Service, str], path: str) -> Request:
        """Point the request at *path* below *service*'s base URL.

        Overwrites any URL set before and records the service, which later
        drives error metadata.
        """
        try:
            service = Service(service)
        except ValueError:
            raise InvalidRequestError(f"Unknown service: {service!r}") from None
        path = _check_path(path)
        url = join_url(self.client.service_url(service), path)
        return replace(self, url=url, service=service)

    def with_auth_url(self, path: str) -> Request:
        """Target *path* on the auth service."""
        return self.with_service_url(Service.AUTH, path)

    def with_functions_url(self, path: str) -> Request:
        """Target *path* on the edge functions service."""
        return self.with_service_url(Service.FUNCTIONS, path)

    def with_storage_url(self, path: str) -> Request:
        """Target *path* on the storage service."""
        return self.with_service_url(Service.STORAGE, path)

    def with_realtime_url(self, path: str) -> Request:
        """Target *path* on the realtime service."""
        return self.with_service_url(Service.REALTIME, path)

    def with_database_url(self, path: str) -> Request:
        """Target *path* on the database (PostgREST) service."""
        return self.with_service_url(Service.DATABASE, path)

    # ------------------------------------------------------------------ #
    # Method, headers, query, body
    # ------------------------------------------------------------------ #

    def with_method(self, method: Union[HTTPMethod, str] = HTTPMethod.GET) -> Request:
        """Set the HTTP method; one of GET, POST, PUT, PATCH, DELETE, HEAD."""
        if isinstance(method, str):
            try:
                method = HTTPMethod(method.upper())
            except ValueError:
                raise InvalidRequestError(f"Unsupported HTTP method: {method!r}") from None
        else:
            raise InvalidRequestError(f"Unsupported HTTP method: {method!r}")
        return replace(self, method=method)

    def with_headers(self, headers: PairsInput) -> Request:
        """Merge *headers* into the request; new values win, ``None`` deletes."""
        return replace(self, headers=merge_headers(self.headers, headers))

    def with_query(self, query: PairsInput) -> Request:
        """Merge *query* parameters into the request; new values win on the same key."""
        return replace(self, query=merge_query(self.query, query))

    def with_body(self, body: Any = None) -> Request:
        """Set the request body.

        Mappings, lists and pydantic models are JSON-encoded right away;
        strings are UTF-8 encoded; bytes are kept; a :class:`StreamBody`
        is stored as-is and read when sending.  ``None`` clears the body.
        """
        return replace(self, body=_encode_body(body))

    def with_options(self, options: Mapping[str, Any]) -> Request:
        """Replace the transport options passed along with this request."""
        if not isinstance(options, Mapping):
            raise InvalidRequestError("Request options must be a mapping")
        return replace(self, options=dict(options))

    # ------------------------------------------------------------------ #
    # Pipeline collaborators
    # ------------------------------------------------------------------ #

    def with_body_decoder(
        self,
        decoder: Optional[Decoder],
        options: Optional[Mapping[str, Any]] = None,
    ) -> Request:
        """Attach the decoder run on the response body.

        *decoder* is a :class:`~supafetch.fetcher.decoder.BodyDecoder` or any
        callable taking ``(response, options)``; ``None`` keeps the raw body.
        """
        if decoder is not None and not callable(decoder):
            raise InvalidRequestError(f"Body decoder must be callable, got {decoder!r}")
        if options is not None and not isinstance(options, Mapping):
            raise InvalidRequestError("Body decoder options must be a mapping")
        return replace(self, body_decoder=decoder, body_decoder_opts=dict(options or {}))

    def with_error_parser(self, parser: Parser) -> Request:
        """Attach the error parser; it replaces the default dispatch entirely."""
        if parser is None or not callable(parser):
            raise InvalidRequestError(f"Error parser must be callable, got {parser!r}")
        return replace(self, error_parser=parser)

    def with_http_client(self, adapter: TransportAdapter) -> Request:
        """Dispatch this request through *adapter*."""
        if not isinstance(adapter, TransportAdapter):
            raise InvalidRequestError(f"HTTP client must be a TransportAdapter, got {adapter!r}")
        return replace(self, http_client=adapter)

    # ------------------------------------------------------------------ #
    # Lookups and incremental merges
    # ------------------------------------------------------------------ #

    def get_query_param(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Return the query parameter *key*, or *default*."""
        return find_value(self.query, key, default)

    def get_header(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Return the request header *key* (any casing), or *default*."""
        return find_value(self.headers, key, default, case_insensitive=True)

    def merge_query_param(self, key: str, value: str, joiner: str = ",") -> Request:
        """Append *value* to the query parameter *key*, joined with *joiner*.

        Acts like :meth:`with_query` when *key* is not set yet.
        """
        current = self.get_query_param(key)
        if current is not None:
            value = joiner.join([current, value])
        return self.with_query({key: value})

    def merge_req_header(self, key: str, value: str, joiner: str = ",") -> Request:
        """Append *value* to the request header *key*, joined with *joiner*.

        Acts like :meth:`with_headers` when *key* is not set yet.
        """
        current = self.get_header(key)
        if current is not None:
            value = joiner.join([current, value])
        return self.with_headers({key: value})

    # ------------------------------------------------------------------ #
    # Rendering
    # ------------------------------------------------------------------ #

    def full_url(self) -> Optional[str]:
        """Return the URL with the encoded query string appended."""
        if self.url is None or not self.query:
            return self.url
        separator = "&" if "?" in self.url else "?"
        return f"{self.url}{separator}{urlencode(self.query)}"

    def __repr__(self) -> str:
        base_url = self.client.service_url(self.service) if self.service else ""
        path = (self.url or "").replace(base_url, "", 1) if base_url else self.url
        headers = ", ".join(f"{k}={v}" for k, v in without(self.headers, "authorization"))
        service = self.service.value if self.service else None
        return (
            f"Request(method={self.method.value!r}, path={path!r}, service={service!r}, "
            f"headers={headers!r}, body_decoder={self.body_decoder!r}, "
            f"error_parser={self.error_parser!r})"
        )
