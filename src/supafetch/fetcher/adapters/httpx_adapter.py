"""Default transport adapter backed by :mod:`httpx`.

:class:`HTTPXAdapter` wraps an :class:`httpx.Client` owned by the caller,
which keeps the connection pool explicit::

    pool = httpx.Client(timeout=10.0, limits=httpx.Limits(max_connections=20))
    adapter = HTTPXAdapter(pool)
    request = Request.new(client, http_client=adapter)

Without a client the adapter opens a short-lived :class:`httpx.Client`
for each call.  The streaming and asynchronous operations run the
exchange on a background thread (see :mod:`supafetch.fetcher.adapters.stream`).
"""

from __future__ import annotations

import contextlib
import logging
import os
import queue
import threading
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, Optional

import httpx

from supafetch.fetcher.adapters.base import OnResponse, TransportAdapter, apply_on_response, prepare_upload
from supafetch.fetcher.adapters.stream import DATA, DONE, HEADERS, STATUS, BodyStream, Emit, Exchange
from supafetch.fetcher.body import StreamBody
from supafetch.fetcher.response import Response

if TYPE_CHECKING:
    from supafetch.fetcher.request import Request

logger = logging.getLogger(__name__)

DEFAULT_ERROR_WAIT = 0.3
"""Seconds :meth:`HTTPXAdapter.request_async` waits for an early failure."""


class HTTPXAdapter(TransportAdapter):
    """Transport adapter using :mod:`httpx`.

    Args:
        client: Caller-owned :class:`httpx.Client`.  It is never closed by
            the adapter.  When ``None``, a client is created per call from
            *client_options*.
        error_wait: How long :meth:`request_async` waits for an early
            failure before it starts waiting for the status line.  Slow
            backends can make this window flaky; it is not a timeout.
        max_pending: Bound on chunks buffered between a streaming producer
            and its consumer.
        **client_options: Keyword arguments for per-call clients.
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        error_wait: float = DEFAULT_ERROR_WAIT,
        max_pending: int = 64,
        **client_options: Any,
    ) -> None:
        self._client = client
        self._error_wait = error_wait
        self._max_pending = max_pending
        self._client_options = client_options

    @property
    def client(self) -> Optional[httpx.Client]:
        return self._client

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @contextlib.contextmanager
    def _open(self) -> Iterator[httpx.Client]:
        if self._client is not None:
            yield self._client
        else:
            with httpx.Client(**self._client_options) as client:
                yield client

    def _build(self, client: httpx.Client, req: Request, options: dict[str, Any]) -> httpx.Request:
        body = req.body
        content = iter(body) if isinstance(body, StreamBody) else body
        extra = {**req.options, **options}
        return client.build_request(
            req.method.value,
            req.url or "",
            params=list(req.query) or None,
            headers=list(req.headers),
            content=content,
            timeout=extra.pop("timeout", httpx.USE_CLIENT_DEFAULT),
            extensions=extra.pop("extensions", None),
        )

    def _send_options(self, req: Request, options: dict[str, Any]) -> dict[str, Any]:
        extra = {**req.options, **options}
        return {
            key: extra[key]
            for key in ("follow_redirects", "auth")
            if key in extra
        }

    def _producer(self, req: Request, options: dict[str, Any]):
        def produce(emit: Emit, cancelled: threading.Event) -> None:
            with self._open() as client:
                request = self._build(client, req, options)
                response = client.send(request, stream=True, **self._send_options(req, options))
                try:
                    emit(STATUS, response.status_code)
                    emit(HEADERS, _normalize_headers(response))
                    for chunk in response.iter_bytes():
                        if cancelled.is_set():
                            return
                        emit(DATA, chunk)
                finally:
                    response.close()

        return produce

    def _start(self, req: Request, options: dict[str, Any]) -> Exchange:
        logger.debug("Streaming %s %s", req.method.value, req.url)
        return Exchange(self._producer(req, options), max_pending=self._max_pending).start()

    # ------------------------------------------------------------------ #
    # TransportAdapter
    # ------------------------------------------------------------------ #

    def request(self, req: Request, **options: Any) -> httpx.Response:
        logger.debug("Sending %s %s", req.method.value, req.url)
        with self._open() as client:
            request = self._build(client, req, options)
            return client.send(request, **self._send_options(req, options))

    def request_async(self, req: Request, **options: Any) -> Response:
        """Run the exchange on a worker thread and collect the full response.

        Failures reported within ``error_wait`` seconds (connection refused,
        DNS errors...) are raised before waiting on the status line.
        """
        exchange = self._start(req, options)
        try:
            try:
                first = exchange.receive(timeout=self._error_wait)
            except queue.Empty:
                first = exchange.receive()
            status = Exchange.check(STATUS, *first)
            headers = exchange.expect(HEADERS)
            chunks = []
            while True:
                kind, payload = exchange.receive()
                if kind == DONE:
                    break
                chunks.append(Exchange.check(DATA, kind, payload))
        except BaseException:
            exchange.cancel()
            raise
        return Response(status=status, headers=headers, body=b"".join(chunks))

    def stream(self, req: Request, on_response: Optional[OnResponse] = None, **options: Any) -> Any:
        exchange = self._start(req, options)
        status = exchange.expect(STATUS)
        headers = exchange.expect(HEADERS)
        body = BodyStream(exchange)
        if on_response is None:
            return Response(status=status, headers=headers, body=body.read())
        with body:
            return apply_on_response(req, on_response, status, headers, body)

    def upload(self, req: Request, filepath: str | os.PathLike, **options: Any) -> httpx.Response:
        return self.request(prepare_upload(req, filepath), **options)

    def __repr__(self) -> str:
        pooled = "pooled" if self._client is not None else "per-call"
        return f"HTTPXAdapter({pooled}, error_wait={self._error_wait})"


def _normalize_headers(response: httpx.Response) -> tuple[tuple[str, str], ...]:
    return tuple((name.lower(), value) for name, value in response.headers.multi_items())
