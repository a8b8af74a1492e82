"""Background exchanges and lazy response bodies.

An :class:`Exchange` runs one HTTP exchange on a daemon thread.  The
producer reports progress as ordered messages on a bounded queue --
``status``, then ``headers``, then zero or more ``data`` chunks, then
``done`` -- or an ``error`` message carrying the exception that ended
it.  The consumer reads them with :meth:`Exchange.receive`.

:class:`BodyStream` exposes the ``data`` messages as a forward-only
iterator of byte chunks.  Closing it (explicitly, as a context manager,
or when it is garbage collected) cancels the exchange so the producer
stops reading and releases its connection.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Iterator
from typing import Any, Callable

logger = logging.getLogger(__name__)

STATUS = "status"
HEADERS = "headers"
DATA = "data"
DONE = "done"
ERROR = "error"

Emit = Callable[[str, Any], None]
Producer = Callable[[Emit, threading.Event], None]


class ExchangeCancelled(Exception):
    """Raised inside a producer when the consumer cancelled the exchange."""


class Exchange:
    """Run *producer* on a background thread, delivering messages in order.

    Args:
        producer: Callable receiving ``(emit, cancelled)``.  It calls
            ``emit(kind, payload)`` for each message and should check
            ``cancelled`` between chunks.  Returning normally posts
            ``done``; raising posts ``error``.
        max_pending: Bound on queued messages, so a slow consumer applies
            back-pressure to the producer.
    """

    _POLL_INTERVAL = 0.05

    def __init__(self, producer: Producer, max_pending: int = 64, name: str = "supafetch-exchange"):
        self._producer = producer
        self._queue: queue.Queue[tuple[str, Any]] = queue.Queue(maxsize=max_pending)
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> Exchange:
        self._thread.start()
        return self

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _emit(self, kind: str, payload: Any) -> None:
        while not self._cancelled.is_set():
            try:
                self._queue.put((kind, payload), timeout=self._POLL_INTERVAL)
                return
            except queue.Full:
                continue
        raise ExchangeCancelled()

    def _run(self) -> None:
        try:
            self._producer(self._emit, self._cancelled)
        except ExchangeCancelled:
            logger.debug("Exchange cancelled by consumer")
            return
        except Exception as exc:  # forwarded to the consumer thread
            self._post_final(ERROR, exc)
            return
        self._post_final(DONE, None)

    def _post_final(self, kind: str, payload: Any) -> None:
        try:
            self._emit(kind, payload)
        except ExchangeCancelled:
            logger.debug("Exchange cancelled before %s was delivered", kind)

    def receive(self, timeout: float | None = None) -> tuple[str, Any]:
        """Return the next ``(kind, payload)`` message.

        Raises:
            queue.Empty: If *timeout* elapses first.
        """
        return self._queue.get(timeout=timeout)

    def expect(self, kind: str) -> Any:
        """Block for the next message and return its payload.

        An ``error`` message re-raises the producer's exception.

        Raises:
            RuntimeError: If a message other than *kind* arrives.
        """
        got, payload = self.receive()
        return self.check(kind, got, payload)

    @staticmethod
    def check(kind: str, got: str, payload: Any) -> Any:
        if got == ERROR:
            raise payload
        if got != kind:
            raise RuntimeError(f"Expected {kind!r} message, got {got!r}")
        return payload

    def cancel(self) -> None:
        """Stop the producer and discard anything still queued."""
        self._cancelled.set()
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the producer thread; return whether it finished."""
        self._thread.join(timeout)
        return not self._thread.is_alive()


class BodyStream:
    """Forward-only, single-pass iterator over a streamed response body.

    Yields ``bytes`` chunks in transmission order.  Once exhausted or
    closed, iterating again yields nothing.  A transport failure in the
    middle of the body is raised from :meth:`__next__`.
    """

    def __init__(self, exchange: Exchange):
        self._exchange = exchange
        self._finished = False

    def __iter__(self) -> Iterator[bytes]:
        return self

    def __next__(self) -> bytes:
        if self._finished:
            raise StopIteration
        kind, payload = self._exchange.receive()
        if kind == DATA:
            return payload
        self._finished = True
        if kind == ERROR:
            raise payload
        return self.__next__()

    def read(self) -> bytes:
        """Consume the remaining chunks and return them joined."""
        return b"".join(self)

    @property
    def closed(self) -> bool:
        return self._finished

    def close(self) -> None:
        """Abandon the rest of the body and cancel the producer."""
        if not self._finished:
            self._finished = True
            self._exchange.cancel()
            logger.debug("Body stream closed before end of body")

    def __enter__(self) -> BodyStream:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __del__(self) -> None:
        self.close()
