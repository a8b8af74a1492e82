"""Tests for supafetch.fetcher.adapters.stream -- background exchanges and lazy bodies."""

from __future__ import annotations

import gc
import queue
import threading

import pytest

from supafetch.fetcher.adapters.stream import DATA, DONE, ERROR, HEADERS, STATUS, BodyStream, Exchange


def _script(*chunks, status=200, headers=(), fail=None):
    def produce(emit, cancelled):
        emit(STATUS, status)
        emit(HEADERS, headers)
        for chunk in chunks:
            emit(DATA, chunk)
        if fail is not None:
            raise fail

    return produce


class TestExchange:
    def test_messages_arrive_in_order(self) -> None:
        exchange = Exchange(_script(b"a", b"b", headers=(("x", "1"),))).start()
        received = [exchange.receive(timeout=2) for _ in range(5)]
        assert received == [
            (STATUS, 200),
            (HEADERS, (("x", "1"),)),
            (DATA, b"a"),
            (DATA, b"b"),
            (DONE, None),
        ]

    def test_producer_exception_is_forwarded(self) -> None:
        exchange = Exchange(_script(fail=ConnectionResetError("reset"))).start()
        exchange.expect(STATUS)
        exchange.expect(HEADERS)
        kind, payload = exchange.receive(timeout=2)
        assert kind == ERROR
        assert isinstance(payload, ConnectionResetError)

    def test_expect_reraises_error(self) -> None:
        def produce(emit, cancelled):
            raise TimeoutError("no status")

        exchange = Exchange(produce).start()
        with pytest.raises(TimeoutError, match="no status"):
            exchange.expect(STATUS)

    def test_expect_rejects_out_of_order_message(self) -> None:
        exchange = Exchange(_script()).start()
        with pytest.raises(RuntimeError, match="Expected 'headers'"):
            exchange.expect(HEADERS)

    def test_receive_timeout(self) -> None:
        gate = threading.Event()

        def produce(emit, cancelled):
            gate.wait(2)

        exchange = Exchange(produce).start()
        with pytest.raises(queue.Empty):
            exchange.receive(timeout=0.01)
        gate.set()
        assert exchange.join(timeout=2)

    def test_cancel_unblocks_producer(self) -> None:
        def produce(emit, cancelled):
            while True:
                emit(DATA, b"x")

        exchange = Exchange(produce, max_pending=1).start()
        exchange.cancel()
        assert exchange.cancelled
        assert exchange.join(timeout=2)


class TestBodyStream:
    def _body(self, *chunks, fail=None) -> BodyStream:
        exchange = Exchange(_script(*chunks, fail=fail)).start()
        exchange.expect(STATUS)
        exchange.expect(HEADERS)
        return BodyStream(exchange)

    def test_iterates_chunks_once(self) -> None:
        body = self._body(b"chunk1", b"chunk2")
        assert list(body) == [b"chunk1", b"chunk2"]
        assert body.closed
        assert list(body) == []

    def test_read_joins(self) -> None:
        assert self._body(b"a", b"b", b"c").read() == b"abc"

    def test_mid_body_failure_raises(self) -> None:
        body = self._body(b"a", fail=ConnectionResetError("reset"))
        assert next(body) == b"a"
        with pytest.raises(ConnectionResetError):
            next(body)

    def test_context_manager_cancels(self) -> None:
        exchange = Exchange(_script(*[b"x"] * 100), max_pending=1).start()
        exchange.expect(STATUS)
        exchange.expect(HEADERS)
        with BodyStream(exchange) as body:
            next(body)
        assert exchange.cancelled
        assert exchange.join(timeout=2)

    def test_garbage_collection_cancels(self) -> None:
        exchange = Exchange(_script(*[b"x"] * 100), max_pending=1).start()
        exchange.expect(STATUS)
        exchange.expect(HEADERS)
        body = BodyStream(exchange)
        next(body)
        del body
        gc.collect()
        assert exchange.cancelled
        assert exchange.join(timeout=2)
