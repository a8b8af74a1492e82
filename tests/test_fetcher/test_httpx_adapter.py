"""Tests for supafetch.fetcher.adapters.httpx_adapter using httpx.MockTransport."""

from __future__ import annotations

import json
import threading

import httpx
import pytest

from supafetch.fetcher import ErrorCode, FetchError, HTTPXAdapter, Request, Response, fetch
from supafetch.fetcher.adapters.stream import BodyStream


def _json(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"data": "ok"})


class TestRequest:
    def test_sends_method_url_headers_query_and_body(self, client, mock_adapter) -> None:
        adapter = mock_adapter(_json)
        req = (
            Request.new(client, http_client=adapter)
            .with_functions_url("/hello")
            .with_method("POST")
            .with_query({"dry_run": "true"})
            .with_headers({"content-type": "application/json"})
            .with_body({"name": "supa"})
        )
        result = fetch.request(req)

        assert result.body == {"data": "ok"}
        sent = adapter.sent[0]
        assert sent.method == "POST"
        assert str(sent.url) == f"{client.functions_url}/hello?dry_run=true"
        assert sent.headers["authorization"] == "Bearer anon-key"
        assert sent.headers["x-client-info"].startswith("supafetch-python/")
        assert json.loads(sent.content) == {"name": "supa"}

    def test_error_status(self, client, mock_adapter) -> None:
        adapter = mock_adapter(lambda r: httpx.Response(500, json={"error": "Internal Server Error"}))
        result = fetch.request(Request.new(client, http_client=adapter).with_database_url("/films"))
        assert result.code is ErrorCode.SERVER_ERROR

    def test_response_headers_lowercased(self, client, mock_adapter) -> None:
        adapter = mock_adapter(lambda r: httpx.Response(200, headers={"Content-Range": "0-9/100"}, json=[]))
        result = fetch.request(Request.new(client, http_client=adapter).with_database_url("/films"))
        assert result.get_header("content-range") == "0-9/100"

    def test_timeout_becomes_transport_error(self, client, mock_adapter) -> None:
        def handler(request):
            raise httpx.ConnectTimeout("timeout", request=request)

        adapter = mock_adapter(handler)
        result = fetch.request(Request.new(client, http_client=adapter).with_auth_url("/token"))
        assert isinstance(result, FetchError)
        assert result.code is ErrorCode.TRANSPORT_ERROR
        assert result.message == "timeout"
        assert result.metadata["path"] == "/token"

    def test_per_call_client_options(self) -> None:
        adapter = HTTPXAdapter(timeout=5.0)
        assert adapter.client is None
        assert "per-call" in repr(adapter)


class TestRequestAsync:
    def test_collects_full_body(self, client, mock_adapter) -> None:
        adapter = mock_adapter(lambda r: httpx.Response(200, content=b'{"data": "ok"}'))
        result = fetch.request_async(Request.new(client, http_client=adapter).with_database_url("/films"))
        assert isinstance(result, Response)
        assert result.body == {"data": "ok"}

    def test_early_failure(self, client, mock_adapter) -> None:
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        adapter = mock_adapter(handler)
        result = fetch.request_async(Request.new(client, http_client=adapter).with_database_url("/films"))
        assert result.code is ErrorCode.TRANSPORT_ERROR
        assert result.message == "connection refused"

    def test_failure_after_error_wait(self, client, mock_adapter) -> None:
        release = threading.Event()

        def handler(request):
            release.wait(2)
            raise httpx.ReadTimeout("slow", request=request)

        adapter = mock_adapter(handler, error_wait=0.01)
        timer = threading.Timer(0.05, release.set)
        timer.start()
        result = fetch.request_async(Request.new(client, http_client=adapter).with_database_url("/films"))
        timer.join()
        assert result.code is ErrorCode.TRANSPORT_ERROR


class TestStream:
    def test_without_handler_buffers_body(self, client, mock_adapter) -> None:
        adapter = mock_adapter(lambda r: httpx.Response(200, content=b'[{"id": 1}]'))
        result = fetch.stream(Request.new(client, http_client=adapter).with_database_url("/films"))
        assert result.body == [{"id": 1}]

    def test_handler_receives_lazy_body(self, client, mock_adapter) -> None:
        adapter = mock_adapter(
            lambda r: httpx.Response(200, headers={"Content-Type": "text/csv"}, content=b"id,title\n1,Alien\n")
        )
        seen = {}

        def on_response(status, headers, body):
            seen["status"] = status
            seen["headers"] = dict(headers)
            seen["lazy"] = isinstance(body, BodyStream)
            seen["body"] = b"".join(body)

        req = Request.new(client, http_client=adapter).with_storage_url("/object/export.csv").with_body_decoder(None)
        result = fetch.stream(req, on_response)

        assert result.status == 200
        assert result.body is None
        assert seen["status"] == 200
        assert seen["headers"]["content-type"] == "text/csv"
        assert seen["lazy"] is True
        assert seen["body"] == b"id,title\n1,Alien\n"

    def test_raising_handler_is_returned_as_error(self, client, mock_adapter) -> None:
        adapter = mock_adapter(lambda r: httpx.Response(200, content=b"id,title\n"))

        def on_response(status, headers, body):
            raise ValueError("boom")

        req = Request.new(client, http_client=adapter).with_storage_url("/object/export.csv")
        result = fetch.stream(req, on_response)

        assert isinstance(result, FetchError)
        assert result.code is ErrorCode.UNEXPECTED
        assert str(result.metadata["raw_error"]) == "boom"
        assert result.metadata["path"] == "/object/export.csv"

    def test_abandoned_body_cancels_producer(self, client, mock_adapter) -> None:
        chunks = [b"x" * 10 for _ in range(500)]
        adapter = mock_adapter(lambda r: httpx.Response(200, content=iter(chunks)), max_pending=2)
        captured = {}

        def on_response(status, headers, body):
            captured["body"] = body
            captured["first"] = next(body)

        req = Request.new(client, http_client=adapter).with_storage_url("/object/big").with_body_decoder(None)
        fetch.stream(req, on_response)

        body = captured["body"]
        assert captured["first"] == b"x" * 10
        assert body.closed
        assert body._exchange.cancelled
        assert body._exchange.join(timeout=2)
        assert list(body) == []

    def test_connect_failure(self, client, mock_adapter) -> None:
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        adapter = mock_adapter(handler)
        result = fetch.stream(Request.new(client, http_client=adapter).with_database_url("/films"), lambda *a: None)
        assert result.code is ErrorCode.TRANSPORT_ERROR


class TestUpload:
    def test_sends_file_with_headers(self, client, mock_adapter, tmp_path) -> None:
        adapter = mock_adapter(lambda r: httpx.Response(200, json={"Key": "avatars/notes.txt"}))
        path = tmp_path / "notes.txt"
        path.write_text("hello " * 1000)

        req = Request.new(client, http_client=adapter).with_storage_url("/object/avatars/notes.txt").with_method("POST")
        result = fetch.upload(req, path)

        assert result.body == {"Key": "avatars/notes.txt"}
        sent = adapter.sent[0]
        assert sent.content == path.read_bytes()
        assert sent.headers["content-length"] == str(path.stat().st_size)
        assert sent.headers["content-type"] == "text/plain"

    def test_missing_file(self, client, mock_adapter, tmp_path) -> None:
        adapter = mock_adapter(_json)
        req = Request.new(client, http_client=adapter).with_storage_url("/object/a")
        result = fetch.upload(req, tmp_path / "missing.bin")
        assert result.code == "enoent"
        assert "could not read file stats" in result.message
        assert adapter.sent == []
