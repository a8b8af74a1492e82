"""Shared test fixtures for supafetch.

Provides a ready-made client, transport adapters backed by
``httpx.MockTransport``, isolated configuration environments, output
state management, and a CLI runner.  These fixtures are automatically
discovered by pytest and available to all test modules.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from supafetch.client import init_client
from supafetch.fetcher import HTTPXAdapter, Request
from supafetch.models import Client
from supafetch.output import OutputFormat, OutputManager, reset_output, set_output

BASE_URL = "http://127.0.0.1:54321"
API_KEY = "anon-key"

Handler = Callable[[httpx.Request], httpx.Response]


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test, the cached references become stale once the test finishes.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Client and request fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def client() -> Client:
    """A client for a local Supabase stack."""
    return init_client(BASE_URL, API_KEY)


@pytest.fixture
def request_for(client: Client) -> Callable[..., Request]:
    """Build a request for *client* dispatched through a given adapter."""

    def _make(adapter: Any = None) -> Request:
        return Request.new(client, http_client=adapter)

    return _make


@pytest.fixture
def mock_adapter() -> Callable[[Handler], HTTPXAdapter]:
    """Build an :class:`HTTPXAdapter` whose pooled client answers with *handler*.

    Every recorded ``httpx.Request`` is appended to ``adapter.sent``.
    """
    clients: list[httpx.Client] = []

    def _make(handler: Handler, **kwargs: Any) -> HTTPXAdapter:
        sent: list[httpx.Request] = []

        def _recording(request: httpx.Request) -> httpx.Response:
            request.read()
            sent.append(request)
            return handler(request)

        pool = httpx.Client(transport=httpx.MockTransport(_recording))
        clients.append(pool)
        adapter = HTTPXAdapter(pool, **kwargs)
        adapter.sent = sent  # type: ignore[attr-defined]
        return adapter

    yield _make
    for pool in clients:
        pool.close()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points XDG_CONFIG_HOME at ``tmp_path/config``, forces XDG path
    resolution, clears all SUPABASE_* environment variables and changes
    the working directory to ``tmp_path``.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setattr("supafetch.config._is_xdg_platform", lambda: True)
    for var in ["SUPABASE_URL", "SUPABASE_KEY", "SUPABASE_ACCESS_TOKEN"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager for the test."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
