"""Typer application and CLI entry point for supafetch.

The ``supafetch`` command sends one request to a Supabase service using
the same fetcher stack as the library::

    supafetch request database /films --query select=*
    supafetch request functions /hello -X POST --body '{"name": "x"}'
    supafetch stream storage /object/public/avatars/me.png -o me.png
    supafetch upload storage /object/avatars/me.png ./me.png
    supafetch config show

Connection settings come from :mod:`supafetch.config`; the global
``--url``, ``--key`` and ``--access-token`` options take precedence over
everything else.  A failed request prints its error code and message on
stderr and exits with :attr:`~supafetch.fetcher.errors.FetchError.exit_code`.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``.
"""

from __future__ import annotations

import contextlib
import json
import signal
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Optional

import typer

from supafetch import __version__
from supafetch.exceptions import InvalidRequestError, SupafetchError
from supafetch.exit_codes import EXIT_GENERIC_FAILURE
from supafetch.fetcher import FetchError, HTTPXAdapter, Request, Response, fetch
from supafetch.models import Service

app = typer.Typer(
    name="supafetch",
    help="Send requests to Supabase services.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)
config_app = typer.Typer(no_args_is_help=True)
app.add_typer(config_app, name="config", help="Inspect the resolved configuration.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"supafetch {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit."
    ),
    url: Optional[str] = typer.Option(None, "--url", help="Project URL (overrides SUPABASE_URL)."),
    key: Optional[str] = typer.Option(None, "--key", help="API key (overrides SUPABASE_KEY)."),
    access_token: Optional[str] = typer.Option(
        None, "--access-token", help="Bearer token (defaults to the API key)."
    ),
    timeout: float = typer.Option(10.0, "--timeout", help="Request timeout in seconds."),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~supafetch.output.OutputManager` and stores
    connection overrides in ``ctx.obj``.  Callers embedding the app may
    pre-seed ``ctx.obj["http_client"]`` with a transport adapter.
    """
    from supafetch.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    output.configure_logging()
    set_output(output)

    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {"url": url, "key": key, "access_token": access_token}
    ctx.obj["timeout"] = timeout


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


@contextlib.contextmanager
def _handle_errors() -> Iterator[None]:
    """Turn raised :class:`SupafetchError` values into an error line and exit code."""
    from supafetch.output import error, get_output

    try:
        yield
    except FetchError as exc:
        get_output().fetch_error(exc)
        raise typer.Exit(code=exc.exit_code) from None
    except SupafetchError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _split_pairs(values: Optional[list[str]], separator: str, label: str) -> list[tuple[str, str]]:
    pairs = []
    for item in values or []:
        name, sep, value = item.partition(separator)
        if not sep or not name.strip():
            raise InvalidRequestError(f"Invalid {label} {item!r}; expected NAME{separator}VALUE")
        pairs.append((name.strip(), value.strip()))
    return pairs


def _parse_body(body: str) -> Any:
    """Parse *body* as JSON if possible, returning the raw string on failure."""
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        return body


def _base_request(ctx: typer.Context, service: Service, path: str) -> Request:
    from supafetch.config import load_client

    obj = ctx.obj or {}
    client = load_client(**obj.get("overrides", {}))
    adapter = obj.get("http_client") or HTTPXAdapter(timeout=obj.get("timeout", 10.0))
    return Request.new(client, http_client=adapter).with_service_url(service, path)


def _finish(result: Any) -> Response:
    from supafetch.output import debug

    response = fetch.unwrap(result)
    debug(f"HTTP {response.status}")
    return response


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


@app.command("request")
def request_command(
    ctx: typer.Context,
    service: Service = typer.Argument(help="Target service."),
    path: str = typer.Argument(help="Path below the service base URL, e.g. /films."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    header: Optional[list[str]] = typer.Option(None, "--header", "-H", help="Header as NAME:VALUE."),
    query: Optional[list[str]] = typer.Option(None, "--query", help="Query parameter as NAME=VALUE."),
    body: Optional[str] = typer.Option(None, "--body", "-d", help="Request body; JSON is sent as JSON."),
    raw: bool = typer.Option(False, "--raw", help="Print the body without decoding it."),
) -> None:
    """Send one request and print the response body.

    Example::

        supafetch request database /films --query select=title --query limit=5
        supafetch request auth /user -H "apikey:<key>" --raw
    """
    from supafetch.output import format_response, get_output

    with _handle_errors():
        req = (
            _base_request(ctx, service, path)
            .with_method(method)
            .with_headers(_split_pairs(header, ":", "header"))
            .with_query(_split_pairs(query, "=", "query parameter"))
        )
        if body is not None:
            parsed = _parse_body(body)
            structured = isinstance(parsed, (dict, list))
            req = req.with_body(parsed if structured else body)
            if structured and req.get_header("content-type") is None:
                req = req.with_headers({"content-type": "application/json"})
        if raw:
            req = req.with_body_decoder(None)

        response = _finish(fetch.request(req))
        if raw and isinstance(response.body, bytes):
            get_output().write_bytes(response.body)
        else:
            format_response(response.body)


@app.command("stream")
def stream_command(
    ctx: typer.Context,
    service: Service = typer.Argument(help="Target service."),
    path: str = typer.Argument(help="Path below the service base URL."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the body to this file."),
) -> None:
    """Stream a response body to stdout or a file without buffering it.

    Example::

        supafetch stream storage /object/public/exports/films.csv -o films.csv
    """
    from supafetch.output import get_output, info

    written = 0

    def on_response(status: int, headers: Any, chunks: Any) -> Optional[Response]:
        nonlocal written
        if status >= 400:
            return Response(status=status, headers=headers, body=b"".join(chunks))
        if output is None:
            for chunk in chunks:
                get_output().write_bytes(chunk)
                written += len(chunk)
            return None
        with open(output, "wb") as fh:
            for chunk in chunks:
                fh.write(chunk)
                written += len(chunk)
        return None

    with _handle_errors():
        req = _base_request(ctx, service, path).with_body_decoder(None)
        _finish(fetch.stream(req, on_response))
        if output is not None:
            info(f"Wrote {written} bytes to {output}")


@app.command("upload")
def upload_command(
    ctx: typer.Context,
    service: Service = typer.Argument(help="Target service."),
    path: str = typer.Argument(help="Path below the service base URL."),
    file: Path = typer.Argument(help="File to send as the request body."),
    method: str = typer.Option("POST", "--method", "-X", help="HTTP method."),
    header: Optional[list[str]] = typer.Option(None, "--header", "-H", help="Header as NAME:VALUE."),
) -> None:
    """Upload a file as the request body.

    The content type is guessed from the file name.

    Example::

        supafetch upload storage /object/avatars/me.png ./me.png -H x-upsert:true
    """
    from supafetch.output import format_response, success

    with _handle_errors():
        req = (
            _base_request(ctx, service, path)
            .with_method(method)
            .with_headers(_split_pairs(header, ":", "header"))
        )
        response = _finish(fetch.upload(req, file))
        success(f"Uploaded {file}")
        format_response(response.body)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the resolved connection settings with secrets masked.

    Example::

        supafetch config show
        supafetch --json config show
    """
    from supafetch.config import get_config_dir, project_config_path, resolve_settings, user_config_path
    from supafetch.output import format_response, info

    with _handle_errors():
        settings = resolve_settings(**(ctx.obj or {}).get("overrides", {}))
        info(f"Config directory: {get_config_dir()}")
        for label, path in (("User config", user_config_path()), ("Project config", project_config_path())):
            if path is not None:
                info(f"{label}: {path}")
        format_response(settings.redacted())


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``supafetch`` console script.

    Unhandled :class:`~supafetch.exceptions.SupafetchError` instances
    cause a clean exit with the error's ``exit_code``; anything else is
    reported as an unexpected error with a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from supafetch.output import error

        if isinstance(exc, SupafetchError):
            error(str(exc))
            sys.exit(exc.exit_code)
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
