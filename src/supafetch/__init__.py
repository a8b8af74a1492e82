"""supafetch -- request builder and fetcher for Supabase services.

This package is the base HTTP layer shared by the Supabase service
integrations (auth, storage, database, functions, realtime).  A
:class:`~supafetch.models.Client` holds the project URL and keys; a
:class:`~supafetch.fetcher.Request` describes one call and is built
step by step; the functions in :mod:`supafetch.fetcher.fetch` dispatch it
through a pluggable transport and hand back either a
:class:`~supafetch.fetcher.Response` or a
:class:`~supafetch.fetcher.FetchError`.

Typical usage::

    from supafetch import init_client
    from supafetch.fetcher import Request, fetch

    client = init_client("https://<project>.supabase.co", "<api-key>")
    result = fetch.request(
        Request.new(client).with_database_url("/films").with_query({"select": "*"})
    )

Modules:
    app: Typer CLI entry point.
    client: Client construction, token rotation, and the managed client.
    config: XDG-aware configuration loading.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    fetcher: Request builder, transports, decoders, and error parsing.
    models: Pydantic models for the client configuration.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"

from supafetch.client import ManagedClient, init_client, update_access_token  # noqa: E402
from supafetch.models import Client  # noqa: E402

__all__ = [
    "Client",
    "ManagedClient",
    "__version__",
    "init_client",
    "update_access_token",
]
