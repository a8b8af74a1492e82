"""Client construction, token rotation, and the managed client.

:func:`init_client` validates connection options and returns a frozen
:class:`~supafetch.models.Client`.  Clients are values: rotating the
access token with :func:`update_access_token` returns a new client and
leaves the old one untouched.

Long-running programs that share one configuration between threads use
:class:`ManagedClient`, which keeps the current client behind a lock so
token rotation is a single serialized write and readers always see a
complete value.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from typing import Any, Optional

from pydantic import ValidationError

from supafetch import __version__
from supafetch.exceptions import ConfigError, MissingConfigError
from supafetch.fetcher.headers import merge_headers
from supafetch.models import Client, Service

logger = logging.getLogger(__name__)

DEFAULT_HEADERS: dict[str, str] = {
    "x-client-info": f"supafetch-python/{__version__}",
    "user-agent": f"Supafetch/{__version__}",
}
"""Headers sent with every request unless overridden in ``global.headers``."""


def _blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def _with_default_headers(options: Mapping[str, Any]) -> dict[str, Any]:
    options = dict(options)
    global_ = options.pop("global_", None) or options.pop("global", None) or {}
    if not isinstance(global_, Mapping):
        global_ = global_.model_dump()
    user_headers = global_.get("headers") or {}
    headers = dict(merge_headers(DEFAULT_HEADERS, user_headers))
    options["global"] = {**global_, "headers": headers}
    return options


def init_client(base_url: Optional[str], api_key: Optional[str], **options: Any) -> Client:
    """Build a validated :class:`Client`.

    Args:
        base_url: Project URL, e.g. ``https://abc.supabase.co``.
        api_key: Project API key (anon or service role).
        **options: Other :class:`Client` fields: ``access_token``,
            explicit ``<service>_url`` values, and the option groups
            ``db``, ``global`` (or ``global_``) and ``auth`` as mappings
            or models.

    Returns:
        The frozen client.  ``global.headers`` always carries
        ``x-client-info`` and ``user-agent``; headers given by the caller
        win on collision.

    Raises:
        MissingConfigError: If *base_url* or *api_key* is blank.
        ConfigError: If any other option is invalid.
    """
    if _blank(base_url):
        raise MissingConfigError("url")
    if _blank(api_key):
        raise MissingConfigError("key")

    data = _with_default_headers(options)
    try:
        return Client.model_validate({**data, "base_url": base_url, "api_key": api_key})
    except ValidationError as exc:
        raise ConfigError(f"Invalid client options: {exc}") from exc


def update_access_token(client: Client, access_token: str) -> Client:
    """Return a copy of *client* sending *access_token* as the bearer token."""
    if _blank(access_token):
        raise ConfigError("Access token can't be blank")
    return client.model_copy(update={"access_token": access_token})


class ManagedClient:
    """A shared, thread-safe holder for the current :class:`Client`.

    Reads return the current immutable value; writes (token rotation,
    option changes) replace it under a lock, so concurrent writers never
    interleave and readers never observe a half-applied change::

        managed = ManagedClient.from_options(url, key)
        req = Request.new(managed.get_client())
        ...
        managed.set_auth(session.access_token)

    Args:
        client: The initial client.
    """

    def __init__(self, client: Client) -> None:
        self._client = client
        self._lock = threading.Lock()

    @classmethod
    def from_options(cls, base_url: Optional[str], api_key: Optional[str], **options: Any) -> ManagedClient:
        """Create a managed client through :func:`init_client`."""
        return cls(init_client(base_url, api_key, **options))

    @classmethod
    def from_config(cls, **overrides: Any) -> ManagedClient:
        """Create a managed client from the resolved configuration.

        See :func:`supafetch.config.load_client` for the lookup order.
        """
        from supafetch.config import load_client

        return cls(load_client(**overrides))

    def get_client(self) -> Client:
        """Return the current client."""
        with self._lock:
            return self._client

    def set_auth(self, access_token: str) -> Client:
        """Rotate the bearer token and return the new client."""
        with self._lock:
            self._client = update_access_token(self._client, access_token)
            logger.debug("Access token rotated for %s", self._client.base_url)
            return self._client

    def update(self, **options: Any) -> Client:
        """Rebuild the client with *options* layered over the current values.

        Service URLs are derived again from ``base_url`` unless given, so
        changing the project URL moves every service with it.

        Raises:
            ConfigError: If the resulting options are invalid.
        """
        with self._lock:
            current = self._client.model_dump(by_alias=True)
            if "base_url" in options:
                for service in Service:
                    current.pop(f"{service.value}_url")
                current["auth"] = {**current["auth"], "storage_key": None}
            if "api_key" in options and current["access_token"] == current["api_key"]:
                current.pop("access_token")
            self._client = init_client(**{**current, **options})
            return self._client

    def __repr__(self) -> str:
        return f"ManagedClient({self.get_client()!r})"
