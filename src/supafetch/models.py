"""Canonical Pydantic models and enums shared across supafetch.

The :class:`Client` model is the configuration every request starts
from: the project URL, the API key, the bearer token sent as
``authorization``, one base URL per service, and the option groups
(:class:`DbOptions`, :class:`GlobalOptions`, :class:`AuthOptions`).

Clients are frozen.  Rotating the access token or changing an option
produces a new value (see :func:`~supafetch.client.update_access_token`);
a long-lived, shared instance lives behind
:class:`~supafetch.client.ManagedClient`.

The enums :class:`Service` and :class:`HTTPMethod` close the sets of
services and verbs accepted by the request builder.
"""

from __future__ import annotations

import enum
from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Service(str, enum.Enum):
    """Backend services reachable through a :class:`Client`.

    Each member's value is the prefix of the matching ``<service>_url``
    field on :class:`Client`.
    """

    AUTH = "auth"
    FUNCTIONS = "functions"
    STORAGE = "storage"
    REALTIME = "realtime"
    DATABASE = "database"


SERVICE_PATHS: dict[Service, str] = {
    Service.AUTH: "auth/v1",
    Service.FUNCTIONS: "functions/v1",
    Service.STORAGE: "storage/v1",
    Service.REALTIME: "realtime/v1",
    Service.DATABASE: "rest/v1",
}
"""Path appended to ``base_url`` to derive each service's base URL."""


class HTTPMethod(str, enum.Enum):
    """HTTP methods accepted by :meth:`~supafetch.fetcher.Request.with_method`."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"


class FlowType(str, enum.Enum):
    """Authentication flow used by the auth integration."""

    IMPLICIT = "implicit"
    PKCE = "pkce"
    MAGIC_LINK = "magicLink"


# --- Option groups ---


class DbOptions(BaseModel):
    """Database options: the Postgres schema queried through the REST API."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    schema_: str = Field(default="public", alias="schema")


class GlobalOptions(BaseModel):
    """Options applied to every request, currently only extra headers."""

    model_config = ConfigDict(frozen=True)

    headers: dict[str, str] = Field(default_factory=dict)


class AuthOptions(BaseModel):
    """Auth integration options.

    ``storage_key`` defaults to ``sb-<host>-auth-token`` where ``<host>``
    is the first label of the project host name; it is filled in by
    :class:`Client` since it depends on ``base_url``.
    """

    model_config = ConfigDict(frozen=True)

    auto_refresh_token: bool = True
    debug: bool = False
    detect_session_in_url: bool = True
    flow_type: FlowType = FlowType.IMPLICIT
    persist_session: bool = True
    storage_key: Optional[str] = None


# --- Client ---


class Client(BaseModel):
    """Connection options for one Supabase project.

    Only ``base_url`` and ``api_key`` are required.  ``access_token``
    defaults to the API key, and every ``<service>_url`` that is not
    given explicitly is derived from ``base_url`` using
    :data:`SERVICE_PATHS`.

    Example::

        Client(base_url="http://127.0.0.1:54321", api_key="anon-key")
        # storage_url == "http://127.0.0.1:54321/storage/v1"
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    base_url: str
    api_key: str
    access_token: str = ""

    auth_url: str = ""
    functions_url: str = ""
    storage_url: str = ""
    realtime_url: str = ""
    database_url: str = ""

    db: DbOptions = Field(default_factory=DbOptions)
    global_: GlobalOptions = Field(default_factory=GlobalOptions, alias="global")
    auth: AuthOptions = Field(default_factory=AuthOptions)

    @field_validator("base_url", "api_key")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("can't be blank")
        return value

    @model_validator(mode="before")
    @classmethod
    def _derive_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        base_url = data.get("base_url")
        if not isinstance(base_url, str) or not base_url.strip():
            return data

        if not data.get("access_token"):
            data["access_token"] = data.get("api_key") or ""

        for service, suffix in SERVICE_PATHS.items():
            key = f"{service.value}_url"
            if not data.get(key):
                data[key] = join_url(base_url, suffix)

        auth = data.get("auth")
        if auth is None:
            auth = {}
        if isinstance(auth, AuthOptions):
            auth = auth.model_dump()
        if isinstance(auth, dict) and not auth.get("storage_key"):
            auth = {**auth, "storage_key": default_storage_key(base_url)}
        data["auth"] = auth
        return data

    def service_url(self, service: Service | str) -> str:
        """Return the base URL of *service*."""
        return getattr(self, f"{Service(service).value}_url")

    def __repr__(self) -> str:
        return (
            f"Client(base_url={self.base_url!r}, schema={self.db.schema_!r}, "
            f"flow_type={self.auth.flow_type.value!r}, "
            f"persist_session={self.auth.persist_session!r})"
        )


def join_url(base: str, path: str) -> str:
    """Join *path* onto *base* with exactly one slash between them."""
    if not path:
        return base
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


def default_storage_key(base_url: str) -> str:
    """Derive the auth storage key ``sb-<host>-auth-token`` from *base_url*."""
    host = urlparse(base_url).hostname or ""
    label = host.split(".")[0] if host else "localhost"
    return f"sb-{label}-auth-token"
