"""Configuration loading with XDG paths and precedence resolution.

This module resolves the connection settings used by the CLI and by
:meth:`~supafetch.client.ManagedClient.from_config`:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD
  (``$XDG_CONFIG_HOME/supafetch/``), ``~/.supafetch/`` on macOS and
  Windows.  See :func:`get_config_dir`.
* **User config** -- ``config.json`` or ``config.yaml`` in the config
  directory.
* **Project config** -- ``supafetch.json`` or ``supafetch.yaml`` in the
  current working directory.
* **Environment** -- ``SUPABASE_URL``, ``SUPABASE_KEY`` and
  ``SUPABASE_ACCESS_TOKEN``.
* **Precedence resolution** -- :func:`resolve_settings` merges explicit
  overrides, environment variables, project config and user config into
  one :class:`ClientSettings`, which :func:`load_client` turns into a
  :class:`~supafetch.models.Client`.

A config file holds the same keys as :class:`ClientSettings`::

    # ~/.config/supafetch/config.yaml
    url: https://abc.supabase.co
    key: <anon key>
    db:
      schema: public
    global:
      headers:
        x-region: eu-west-1
"""

from __future__ import annotations

import json
import logging
import os
import platform
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from supafetch.exceptions import ConfigError
from supafetch.models import Client

logger = logging.getLogger(__name__)

_APP_NAME = "supafetch"
_CONFIG_STEM = "config"
_PROJECT_CONFIG_STEM = "supafetch"
_SUFFIXES = (".json", ".yaml", ".yml")

ENV_URL = "SUPABASE_URL"
ENV_KEY = "SUPABASE_KEY"
ENV_ACCESS_TOKEN = "SUPABASE_ACCESS_TOKEN"


class ClientSettings(BaseModel):
    """Connection settings as found in config files and the environment.

    All fields are optional here; :func:`load_client` reports the missing
    ones.  ``url``/``key`` are the short names used in files and map to
    ``base_url``/``api_key`` on :class:`~supafetch.models.Client`.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    url: Optional[str] = None
    key: Optional[str] = None
    access_token: Optional[str] = None
    db: dict[str, Any] = Field(default_factory=dict)
    global_: dict[str, Any] = Field(default_factory=dict, alias="global")
    auth: dict[str, Any] = Field(default_factory=dict)

    def merged_with(self, other: ClientSettings) -> ClientSettings:
        """Return these settings overlaid with the fields *other* sets."""
        data = self.model_dump(by_alias=True)
        for name, value in other.model_dump(by_alias=True, exclude_unset=True).items():
            if isinstance(value, dict):
                data[name] = {**data.get(name, {}), **value}
            elif value is not None:
                data[name] = value
        return ClientSettings.model_validate(data)

    def redacted(self) -> dict[str, Any]:
        """Return the settings as a dict with secrets masked."""
        data = self.model_dump(by_alias=True)
        for name in ("key", "access_token"):
            if data.get(name):
                data[name] = _mask(data[name])
        return data


def _mask(secret: str) -> str:
    if len(secret) <= 8:
        return "****"
    return f"{secret[:4]}...{secret[-4:]}"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/supafetch/`` (default
    ``~/.config/supafetch/``).  On macOS/Windows: ``~/.supafetch/``.
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_CONFIG_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".config"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- File loading ---


def _find_file(directory: Path, stem: str) -> Optional[Path]:
    for suffix in _SUFFIXES:
        candidate = directory / f"{stem}{suffix}"
        if candidate.is_file():
            return candidate
    return None


def load_settings_file(path: Path) -> ClientSettings:
    """Load one JSON or YAML settings file.

    Raises:
        ConfigError: If the file cannot be read, does not parse, or holds
            unknown keys.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    try:
        if path.suffix == ".json":
            data = json.loads(text) if text.strip() else {}
        else:
            data = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    try:
        return ClientSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc


def user_config_path() -> Optional[Path]:
    """Return the user config file in use, if any."""
    return _find_file(get_config_dir(), _CONFIG_STEM)


def project_config_path() -> Optional[Path]:
    """Return the project config file in the working directory, if any."""
    return _find_file(Path.cwd(), _PROJECT_CONFIG_STEM)


def load_env_settings() -> ClientSettings:
    """Read settings from ``SUPABASE_*`` environment variables."""
    data: dict[str, Any] = {}
    for env_var, name in ((ENV_URL, "url"), (ENV_KEY, "key"), (ENV_ACCESS_TOKEN, "access_token")):
        value = os.environ.get(env_var)
        if value:
            data[name] = value
    return ClientSettings.model_validate(data)


# --- Precedence resolution ---


def resolve_settings(**overrides: Any) -> ClientSettings:
    """Resolve settings with the full precedence chain.

    Precedence (high to low):
        1. Explicit *overrides* (``url``, ``key``, ``access_token``...)
        2. Environment variables (``SUPABASE_URL``, ``SUPABASE_KEY``,
           ``SUPABASE_ACCESS_TOKEN``)
        3. Project config (``./supafetch.json`` or ``./supafetch.yaml``)
        4. User config (``~/.config/supafetch/config.json`` or ``.yaml``)
        5. Defaults

    Raises:
        ConfigError: If a config file or an override is invalid.
    """
    settings = ClientSettings()
    for path in (user_config_path(), project_config_path()):
        if path is not None:
            logger.debug("Loading settings from %s", path)
            settings = settings.merged_with(load_settings_file(path))
    settings = settings.merged_with(load_env_settings())
    explicit = {name: value for name, value in overrides.items() if value is not None}
    try:
        return settings.merged_with(ClientSettings.model_validate(explicit))
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc


def load_client(**overrides: Any) -> Client:
    """Resolve settings and build the :class:`~supafetch.models.Client`.

    Raises:
        MissingConfigError: If no URL or key was found anywhere.
        ConfigError: If the settings are invalid.
    """
    from supafetch.client import init_client

    settings = resolve_settings(**overrides)
    options: dict[str, Any] = {"db": settings.db, "global": settings.global_, "auth": settings.auth}
    if settings.access_token:
        options["access_token"] = settings.access_token
    return init_client(settings.url, settings.key, **options)
