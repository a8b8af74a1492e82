"""Tests for supafetch.config -- XDG paths, settings files, precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
import yaml

from supafetch.config import (
    ClientSettings,
    get_config_dir,
    load_client,
    load_env_settings,
    load_settings_file,
    project_config_path,
    resolve_settings,
    user_config_path,
)
from supafetch.exceptions import ConfigError, MissingConfigError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def _write_yaml(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestConfigDir:
    def test_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("supafetch.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        result = get_config_dir()
        assert result == tmp_path / "xdg" / "supafetch"
        assert result.is_dir()

    def test_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("supafetch.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_config_dir() == tmp_path / ".config" / "supafetch"

    def test_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("supafetch.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_config_dir() == tmp_path / ".supafetch"


# ---------------------------------------------------------------------------
# Settings files
# ---------------------------------------------------------------------------


class TestSettingsFiles:
    def test_json(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        _write_json(path, {"url": "https://abc.supabase.co", "key": "anon", "db": {"schema": "api"}})
        settings = load_settings_file(path)
        assert settings.url == "https://abc.supabase.co"
        assert settings.db == {"schema": "api"}

    def test_yaml_with_global_headers(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        _write_yaml(path, {"url": "https://abc.supabase.co", "global": {"headers": {"x-region": "eu"}}})
        assert load_settings_file(path).global_ == {"headers": {"x-region": "eu"}}

    def test_empty_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert load_settings_file(path).model_dump() == ClientSettings().model_dump()

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{nope", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid config file"):
            load_settings_file(path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("url: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_settings_file(path)

    def test_non_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="must contain a mapping"):
            load_settings_file(path)

    def test_unknown_key(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        _write_json(path, {"uri": "https://typo.supabase.co"})
        with pytest.raises(ConfigError):
            load_settings_file(path)

    def test_json_preferred_over_yaml(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "supafetch.json", {"url": "https://json.supabase.co"})
        _write_yaml(isolated_config / "supafetch.yaml", {"url": "https://yaml.supabase.co"})
        assert project_config_path() == isolated_config / "supafetch.json"

    def test_no_user_config(self, isolated_config: Path) -> None:
        assert user_config_path() is None


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


class TestPrecedence:
    def test_defaults(self, isolated_config: Path) -> None:
        assert resolve_settings().model_dump() == ClientSettings().model_dump()

    def test_project_overrides_user(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "config" / "supafetch" / "config.json", {"url": "https://user.supabase.co", "key": "user-key"})
        _write_yaml(isolated_config / "supafetch.yaml", {"url": "https://project.supabase.co"})
        settings = resolve_settings()
        assert settings.url == "https://project.supabase.co"
        assert settings.key == "user-key"

    def test_env_overrides_files(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_json(isolated_config / "supafetch.json", {"url": "https://project.supabase.co", "key": "file-key"})
        monkeypatch.setenv("SUPABASE_KEY", "env-key")
        settings = resolve_settings()
        assert settings.url == "https://project.supabase.co"
        assert settings.key == "env-key"

    def test_overrides_win(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SUPABASE_URL", "https://env.supabase.co")
        settings = resolve_settings(url="https://flag.supabase.co", key=None)
        assert settings.url == "https://flag.supabase.co"

    def test_nested_groups_are_merged(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "config" / "supafetch" / "config.json", {"auth": {"flow_type": "pkce", "debug": True}})
        _write_json(isolated_config / "supafetch.json", {"auth": {"debug": False}})
        assert resolve_settings().auth == {"flow_type": "pkce", "debug": False}

    def test_env_settings(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SUPABASE_ACCESS_TOKEN", "jwt")
        assert load_env_settings().model_dump() == ClientSettings(access_token="jwt").model_dump()


# ---------------------------------------------------------------------------
# load_client
# ---------------------------------------------------------------------------


class TestLoadClient:
    def test_builds_client(self, isolated_config: Path) -> None:
        _write_yaml(
            isolated_config / "supafetch.yaml",
            {"url": "https://abc.supabase.co", "key": "anon", "db": {"schema": "api"}},
        )
        client = load_client(access_token="jwt")
        assert client.database_url == "https://abc.supabase.co/rest/v1"
        assert client.db.schema_ == "api"
        assert client.access_token == "jwt"

    def test_missing_url(self, isolated_config: Path) -> None:
        with pytest.raises(MissingConfigError, match="SUPABASE_URL"):
            load_client(key="anon")

    def test_missing_key(self, isolated_config: Path) -> None:
        with pytest.raises(MissingConfigError, match="SUPABASE_KEY"):
            load_client(url="https://abc.supabase.co")


class TestRedaction:
    def test_secrets_masked(self) -> None:
        data = ClientSettings(url="https://abc.supabase.co", key="eyJhbGciOiJIUzI1NiJ9.secret", access_token="short").redacted()
        assert data["url"] == "https://abc.supabase.co"
        assert data["key"] == "eyJh...cret"
        assert data["access_token"] == "****"
