"""Tests for toriauth.config -- XDG paths, atomic writes, precedence."""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from toriauth.config import (
    _atomic_write,
    get_config_dir,
    get_data_dir,
    load_config,
    save_config,
)
from toriauth.exceptions import ConfigError
from toriauth.models import ProviderConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPathsLinux:
    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("toriauth.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "toriauth"
        assert result.is_dir()

    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("toriauth.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))

        assert get_config_dir() == tmp_path / "cfg" / "toriauth"

    def test_data_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("toriauth.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_data_dir()
        assert result == tmp_path / ".local" / "share" / "toriauth"
        assert result.is_dir()


class TestFallbackPaths:
    """macOS / Windows use a single dot-directory under $HOME."""

    def test_config_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("toriauth.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_config_dir() == tmp_path / ".toriauth"

    def test_data_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("toriauth.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_data_dir() == tmp_path / ".toriauth" / "data"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_with_content(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "test.txt"
        _atomic_write(target, "hello")
        assert target.read_text(encoding="utf-8") == "hello"

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        target.write_text("old", encoding="utf-8")
        _atomic_write(target, "new")
        assert target.read_text(encoding="utf-8") == "new"
        assert list(tmp_path.iterdir()) == [target]

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_applies_mode(self, tmp_path: Path) -> None:
        target = tmp_path / "secret.json"
        _atomic_write(target, "{}", mode=0o600)
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        with patch("toriauth.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                _atomic_write(target, "will fail")
        assert list(tmp_path.iterdir()) == []


# ---------------------------------------------------------------------------
# Provider config
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_defaults_when_missing(self, isolated_config: Path) -> None:
        cfg = load_config()
        assert cfg == ProviderConfig()
        assert cfg.timeout == 30.0
        assert cfg.max_redirects == 10

    def test_file_overrides_defaults(self, isolated_config: Path) -> None:
        _write_json(
            isolated_config / "config" / "toriauth" / "config.json",
            {"login_base_url": "https://login.example.test", "timeout": 5},
        )
        cfg = load_config()
        assert cfg.login_base_url == "https://login.example.test"
        assert cfg.timeout == 5.0
        assert cfg.gateway_base_url == ProviderConfig().gateway_base_url

    def test_env_overrides_file(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = isolated_config / "explicit.json"
        _write_json(path, {"timeout": 5, "hmac_key": "from-file"})
        monkeypatch.setenv("TORIAUTH_TIMEOUT", "12.5")
        monkeypatch.setenv("TORIAUTH_HMAC_KEY", "from-env")

        cfg = load_config(path)
        assert cfg.timeout == 12.5
        assert cfg.hmac_key == "from-env"

    def test_invalid_json_raises(self, isolated_config: Path) -> None:
        path = isolated_config / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid config"):
            load_config(path)

    def test_non_object_raises(self, isolated_config: Path) -> None:
        path = isolated_config / "list.json"
        _write_json(path, ["a", "b"])
        with pytest.raises(ConfigError, match="expected a JSON object"):
            load_config(path)

    def test_invalid_field_raises(self, isolated_config: Path) -> None:
        path = isolated_config / "bad.json"
        _write_json(path, {"max_redirects": "many"})
        with pytest.raises(ConfigError):
            load_config(path)

    def test_invalid_env_value_raises(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TORIAUTH_TIMEOUT", "soon")
        with pytest.raises(ConfigError, match="TORIAUTH_TIMEOUT"):
            load_config()


class TestSaveConfig:
    def test_round_trip(self, isolated_config: Path) -> None:
        cfg = ProviderConfig(login_base_url="https://login.example.test", max_redirects=3)
        save_config(cfg)
        assert load_config() == cfg

    def test_writes_json_object(self, isolated_config: Path) -> None:
        path = isolated_config / "out.json"
        save_config(ProviderConfig(), path)
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["client_id"] == "6079834b9b0b741812e7e91f"
        assert data["scopes"] == ["openid", "offline_access"]
