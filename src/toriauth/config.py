"""Configuration management with XDG paths, atomic writes, and env overrides.

This module handles all persistent configuration for toriauth:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.toriauth/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Provider config** -- A single :class:`~toriauth.models.ProviderConfig`
  JSON file. Managed via :func:`load_config` and :func:`save_config`.
* **Precedence resolution** -- environment variables override the config
  file, which overrides the model defaults.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from toriauth.exceptions import ConfigError
from toriauth.models import ProviderConfig

_APP_NAME = "toriauth"
_CONFIG_FILENAME = "config.json"

# Environment variable -> (config field, converter)
_ENV_OVERRIDES: dict[str, tuple[str, Any]] = {
    "TORIAUTH_LOGIN_BASE_URL": ("login_base_url", str),
    "TORIAUTH_GATEWAY_BASE_URL": ("gateway_base_url", str),
    "TORIAUTH_HMAC_KEY": ("hmac_key", str),
    "TORIAUTH_TIMEOUT": ("timeout", float),
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/toriauth/`` (default ``~/.config/toriauth/``).
    On macOS/Windows: ``~/.toriauth/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (stored tokens), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/toriauth/`` (default ``~/.local/share/toriauth/``).
    On macOS/Windows: ``~/.toriauth/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. When *mode* is
    given it is applied to the temp file before any content is written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Provider config ---


def _config_path() -> Path:
    """Path to the provider config file."""
    return get_config_dir() / _CONFIG_FILENAME


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for var, (field, convert) in _ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if not value:
            continue
        try:
            overrides[field] = convert(value)
        except ValueError as exc:
            raise ConfigError(f"Invalid value for {var}: {value!r}") from exc
    return overrides


def load_config(path: Optional[Path] = None) -> ProviderConfig:
    """Load the provider configuration.

    Precedence (high to low):
        1. Environment variables (``TORIAUTH_LOGIN_BASE_URL``,
           ``TORIAUTH_GATEWAY_BASE_URL``, ``TORIAUTH_HMAC_KEY``,
           ``TORIAUTH_TIMEOUT``)
        2. The JSON config file (*path*, or ``<config_dir>/config.json``)
        3. Model defaults

    Args:
        path: Explicit config file. A missing file is not an error.

    Returns:
        The effective :class:`~toriauth.models.ProviderConfig`.

    Raises:
        ConfigError: If the file contains invalid JSON, fails validation,
            or an environment override cannot be converted.
    """
    path = path or _config_path()
    data: dict[str, Any] = {}
    if path.is_file():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            raise ConfigError(f"Invalid config at {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Invalid config at {path}: expected a JSON object")

    data.update(_env_overrides())
    try:
        return ProviderConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: ProviderConfig, path: Optional[Path] = None) -> None:
    """Persist the provider configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(path or _config_path(), json.dumps(data, indent=2) + "\n")
