"""Persistent token storage, one JSON file per account.

Stores a :class:`~toriauth.models.TokenSet` in
``~/.local/share/toriauth/tokens/<name>.json`` (XDG) or the
platform-equivalent directory. Files are written atomically with
``0o600`` permissions so that tokens are never world-readable, even
momentarily. Encryption at rest is left to the caller.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from toriauth.config import _atomic_write, get_data_dir
from toriauth.exceptions import ConfigError
from toriauth.models import TokenSet


def _tokens_dir() -> Path:
    """Return the tokens directory, creating it if needed."""
    path = get_data_dir() / "tokens"
    path.mkdir(parents=True, exist_ok=True)
    return path


class TokenStore:
    """Read/write the token set for a single account.

    Args:
        name: Account identifier used to derive the file name. Must be a
            plain file name without path separators.

    Raises:
        ConfigError: If *name* is empty or contains a path component.

    Example::

        store = TokenStore("alice")
        store.save(tokens)
        assert store.load() == tokens
    """

    def __init__(self, name: str) -> None:
        if not name or name in (".", "..") or Path(name).name != name or "\\" in name:
            raise ConfigError(f"Invalid token store name: {name!r}")
        self._name = name
        self._path = _tokens_dir() / f"{name}.json"

    @property
    def path(self) -> Path:
        """The filesystem path to this account's token file."""
        return self._path

    def save(self, tokens: TokenSet) -> None:
        """Persist *tokens* atomically with ``0o600`` permissions."""
        data = tokens.model_dump(mode="json")
        _atomic_write(self._path, json.dumps(data, indent=2) + "\n", mode=0o600)

    def load(self) -> Optional[TokenSet]:
        """Return the stored token set, or ``None`` if absent or unreadable."""
        if not self._path.is_file():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return TokenSet.model_validate(data)
        except (json.JSONDecodeError, ValueError, OSError):
            return None

    def clear(self) -> None:
        """Delete the stored token file if it exists."""
        if self._path.is_file():
            self._path.unlink()
