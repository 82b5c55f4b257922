"""PKCE and per-session random values.

Provides the ``code_verifier`` / ``code_challenge`` pair (S256, :rfc:`7636`),
the short OAuth ``state`` and ``nonce`` values, and installation ids.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import uuid


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_code_verifier() -> str:
    """Return a 43-character verifier from 32 random bytes."""
    return _b64url(secrets.token_bytes(32))


def code_challenge(code_verifier: str) -> str:
    """Derive the S256 challenge: base64url(SHA-256(verifier)) without padding."""
    return _b64url(hashlib.sha256(code_verifier.encode("ascii")).digest())


def generate_state_token() -> str:
    """Return an unpadded base64url value of 8 random bytes (``state``/``nonce``)."""
    return _b64url(secrets.token_bytes(8))


def generate_device_id() -> str:
    """Return a random UUID-v4 used as the installation id."""
    return str(uuid.uuid4())


def generate_ab_test_device_id() -> str:
    # The app sends this one upper-cased and fresh on every login call.
    return str(uuid.uuid4()).upper()
