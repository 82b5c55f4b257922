"""Explicit states of the login flow.

Each state is an immutable record carrying exactly the data produced so
far. A step of :class:`~toriauth.auth.authenticator.Authenticator` accepts
only the state(s) it can run from and replaces it with the next one, so an
out-of-order call is detected by the type of the current state::

    Uninitialized -> SessionInitialized -> PasswordlessStarted
        -> EmailCodeSubmitted(mfa_required=False) ------------> Finalized
        -> EmailCodeSubmitted(mfa_required=True)
               -> SmsRequested -> SmsVerified ----------------> Finalized

Any step error moves the flow to :class:`Failed`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from toriauth.models import TokenSet


@dataclass(frozen=True)
class Session:
    """Values fixed when a session starts."""

    code_verifier: str
    state: str
    nonce: str


@dataclass(frozen=True)
class Uninitialized:
    pass


@dataclass(frozen=True)
class SessionInitialized:
    session: Session


@dataclass(frozen=True)
class PasswordlessStarted:
    session: Session
    passwordless_token: str


@dataclass(frozen=True)
class EmailCodeSubmitted:
    session: Session
    mfa_required: bool
    mfa_id: str = ""


@dataclass(frozen=True)
class SmsRequested:
    session: Session
    mfa_id: str
    mfa_nonce: str


@dataclass(frozen=True)
class SmsVerified:
    session: Session


@dataclass(frozen=True)
class Finalized:
    tokens: TokenSet


@dataclass(frozen=True)
class Failed:
    step: str


AuthenticatorState = Union[
    Uninitialized,
    SessionInitialized,
    PasswordlessStarted,
    EmailCodeSubmitted,
    SmsRequested,
    SmsVerified,
    Finalized,
    Failed,
]


def state_name(state: AuthenticatorState) -> str:
    return type(state).__name__
