"""Exception hierarchy for toriauth.

All exceptions inherit from :class:`ToriAuthError`. Low-level failures
(transport, status, missing fields, redirects) are raised by the helpers
in :mod:`toriauth.auth`, and every step of the
:class:`~toriauth.auth.authenticator.Authenticator` wraps them in the
matching :class:`StepError` subclass so that callers can tell *which*
step failed while the original cause stays reachable via ``__cause__``.

Subclass hierarchy::

    ToriAuthError
    +-- ConfigError
    +-- TransportError
    +-- UnexpectedStatus
    +-- MissingExpectedField
    |   +-- RedirectChainEndedWithoutCode
    +-- PreconditionFailed
    +-- RedirectError
    |   +-- TooManyRedirects
    |   +-- NonHttpRedirect
    +-- StepError
        +-- SessionInitError
        +-- EmailRejected
        +-- PasswordlessStartFailed
        +-- EmailCodeRejected
        +-- SmsRequestFailed
        +-- SmsVerifyFailed
        +-- FinalizeError
        +-- RefreshError
"""

from __future__ import annotations

from typing import Optional


class ToriAuthError(Exception):
    """Base exception for all toriauth errors."""


class ConfigError(ToriAuthError):
    """Raised for configuration problems (invalid JSON, bad env overrides)."""


class TransportError(ToriAuthError):
    """Raised on network-level failures (timeout, DNS, connection refused).

    The underlying :class:`httpx.HTTPError` is chained as ``__cause__``.
    """


class UnexpectedStatus(ToriAuthError):
    """Raised when the provider answers with a non-success status code.

    Args:
        operation: Short name of the call that failed (e.g. ``"email-status"``).
        status_code: The HTTP status code received.
        body: The raw response body, kept for diagnosis.
    """

    def __init__(self, operation: str, status_code: int, body: str = ""):
        super().__init__(f"{operation} failed with status {status_code}: {body}")
        self.operation = operation
        self.status_code = status_code
        self.body = body


class MissingExpectedField(ToriAuthError):
    """Raised when a required value is absent from a provider response.

    Args:
        field: Dotted path of the missing value (e.g. ``"data.code"``).
        message: Optional override of the default message.
        body: The raw response body the value was expected in.
    """

    def __init__(self, field: str, message: Optional[str] = None, body: str = ""):
        super().__init__(message or f"Response is missing '{field}'")
        self.field = field
        self.body = body


class RedirectChainEndedWithoutCode(MissingExpectedField):
    """Raised when a redirect hop has no ``Location`` and no code was seen."""

    def __init__(self, url: str):
        super().__init__("code", f"Redirect chain ended without code at {url}")
        self.url = url


class PreconditionFailed(ToriAuthError):
    """Raised when a step is invoked out of order.

    Args:
        message: What was expected.
        state: Name of the state the authenticator was in.
    """

    def __init__(self, message: str, state: str = ""):
        super().__init__(f"{message} (current state: {state})" if state else message)
        self.state = state


class RedirectError(ToriAuthError):
    """Base class for redirect-walking failures."""


class TooManyRedirects(RedirectError):
    """Raised when a redirect chain exceeds the configured hop limit."""

    def __init__(self, limit: int):
        super().__init__(f"Too many redirects (limit {limit})")
        self.limit = limit


class NonHttpRedirect(RedirectError):
    """Raised when a redirect points at a non-HTTP scheme without a code."""

    def __init__(self, location: str):
        super().__init__(f"Refusing to follow non-http redirect: {location}")
        self.location = location


class StepError(ToriAuthError):
    """A failure of one named step of the login or refresh flow.

    Args:
        step: The step (or sub-step) name, e.g. ``"token_exchange"``.
        cause: The lower-level error. Its response body is copied to
            :attr:`body` when it is an :class:`UnexpectedStatus` or a
            :class:`MissingExpectedField`.
    """

    def __init__(self, step: str, cause: Exception):
        super().__init__(f"{step} failed: {cause}")
        self.step = step
        self.cause = cause
        if isinstance(cause, (UnexpectedStatus, MissingExpectedField)):
            self.body = cause.body
        else:
            self.body = ""


class SessionInitError(StepError):
    """The OAuth authorize request or the login page fetch failed."""


class EmailRejected(StepError):
    """The e-mail status check refused the address."""


class PasswordlessStartFailed(StepError):
    """The passwordless e-mail code could not be started."""


class EmailCodeRejected(StepError):
    """The one-time e-mail code was not accepted."""


class SmsRequestFailed(StepError):
    """The SMS challenge could not be requested."""


class SmsVerifyFailed(StepError):
    """The SMS code was not accepted."""


class FinalizeError(StepError):
    """A sub-step of finalization failed; :attr:`step` names which one."""


class RefreshError(StepError):
    """A sub-step of the refresh flow failed; :attr:`step` names which one."""
