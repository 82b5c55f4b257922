"""Login and refresh flows for the Tori marketplace.

The main entry points are:

- :class:`Authenticator` -- the step-by-step passwordless login (with
  optional SMS second factor) that produces a :class:`~toriauth.models.TokenSet`.
- :func:`refresh_tokens` -- renew a stored token set from its refresh token
  and device id.
- :class:`TokenStore` -- plain JSON persistence of a token set.

Typical usage::

    from toriauth.auth import Authenticator, refresh_tokens

    with Authenticator() as auth:
        auth.init_session()
        auth.start_login(email)
        if auth.submit_email_code(email_code):
            auth.request_sms()
            auth.submit_sms_code(sms_code)
        tokens = auth.finalize()

    tokens = refresh_tokens(tokens.refresh_token, tokens.device_id)
"""

from toriauth.auth.authenticator import (
    Authenticator,
    EmailCodeOutcome,
    EmailCodeResult,
    parse_email_code_response,
)
from toriauth.auth.redirects import RedirectWalker, extract_code
from toriauth.auth.refresh import refresh_tokens
from toriauth.auth.scraper import DEFAULT_PATTERNS, CsrfPatterns, CsrfScraper
from toriauth.auth.token_store import TokenStore

__all__ = [
    "Authenticator",
    "CsrfPatterns",
    "CsrfScraper",
    "DEFAULT_PATTERNS",
    "EmailCodeOutcome",
    "EmailCodeResult",
    "RedirectWalker",
    "TokenStore",
    "extract_code",
    "parse_email_code_response",
    "refresh_tokens",
]
