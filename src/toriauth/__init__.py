"""toriauth -- log in to the Tori marketplace API the way the native app does.

The provider's login is a non-standard, multi-step flow: OAuth authorize
with PKCE, CSRF scraping from server-rendered pages, passwordless e-mail
verification, optional SMS verification, a redirect chain ending in an
app-scheme URI, two code exchanges, and a final gateway call that must
carry a per-request HMAC signature.

Modules:
    auth: The login state machine, the refresh flow and token storage.
    gateway: Gateway request signing.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration with environment overrides.
    exceptions: Exception hierarchy.
"""

from toriauth.auth import Authenticator, TokenStore, refresh_tokens
from toriauth.gateway import GatewayAuth, sign_request
from toriauth.models import ProviderConfig, TokenSet

__version__ = "0.1.0"

__all__ = [
    "Authenticator",
    "GatewayAuth",
    "ProviderConfig",
    "TokenSet",
    "TokenStore",
    "refresh_tokens",
    "sign_request",
]
