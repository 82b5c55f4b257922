"""Canonical Pydantic models shared across toriauth modules.

The models fall into two groups:

**Configuration and output** -- persisted as JSON:
    :class:`ProviderConfig` (endpoints, client ids, signing key, timeouts)
    and :class:`TokenSet` (the credentials produced by a login or refresh).

**Wire models** -- provider responses parsed at the edges of the flow:
    :class:`OAuthTokenResponse` and :class:`GatewayLoginResponse`.

All models use Pydantic v2. Wire models ignore unknown keys so that
provider-side additions do not break parsing.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# --- Configuration ---


class ProviderConfig(BaseModel):
    """Endpoints and identifiers for the login provider and the API gateway.

    Defaults mirror the values used by the native Android app. Everything
    here is configuration rather than protocol: the flow itself never
    hard-codes a URL or a client id.

    Example::

        ProviderConfig(login_base_url="https://login.example.test", timeout=10)
    """

    login_base_url: str = Field(
        default="https://login.vend.fi",
        description="Identity provider base URL (authorize, authn API, token)",
    )
    gateway_base_url: str = Field(
        default="https://apps-gw-poc.svc.tori.fi",
        description="Marketplace API gateway base URL",
    )
    client_id: str = Field(
        default="6079834b9b0b741812e7e91f", description="Native app OAuth client id"
    )
    redirect_uri: str = Field(
        default="fi.tori.www.6079834b9b0b741812e7e91f://login",
        description="App-scheme redirect URI registered for client_id",
    )
    exchange_client_id: str = Field(
        default="650421cf50eeae31ecd2a2d3",
        description="Server client id for the secondary code exchange",
    )
    hmac_key: str = Field(
        default="3b535f36-79be-424b-a6fd-116c6e69f137",
        description="Shared secret for gateway request signatures",
    )
    gateway_service: str = Field(
        default="LOGIN-SERVER-AUTH", description="Gateway service name for login"
    )
    scopes: list[str] = Field(default_factory=lambda: ["openid", "offline_access"])
    webview_user_agent: str = (
        "Mozilla/5.0 (Linux; Android 14; sdk_gphone64_arm64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Version/4.0 Chrome/131.0.6778.39 Mobile Safari/537.36"
    )
    sdk_user_agent: str = "user-webflows-sdk-android/5.0.0"
    exchange_user_agent: str = "AccountSDKIOSWeb/7.0.2 (iPhone; iOS 26.1)"
    app_user_agent: str = "Tori/26.4.0 (Android 14; sdk_gphone64_arm64)"
    app_version: str = "26.4.0"
    app_build_number: str = "26357"
    os_version: str = "14"
    device_model: str = "sdk_gphone64_arm64"
    timeout: float = Field(default=30.0, description="Per-request timeout in seconds")
    max_redirects: int = Field(default=10, description="Redirect hop limit")


# --- Output ---


class TokenSet(BaseModel):
    """Credentials produced by a successful login or refresh.

    Instances are immutable; a refresh always yields a new ``TokenSet``.
    Serialised with the snake_case field names below.

    Attributes:
        user_id: Marketplace user id.
        bearer_token: Marketplace API credential.
        access_token: OAuth access token.
        refresh_token: OAuth refresh token, input to the refresh flow.
        id_token: OAuth ID token.
        device_id: Installation id; must be reused on refresh.
        expires_at: Optional UTC expiry. ``None`` means unknown.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    bearer_token: str
    access_token: str
    refresh_token: str
    id_token: str
    device_id: str
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Return True once ``expires_at`` has passed.

        Naive values of ``expires_at`` and *now* are treated as UTC.
        """
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return now >= expires


# --- Wire models ---


class OAuthTokenResponse(BaseModel):
    """Token endpoint response for both the code and refresh-token grants."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str = ""
    id_token: str = ""
    expires_in: Optional[int] = None


class GatewayToken(BaseModel):
    """The ``token`` object of the gateway login response."""

    model_config = ConfigDict(extra="ignore")

    type: str = ""
    value: str


class GatewayLoginResponse(BaseModel):
    """Response of the signed ``/public/login`` gateway call."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    user_id: Union[int, str] = Field(alias="userId")
    token: GatewayToken
