"""Provider calls shared by the login flow and the refresh flow.

Both :meth:`Authenticator.finalize
<toriauth.auth.authenticator.Authenticator.finalize>` and
:func:`~toriauth.auth.refresh.refresh_tokens` end with the same three
calls:

1. an OAuth token grant (authorization code or refresh token),
2. the secondary exchange of the access token for a short-lived code,
3. the signed gateway login that turns that code and the ID token into
   the marketplace bearer token.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
from pydantic import ValidationError

from toriauth.auth.pkce import generate_ab_test_device_id
from toriauth.auth.transport import attribute, json_body, require_success, send
from toriauth.exceptions import MissingExpectedField
from toriauth.gateway import GatewayAuth
from toriauth.models import (
    GatewayLoginResponse,
    OAuthTokenResponse,
    ProviderConfig,
    TokenSet,
)

logger = logging.getLogger(__name__)

LOGIN_PATH = "/public/login"


def _invalid_field(
    exc: ValidationError, operation: str, response: httpx.Response
) -> MissingExpectedField:
    """Name the first field that failed validation."""
    errors = exc.errors()
    loc = errors[0]["loc"] if errors else ()
    field = ".".join(str(part) for part in loc) or "body"
    return MissingExpectedField(
        field, f"{operation}: invalid '{field}' in response", body=response.text
    )


def _token_grant(
    client: httpx.Client,
    config: ProviderConfig,
    data: dict[str, str],
    operation: str,
) -> OAuthTokenResponse:
    response = send(
        client,
        "POST",
        f"{config.login_base_url}/oauth/token",
        data=data,
        headers={
            "User-Agent": config.sdk_user_agent,
            "Accept": "*/*",
            "X-Oidc": "v1",
        },
    )
    require_success(response, operation)
    try:
        return OAuthTokenResponse.model_validate(json_body(response, operation))
    except ValidationError as exc:
        raise _invalid_field(exc, operation, response) from exc


def exchange_authorization_code(
    client: httpx.Client, config: ProviderConfig, code: str, code_verifier: str
) -> OAuthTokenResponse:
    """Exchange an authorization code for OAuth tokens (PKCE)."""
    return _token_grant(
        client,
        config,
        {
            "grant_type": "authorization_code",
            "client_id": config.client_id,
            "code": code,
            "redirect_uri": config.redirect_uri,
            "code_verifier": code_verifier,
        },
        "token exchange",
    )


def refresh_grant(
    client: httpx.Client, config: ProviderConfig, refresh_token: str
) -> OAuthTokenResponse:
    """Obtain fresh OAuth tokens with a refresh token."""
    return _token_grant(
        client,
        config,
        {
            "grant_type": "refresh_token",
            "client_id": config.client_id,
            "refresh_token": refresh_token,
        },
        "token refresh",
    )


def exchange_for_provider_code(
    client: httpx.Client, config: ProviderConfig, access_token: str
) -> str:
    """Trade an OAuth access token for the code the gateway login accepts."""
    response = send(
        client,
        "POST",
        f"{config.login_base_url}/api/2/oauth/exchange",
        data={"clientId": config.exchange_client_id, "type": "code"},
        headers={
            "User-Agent": config.exchange_user_agent,
            "Accept": "*/*",
            "Authorization": f"Bearer {access_token}",
        },
    )
    require_success(response, "secondary exchange")
    code = attribute(json_body(response, "secondary exchange"), "data", "code")
    if not code:
        raise MissingExpectedField("data.code", body=response.text)
    return code


def _gateway_headers(config: ProviderConfig) -> dict[str, str]:
    return {
        "User-Agent": config.app_user_agent,
        "Accept": "application/json; charset=UTF-8",
        "Content-Type": "application/json",
        "Accept-Language": "en-US,en;q=0.9",
        "x-nmp-os-name": "Android",
        "x-nmp-app-version-name": config.app_version,
        "x-nmp-app-brand": "Tori",
        "x-nmp-os-version": config.os_version,
        "x-nmp-device": config.device_model,
        "x-nmp-app-build-number": config.app_build_number,
        "buildnumber": config.app_build_number,
        "ab-test-device-id": generate_ab_test_device_id(),
        "cmp-analytics": "1",
        "cmp-personalisation": "1",
        "cmp-marketing": "1",
        "cmp-advertising": "1",
    }


def gateway_login(
    client: httpx.Client,
    config: ProviderConfig,
    device_id: str,
    id_token: str,
    exchange_code: str,
) -> GatewayLoginResponse:
    """Perform the signed gateway login.

    The body is serialised compactly with sorted keys and signed byte for
    byte by :class:`~toriauth.gateway.GatewayAuth`. *client* should not
    carry the login session's cookies.
    """
    payload = {"deviceId": device_id, "idToken": id_token, "spidCode": exchange_code}
    body = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    response = send(
        client,
        "POST",
        f"{config.gateway_base_url}{LOGIN_PATH}",
        content=body,
        headers=_gateway_headers(config),
        auth=GatewayAuth(config.gateway_service, device_id, config.hmac_key),
    )
    require_success(response, "gateway login")
    try:
        login = GatewayLoginResponse.model_validate(json_body(response, "gateway login"))
    except ValidationError as exc:
        raise _invalid_field(exc, "gateway login", response) from exc
    if not login.token.value:
        raise MissingExpectedField("token.value", body=response.text)
    return login


def build_token_set(
    login: GatewayLoginResponse,
    tokens: OAuthTokenResponse,
    device_id: str,
    now: Optional[datetime] = None,
) -> TokenSet:
    """Assemble the caller-owned :class:`TokenSet`."""
    expires_at = None
    if tokens.expires_in is not None:
        expires_at = (now or datetime.now(timezone.utc)) + timedelta(
            seconds=tokens.expires_in
        )
    return TokenSet(
        user_id=str(login.user_id),
        bearer_token=login.token.value,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        id_token=tokens.id_token,
        device_id=device_id,
        expires_at=expires_at,
    )
