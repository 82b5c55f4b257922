"""Renew a stored :class:`~toriauth.models.TokenSet` without logging in again.

The refresh path needs only the stored refresh token and device id. It
runs the refresh-token grant, the secondary code exchange and the signed
gateway login, and returns a brand-new ``TokenSet``. A failure means the
user has to go through :class:`~toriauth.auth.authenticator.Authenticator`
again.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from toriauth.auth import provider
from toriauth.exceptions import PreconditionFailed, RefreshError, ToriAuthError
from toriauth.models import ProviderConfig, TokenSet

logger = logging.getLogger(__name__)


def refresh_tokens(
    refresh_token: str,
    device_id: str,
    config: Optional[ProviderConfig] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> TokenSet:
    """Obtain a new token set from a refresh token.

    Args:
        refresh_token: The ``refresh_token`` of a previous ``TokenSet``.
        device_id: The ``device_id`` of that ``TokenSet``; it is reused,
            never regenerated.
        config: Provider configuration; defaults are used when omitted.
        transport: Optional httpx transport (used by tests).

    Returns:
        A new :class:`TokenSet` carrying *device_id*.

    Raises:
        PreconditionFailed: If either input is empty.
        RefreshError: If any sub-step fails; ``step`` is one of
            ``refresh_grant``, ``secondary_exchange`` or ``gateway_login``.
    """
    if not refresh_token or not device_id:
        raise PreconditionFailed("refresh requires a refresh token and a device id")
    config = config or ProviderConfig()

    with httpx.Client(timeout=config.timeout, transport=transport) as client, \
            httpx.Client(timeout=config.timeout, transport=transport) as gateway_client:
        step = "refresh_grant"
        try:
            tokens = provider.refresh_grant(client, config, refresh_token)
            step = "secondary_exchange"
            exchange_code = provider.exchange_for_provider_code(
                client, config, tokens.access_token
            )
            step = "gateway_login"
            login = provider.gateway_login(
                gateway_client, config, device_id, tokens.id_token, exchange_code
            )
        except ToriAuthError as exc:
            logger.warning("Token refresh failed at %s", step)
            raise RefreshError(step, exc) from exc

    token_set = provider.build_token_set(login, tokens, device_id)
    logger.info("Token refresh succeeded for user %s", token_set.user_id)
    return token_set
