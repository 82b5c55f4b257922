"""Manual redirect following that stops at the authorization code.

The provider ends the login with a chain of browser redirects whose last
hop points at the native app's custom URI scheme
(``fi.tori.www.<client_id>://login?code=...``). That URI cannot be
fetched, so redirects are followed by hand and the ``code`` query
parameter is picked out of whichever hop carries it first.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import parse_qs, urljoin, urlsplit

import httpx

from toriauth.auth.transport import HTML_ACCEPT, send
from toriauth.exceptions import (
    NonHttpRedirect,
    RedirectChainEndedWithoutCode,
    TooManyRedirects,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_HOPS = 10


def extract_code(location: str) -> Optional[str]:
    """Return the ``code`` query parameter of *location*, if present.

    Works for ``http(s)`` URLs and for custom app schemes alike.
    """
    codes = parse_qs(urlsplit(location).query).get("code")
    if not codes:
        return None
    return codes[0] or None


def is_http_url(location: str) -> bool:
    return urlsplit(location).scheme.lower() in ("http", "https")


def resolve_location(location: str, base_url: Optional[str]) -> str:
    """Resolve a scheme-less *location* against the URL that produced it."""
    if base_url and not urlsplit(location).scheme:
        return urljoin(base_url, location)
    return location


class RedirectWalker:
    """Follow ``Location`` headers until an authorization code appears.

    Args:
        client: The flow's HTTP client. It must not follow redirects by
            itself, and its cookie jar carries the login session.
        user_agent: ``User-Agent`` sent on each hop.
        max_hops: Upper bound on locations inspected.
    """

    def __init__(
        self,
        client: httpx.Client,
        user_agent: str,
        max_hops: int = DEFAULT_MAX_HOPS,
    ) -> None:
        self._client = client
        self._headers = {"User-Agent": user_agent, "Accept": HTML_ACCEPT}
        self._max_hops = max_hops

    def walk(self, location: str, base_url: Optional[str] = None) -> str:
        """Return the authorization code reachable from *location*.

        Each iteration inspects one location. A code-bearing location is
        returned without any request being made for it.

        Args:
            location: The first ``Location`` value.
            base_url: URL that produced *location*, used to resolve
                relative locations.

        Raises:
            NonHttpRedirect: A hop uses a non-HTTP scheme and has no code.
            RedirectChainEndedWithoutCode: A hop answered without ``Location``.
            TooManyRedirects: No code within ``max_hops`` locations.
            TransportError: A hop could not be fetched.
        """
        for hop in range(1, self._max_hops + 1):
            code = extract_code(location)
            if code:
                logger.debug("Authorization code found at hop %d", hop)
                return code

            target = resolve_location(location, base_url)
            if not is_http_url(target):
                raise NonHttpRedirect(location)

            response = send(self._client, "GET", target, headers=self._headers)
            next_location = response.headers.get("location")
            logger.debug("Redirect hop %d: HTTP %d", hop, response.status_code)
            if not next_location:
                raise RedirectChainEndedWithoutCode(target)

            location = next_location
            base_url = target

        raise TooManyRedirects(self._max_hops)
