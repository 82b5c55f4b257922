"""Request signing for the marketplace API gateway.

Every authenticated gateway call carries an HMAC-SHA512 signature in the
``finn-gw-key`` header. The signed message is::

    METHOD;PATH[?QUERY];SERVICE;BODY

``METHOD`` is upper-cased and stripped. A bare ``/`` (or empty) path
contributes nothing, so ``GET /`` on service ``SVC`` signs ``GET;;SVC;``.
The query, when present, is appended to the path segment with ``?``.
An absent body leaves the final segment empty.

:func:`sign_request` is the pure primitive; :class:`GatewayAuth` plugs it
into :mod:`httpx` so that every request sent through a client is signed
from its own method, path, query and body bytes.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from typing import Generator, Optional, Union

import httpx

SIGNATURE_HEADER = "finn-gw-key"
SERVICE_HEADER = "finn-gw-service"
INSTALLATION_HEADER = "finn-app-installation-id"
DEVICE_INFO_HEADER = "finn-device-info"

DEFAULT_DEVICE_INFO = "Android, mobile"


def _as_bytes(value: Union[bytes, str, None]) -> bytes:
    if value is None:
        return b""
    if isinstance(value, str):
        return value.encode("utf-8")
    return value


def build_message(
    method: str,
    path: str,
    query: Optional[str],
    service: str,
    body: Union[bytes, str, None] = None,
) -> bytes:
    """Return the canonical byte string that :func:`sign_request` signs."""
    target = "" if path in ("", "/") else path
    if query:
        target = f"{target}?{query}"
    head = f"{method.strip().upper()};{target};{service};"
    return head.encode("utf-8") + _as_bytes(body)


def sign_request(
    method: str,
    path: str,
    query: Optional[str],
    service: str,
    body: Union[bytes, str, None],
    key: str,
) -> str:
    """Compute the gateway signature for a request.

    Args:
        method: HTTP method, case-insensitive.
        path: Request path, e.g. ``"/public/login"``.
        query: Raw query string without the leading ``?``, or empty.
        service: Logical gateway service name (``finn-gw-service``).
        body: Raw request body bytes exactly as sent.
        key: Shared HMAC secret.

    Returns:
        The base64 (standard alphabet, padded) HMAC-SHA512 digest.
    """
    message = build_message(method, path, query, service, body)
    digest = hmac.new(key.encode("utf-8"), message, hashlib.sha512).digest()
    return base64.b64encode(digest).decode("ascii")


def signed_headers(
    method: str,
    path: str,
    query: Optional[str],
    service: str,
    body: Union[bytes, str, None],
    installation_id: str,
    key: str,
) -> dict[str, str]:
    """Return the three headers a signed gateway request must carry."""
    return {
        SERVICE_HEADER: service,
        SIGNATURE_HEADER: sign_request(method, path, query, service, body, key),
        INSTALLATION_HEADER: installation_id,
    }


class GatewayAuth(httpx.Auth):
    """Sign every outgoing request for the API gateway.

    The signature is computed from the final request as httpx will send
    it, so the signed body is byte-identical to the transmitted one.

    Args:
        service: Gateway service name.
        installation_id: Device/installation identifier.
        key: Shared HMAC secret.
        device_info: Value for the ``finn-device-info`` header.

    Example::

        auth = GatewayAuth("LOGIN-SERVER-AUTH", device_id, key)
        httpx.post(url, json=payload, auth=auth)
    """

    requires_request_body = True

    def __init__(
        self,
        service: str,
        installation_id: str,
        key: str,
        device_info: str = DEFAULT_DEVICE_INFO,
    ) -> None:
        self.service = service
        self.installation_id = installation_id
        self.key = key
        self.device_info = device_info

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        query = request.url.query.decode("ascii")
        request.headers.update(
            signed_headers(
                request.method,
                request.url.path,
                query,
                self.service,
                request.content,
                self.installation_id,
                self.key,
            )
        )
        request.headers[DEVICE_INFO_HEADER] = self.device_info
        yield request
