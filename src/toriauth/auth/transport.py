"""Thin helpers around :class:`httpx.Client` shared by every flow step.

They translate transport failures into :class:`~toriauth.exceptions.TransportError`,
non-success statuses into :class:`~toriauth.exceptions.UnexpectedStatus`
(with the raw body attached), and undecodable JSON into
:class:`~toriauth.exceptions.MissingExpectedField`.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlsplit

import httpx

from toriauth.exceptions import MissingExpectedField, TransportError, UnexpectedStatus

logger = logging.getLogger(__name__)

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=utf-8"


def send(client: httpx.Client, method: str, url: str, **kwargs: Any) -> httpx.Response:
    """Send one request, mapping :class:`httpx.HTTPError` to ``TransportError``."""
    parts = urlsplit(url)
    logger.debug("%s %s%s", method, parts.netloc, parts.path)
    try:
        return client.request(method, url, **kwargs)
    except httpx.HTTPError as exc:
        raise TransportError(
            f"{method} {parts.netloc}{parts.path} failed: {exc}"
        ) from exc


def require_success(response: httpx.Response, operation: str) -> None:
    """Raise :class:`UnexpectedStatus` unless the status is 2xx."""
    if not response.is_success:
        raise UnexpectedStatus(operation, response.status_code, response.text)


def json_body(response: httpx.Response, operation: str) -> dict[str, Any]:
    """Decode a JSON object body or raise :class:`MissingExpectedField`."""
    try:
        data = response.json()
    except ValueError as exc:
        raise MissingExpectedField(
            "body",
            f"{operation} returned a non-JSON body: {response.text[:200]}",
            body=response.text,
        ) from exc
    if not isinstance(data, dict):
        raise MissingExpectedField(
            "body", f"{operation} returned non-object JSON", body=response.text
        )
    return data


def attribute(data: dict[str, Any], *path: str) -> str:
    """Walk nested ``data`` keys and return the string found, or ``""``."""
    node: Any = data
    for key in path:
        if not isinstance(node, dict):
            return ""
        node = node.get(key)
    return node if isinstance(node, str) else ""
