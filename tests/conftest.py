"""Shared test fixtures for toriauth.

Provides an isolated XDG environment and :class:`FakeProvider`, a scripted
stand-in for the login host and the API gateway that plugs into
:class:`httpx.MockTransport` and records every request it receives.
"""

from __future__ import annotations

import html
import json
from pathlib import Path
from typing import Any, Callable, Union

import httpx
import pytest

from toriauth.models import ProviderConfig


LOGIN = "https://login.example.test"
GATEWAY = "https://gw.example.test"
APP_SCHEME = "fi.tori.www.testclient://login"

Route = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------


def login_page(csrf_token: str = "csrf-page") -> str:
    """A login page with the token inside an entity-encoded bffData div."""
    blob = html.escape(json.dumps({"csrfToken": csrf_token, "locale": "fi"}))
    return f'<html><body><div id="bffData" hidden>{blob}</div></body></html>'


def redirect(location: str, status_code: int = 302) -> httpx.Response:
    return httpx.Response(status_code, headers={"Location": location})


def json_response(data: Any, status_code: int = 200, **headers: str) -> httpx.Response:
    return httpx.Response(status_code, json=data, headers=headers)


# ---------------------------------------------------------------------------
# Fake provider
# ---------------------------------------------------------------------------


def _bare_url(request: httpx.Request) -> str:
    url = request.url
    return f"{url.scheme}://{url.host}{url.path}"


class FakeProvider:
    """Route requests by ``(METHOD, url-without-query)`` to scripted responses.

    A route value may be a response, a callable taking the request, or a
    list of either (consumed in order, last one repeated).
    """

    login = LOGIN
    gateway = GATEWAY
    app_scheme = APP_SCHEME

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, url: str, response: Union[Route, list[Route]]) -> None:
        self.routes[(method.upper(), url)] = response

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, _bare_url(request))
        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404, text=f"no route for {key}")
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if callable(route):
            return route(request)
        # A scripted response may be served more than once.
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls_to(self, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if _bare_url(r) == url]

    def script_login(
        self,
        *,
        mfa: bool = False,
        bearer_token: str = "bearer-xyz",
        user_id: int = 123,
    ) -> None:
        """Script every endpoint of a complete login."""
        self.add("GET", f"{LOGIN}/oauth/authorize", redirect(f"{LOGIN}/authn/?client_id=testclient"))
        self.add(
            "GET",
            f"{LOGIN}/authn/",
            httpx.Response(
                200,
                text=login_page("csrf-page"),
                headers={"Set-Cookie": "session=abc; Path=/"},
            ),
        )
        self.add(
            "POST",
            f"{LOGIN}/authn/api/identity/email-status",
            json_response({"data": {"attributes": {"status": "ok"}}}, **{"X-Csrf-Token": "csrf-header"}),
        )
        self.add(
            "POST",
            f"{LOGIN}/authn/api/identity/passwordless-start/",
            json_response({"data": {"attributes": {"token": "pwl-token"}}}),
        )
        if mfa:
            code_body: Any = {"data": {"attributes": {"sms": {"id": "mfa-1"}}}}
        else:
            code_body = {"data": {"attributes": {"redirectTo": "/authn/success"}}}
        self.add("POST", f"{LOGIN}/authn/api/identity/passwordless-code/", json_response(code_body))
        self.add(
            "POST",
            f"{LOGIN}/authn/api/auth/assertion/",
            json_response({"data": {"attributes": {"nonce": "sms-nonce"}}}),
        )
        self.add("POST", f"{LOGIN}/authn/api/auth/assertion/sms", json_response({"data": {}}))
        self.add("POST", f"{LOGIN}/authn/identity/finish/", redirect(f"{LOGIN}/oauth/authorize/resume"))
        self.add(
            "GET",
            f"{LOGIN}/oauth/authorize/resume",
            redirect(f"{APP_SCHEME}?code=oauth-code&state=s"),
        )
        self.add(
            "POST",
            f"{LOGIN}/oauth/token",
            json_response(
                {
                    "access_token": "access-1",
                    "refresh_token": "refresh-1",
                    "id_token": "id-1",
                    "expires_in": 3600,
                }
            ),
        )
        self.add("POST", f"{LOGIN}/api/2/oauth/exchange", json_response({"data": {"code": "spid-code"}}))
        self.add(
            "POST",
            f"{GATEWAY}/public/login",
            json_response({"userId": user_id, "token": {"type": "Bearer", "value": bearer_token}}),
        )


@pytest.fixture
def provider_config() -> ProviderConfig:
    return ProviderConfig(
        login_base_url=LOGIN,
        gateway_base_url=GATEWAY,
        client_id="testclient",
        redirect_uri=APP_SCHEME,
        timeout=5.0,
    )


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    and clears all TORIAUTH_* environment variables.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("toriauth.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in [
        "TORIAUTH_LOGIN_BASE_URL",
        "TORIAUTH_GATEWAY_BASE_URL",
        "TORIAUTH_HMAC_KEY",
        "TORIAUTH_TIMEOUT",
    ]:
        monkeypatch.delenv(var, raising=False)
    return tmp_path
