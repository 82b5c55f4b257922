"""The multi-step passwordless login flow.

:class:`Authenticator` drives one login attempt for one user:

1. :meth:`~Authenticator.init_session` -- OAuth authorize with PKCE,
   follow redirects to the login page and scrape its CSRF token.
2. :meth:`~Authenticator.start_login` -- e-mail eligibility check, then
   start passwordless auth (the provider e-mails a one-time code).
3. :meth:`~Authenticator.submit_email_code` -- returns whether an SMS
   second factor is required.
4. :meth:`~Authenticator.request_sms` / :meth:`~Authenticator.submit_sms_code`
   -- only when step 3 returned ``True``.
5. :meth:`~Authenticator.finalize` -- identity finish, redirect walk,
   code exchange, secondary exchange and signed gateway login, producing
   a :class:`~toriauth.models.TokenSet`.

An instance is single-use and not thread-safe: steps must be called in
order by one caller. Concurrent logins each need their own instance (and
therefore their own cookie jar). Any failure moves the instance to the
``Failed`` state; the flow can only be restarted with
:meth:`~Authenticator.init_session`.

Example::

    with Authenticator() as auth:
        auth.init_session()
        auth.start_login("user@example.com")
        if auth.submit_email_code(input("E-mail code: ")):
            auth.request_sms()
            auth.submit_sms_code(input("SMS code: "))
        tokens = auth.finalize()
"""

from __future__ import annotations

import enum
import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, TypeVar

import httpx

from toriauth.auth import provider
from toriauth.auth.pkce import (
    code_challenge,
    generate_code_verifier,
    generate_device_id,
    generate_state_token,
)
from toriauth.auth.redirects import RedirectWalker, is_http_url, resolve_location
from toriauth.auth.scraper import CSRF_HEADER, CsrfScraper
from toriauth.auth.state import (
    AuthenticatorState,
    EmailCodeSubmitted,
    Failed,
    Finalized,
    PasswordlessStarted,
    Session,
    SessionInitialized,
    SmsRequested,
    SmsVerified,
    Uninitialized,
    state_name,
)
from toriauth.auth.transport import (
    FORM_CONTENT_TYPE,
    HTML_ACCEPT,
    attribute,
    json_body,
    require_success,
    send,
)
from toriauth.exceptions import (
    EmailCodeRejected,
    EmailRejected,
    FinalizeError,
    MissingExpectedField,
    NonHttpRedirect,
    PasswordlessStartFailed,
    PreconditionFailed,
    SessionInitError,
    SmsRequestFailed,
    SmsVerifyFailed,
    StepError,
    ToriAuthError,
    TooManyRedirects,
    UnexpectedStatus,
)
from toriauth.models import ProviderConfig, TokenSet

logger = logging.getLogger(__name__)

_S = TypeVar("_S")

# Browser fingerprint the login pages expect alongside e-mail submissions.
DEVICE_DATA = json.dumps(
    {
        "fonts": [
            "Arial", "Arial Hebrew", "Arial Rounded MT Bold", "Courier",
            "Courier New", "Georgia", "Helvetica", "Helvetica Neue", "Impact",
            "Monaco", "Palatino", "Times", "Times New Roman", "Trebuchet MS",
            "Verdana",
        ],
        "hasLiedBrowser": "0",
        "hasLiedOs": "0",
        "platform": "iOS",
        "plugins": [],
        "userAgent": "Mobile Safari",
        "userAgentVersion": "26.1",
    },
    separators=(",", ":"),
)
FINISH_DEVICE_DATA = '{"fonts":["Arial"],"platform":"macOS"}'

SUCCESS_MARKER = "/success"


class EmailCodeResult(str, enum.Enum):
    """How a passwordless-code response was interpreted."""

    SUCCESS_MARKER = "success_marker"
    MFA_CHALLENGE = "mfa_challenge"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class EmailCodeOutcome:
    kind: EmailCodeResult
    mfa_id: str = ""

    @property
    def mfa_required(self) -> bool:
        return self.kind is EmailCodeResult.MFA_CHALLENGE


def parse_email_code_response(body: str) -> EmailCodeOutcome:
    """Classify the body returned after submitting the e-mail code.

    A body mentioning the ``/success`` page means no second factor is
    needed. A JSON body with ``data.attributes.sms.id`` is an SMS
    challenge. Anything else is :attr:`EmailCodeResult.UNRECOGNIZED`,
    which callers treat as "no MFA" until the provider says otherwise.
    """
    if SUCCESS_MARKER in body:
        return EmailCodeOutcome(EmailCodeResult.SUCCESS_MARKER)
    try:
        data = json.loads(body)
    except ValueError:
        return EmailCodeOutcome(EmailCodeResult.UNRECOGNIZED)
    if isinstance(data, dict):
        mfa_id = attribute(data, "data", "attributes", "sms", "id")
        if mfa_id:
            return EmailCodeOutcome(EmailCodeResult.MFA_CHALLENGE, mfa_id)
    return EmailCodeOutcome(EmailCodeResult.UNRECOGNIZED)


class Authenticator:
    """Run the login flow for one user and produce a :class:`TokenSet`.

    Args:
        config: Provider endpoints and identifiers. Defaults to
            :class:`~toriauth.models.ProviderConfig` defaults.
        transport: Optional httpx transport shared by both internal
            clients (tests pass an :class:`httpx.MockTransport`).
        scraper: CSRF scraper; the default uses the shared patterns.
    """

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
        scraper: Optional[CsrfScraper] = None,
    ) -> None:
        self._config = config or ProviderConfig()
        self._scraper = scraper or CsrfScraper()
        # Login-host calls share one cookie jar; redirects are walked by hand.
        self._client = httpx.Client(
            timeout=self._config.timeout,
            follow_redirects=False,
            transport=transport,
        )
        # The gateway login goes out without the login session's cookies.
        self._gateway_client = httpx.Client(
            timeout=self._config.timeout,
            transport=transport,
        )
        self._device_id = generate_device_id()
        self._csrf_token = ""
        self._state: AuthenticatorState = Uninitialized()
        self._mfa_fallback_used = False

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> Authenticator:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close both HTTP clients."""
        self._client.close()
        self._gateway_client.close()

    # ------------------------------------------------------------------ #
    # Read-only state
    # ------------------------------------------------------------------ #

    @property
    def device_id(self) -> str:
        """Installation id sent with the gateway login; persist it for refresh."""
        return self._device_id

    @property
    def state(self) -> AuthenticatorState:
        return self._state

    @property
    def mfa_fallback_used(self) -> bool:
        """True if the e-mail code response matched neither known shape."""
        return self._mfa_fallback_used

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #

    def init_session(self) -> None:
        """Start the OAuth authorize flow and load the login page.

        Allowed on a fresh instance or after a failure, in which case the
        session cookies and PKCE values are discarded and regenerated.

        Raises:
            PreconditionFailed: If a flow is already in progress.
            SessionInitError: If the authorize call or any redirect fails,
                or the login page is not reached within ``max_redirects``.
        """
        if not isinstance(self._state, (Uninitialized, Failed)):
            raise PreconditionFailed(
                "init_session must start a new flow", state_name(self._state)
            )
        self._client.cookies.clear()
        self._csrf_token = ""
        self._mfa_fallback_used = False

        session = Session(
            code_verifier=generate_code_verifier(),
            state=generate_state_token(),
            nonce=generate_state_token(),
        )
        with self._step(SessionInitError, "init_session"):
            self._load_login_page(session)
        self._state = SessionInitialized(session)
        logger.info("Login session initialised")

    def start_login(self, email: str) -> None:
        """Check the e-mail address and start passwordless authentication.

        Raises:
            PreconditionFailed: If :meth:`init_session` has not succeeded.
            EmailRejected: If the e-mail status check fails.
            PasswordlessStartFailed: If the passwordless start fails or
                returns no token.
        """
        state = self._require(SessionInitialized, "start_login requires init_session")

        with self._step(EmailRejected, "email_status"):
            self._post_login_api(
                "/authn/api/identity/email-status",
                "email-status",
                json={"email": email, "deviceData": DEVICE_DATA},
                extra_headers={"Sec-Fetch-Site": "same-origin", "Sec-Fetch-Mode": "cors"},
            )

        with self._step(PasswordlessStartFailed, "passwordless_start"):
            response = self._post_login_api(
                "/authn/api/identity/passwordless-start/",
                "passwordless-start",
                data={"connection": "email", "email": email, "deviceData": DEVICE_DATA},
                extra_headers={
                    "Content-Type": FORM_CONTENT_TYPE,
                    "Referer": f"{self._config.login_base_url}/authn/",
                    "Sec-Fetch-Site": "same-origin",
                    "Sec-Fetch-Mode": "cors",
                },
            )
            token = attribute(
                json_body(response, "passwordless-start"), "data", "attributes", "token"
            )
            if not token:
                raise MissingExpectedField("data.attributes.token", body=response.text)

        self._state = PasswordlessStarted(state.session, token)
        logger.info("Passwordless login started")

    def submit_email_code(self, code: str) -> bool:
        """Submit the one-time e-mail code.

        Returns:
            ``True`` if an SMS second factor is required next.

        Raises:
            PreconditionFailed: If :meth:`start_login` has not succeeded.
            EmailCodeRejected: If the provider rejects the code.
        """
        state = self._require(PasswordlessStarted, "submit_email_code requires start_login")

        with self._step(EmailCodeRejected, "email_code"):
            response = self._post_login_api(
                "/authn/api/identity/passwordless-code/",
                "passwordless-code",
                data={
                    "code": code,
                    "remember": "false",
                    "connection": "email",
                    "passwordlessToken": state.passwordless_token,
                },
                extra_headers={"Content-Type": FORM_CONTENT_TYPE},
            )

        outcome = parse_email_code_response(response.text)
        if outcome.kind is EmailCodeResult.UNRECOGNIZED:
            self._mfa_fallback_used = True
            logger.warning(
                "E-mail code response matched no known shape; assuming MFA is "
                "not required (status %d)",
                response.status_code,
            )
        self._state = EmailCodeSubmitted(state.session, outcome.mfa_required, outcome.mfa_id)
        logger.info("E-mail code accepted (MFA required: %s)", outcome.mfa_required)
        return outcome.mfa_required

    def request_sms(self) -> None:
        """Ask the provider to send the SMS code.

        Raises:
            PreconditionFailed: Unless :meth:`submit_email_code` returned ``True``.
            SmsRequestFailed: If the request fails or yields no nonce.
        """
        state = self._state
        if not isinstance(state, EmailCodeSubmitted) or not state.mfa_id:
            raise PreconditionFailed(
                "request_sms requires an MFA challenge from submit_email_code",
                state_name(state),
            )

        with self._step(SmsRequestFailed, "sms_request"):
            response = self._post_login_api(
                "/authn/api/auth/assertion/",
                "auth-assertion",
                json={"method": "mfa/sms", "mfaId": state.mfa_id},
            )
            nonce = attribute(
                json_body(response, "auth-assertion"), "data", "attributes", "nonce"
            )
            if not nonce:
                raise MissingExpectedField("data.attributes.nonce", body=response.text)

        self._state = SmsRequested(state.session, state.mfa_id, nonce)
        logger.info("SMS code requested")

    def submit_sms_code(self, code: str) -> None:
        """Submit the SMS code.

        Raises:
            PreconditionFailed: If :meth:`request_sms` has not succeeded.
            SmsVerifyFailed: If the provider rejects the code.
        """
        state = self._require(SmsRequested, "submit_sms_code requires request_sms")

        with self._step(SmsVerifyFailed, "sms_verify"):
            self._post_login_api(
                "/authn/api/auth/assertion/sms",
                "auth-assertion-sms",
                data={"nonce": state.mfa_nonce, "mfaId": state.mfa_id, "secret": code},
                extra_headers={"Content-Type": FORM_CONTENT_TYPE},
            )

        self._state = SmsVerified(state.session)
        logger.info("SMS code accepted")

    def finalize(self) -> TokenSet:
        """Complete the login and return the credentials.

        Runs, in order: ``identity_finish``, ``redirect_walk``,
        ``token_exchange``, ``secondary_exchange`` and ``gateway_login``.

        Raises:
            PreconditionFailed: If verification is not complete.
            FinalizeError: If any sub-step fails; ``step`` names it.
        """
        state = self._state
        ready = isinstance(state, SmsVerified) or (
            isinstance(state, EmailCodeSubmitted) and not state.mfa_required
        )
        if not ready:
            raise PreconditionFailed(
                "finalize requires a verified e-mail code (and SMS code when required)",
                state_name(state),
            )
        session = state.session  # type: ignore[union-attr]
        config = self._config

        with self._step(FinalizeError, "identity_finish"):
            finish_url, location = self._finish_identity()

        with self._step(FinalizeError, "redirect_walk"):
            walker = RedirectWalker(
                self._client, config.webview_user_agent, config.max_redirects
            )
            oauth_code = walker.walk(location, base_url=finish_url)

        with self._step(FinalizeError, "token_exchange"):
            tokens = provider.exchange_authorization_code(
                self._client, config, oauth_code, session.code_verifier
            )

        with self._step(FinalizeError, "secondary_exchange"):
            exchange_code = provider.exchange_for_provider_code(
                self._client, config, tokens.access_token
            )

        with self._step(FinalizeError, "gateway_login"):
            login = provider.gateway_login(
                self._gateway_client, config, self._device_id, tokens.id_token, exchange_code
            )

        token_set = provider.build_token_set(login, tokens, self._device_id)
        self._state = Finalized(token_set)
        logger.info("Login finalized for user %s", token_set.user_id)
        return token_set

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    @contextmanager
    def _step(self, error_cls: type[StepError], step: str) -> Iterator[None]:
        """Mark the flow failed on error and wrap provider errors in *error_cls*."""
        try:
            yield
        except ToriAuthError as exc:
            self._state = Failed(step)
            logger.debug("Step %s failed: %s", step, type(exc).__name__)
            raise error_cls(step, exc) from exc
        except BaseException:
            self._state = Failed(step)
            raise

    def _require(self, state_type: type[_S], message: str) -> _S:
        if not isinstance(self._state, state_type):
            raise PreconditionFailed(message, state_name(self._state))
        return self._state

    def _login_url(self, path: str) -> str:
        return f"{self._config.login_base_url}{path}"

    def _remember_csrf(self, response: httpx.Response) -> None:
        token = response.headers.get(CSRF_HEADER)
        if token:
            self._csrf_token = token

    def _post_login_api(
        self,
        path: str,
        operation: str,
        extra_headers: Optional[dict[str, str]] = None,
        **kwargs: object,
    ) -> httpx.Response:
        """POST to the login host's JSON API with the session's CSRF token."""
        headers = {
            "User-Agent": self._config.webview_user_agent,
            "Accept": "application/json",
            "Origin": self._config.login_base_url,
        }
        if self._csrf_token:
            headers[CSRF_HEADER] = self._csrf_token
        headers.update(extra_headers or {})
        response = send(
            self._client,
            "POST",
            self._login_url(path),
            params={"client_id": self._config.client_id},
            headers=headers,
            **kwargs,
        )
        self._remember_csrf(response)
        require_success(response, operation)
        return response

    def _load_login_page(self, session: Session) -> None:
        config = self._config
        headers = {"User-Agent": config.webview_user_agent, "Accept": HTML_ACCEPT}
        url = self._login_url("/oauth/authorize")
        response = send(
            self._client,
            "GET",
            url,
            headers=headers,
            params={
                "client_id": config.client_id,
                "redirect_uri": config.redirect_uri,
                "response_type": "code",
                "scope": " ".join(config.scopes),
                "state": session.state,
                "nonce": session.nonce,
                "prompt": "select_account",
                "code_challenge": code_challenge(session.code_verifier),
                "code_challenge_method": "S256",
            },
        )

        hops = 0
        while response.is_redirect:
            if hops >= config.max_redirects:
                raise TooManyRedirects(config.max_redirects)
            hops += 1
            location = resolve_location(response.headers["location"], str(response.url))
            if not is_http_url(location):
                raise NonHttpRedirect(location)
            response = send(self._client, "GET", location, headers=headers)

        require_success(response, "login page")
        token = self._scraper.extract(response.text, response.headers)
        if token:
            self._csrf_token = token
        else:
            logger.warning("No CSRF token found on the login page")

    def _finish_identity(self) -> tuple[str, str]:
        """POST identity/finish and return ``(finish_url, first_location)``."""
        if not self._csrf_token:
            raise MissingExpectedField("csrf_token", "No CSRF token for identity finish")
        url = self._login_url("/authn/identity/finish/")
        response = send(
            self._client,
            "POST",
            url,
            params={"client_id": self._config.client_id},
            data={
                "deviceData": FINISH_DEVICE_DATA,
                "_csrf": self._csrf_token,
                "remember": "true",
            },
            headers={
                "User-Agent": self._config.webview_user_agent,
                "Accept": HTML_ACCEPT,
                "Origin": self._config.login_base_url,
            },
        )
        location = response.headers.get("location")
        if location:
            return str(response.url), location
        if not response.is_success:
            raise UnexpectedStatus("identity finish", response.status_code, response.text)
        raise MissingExpectedField(
            "location",
            f"identity finish did not redirect: {response.text[:200]}",
            body=response.text,
        )
