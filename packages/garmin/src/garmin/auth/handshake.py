"""
# Garmin SSO Handshake

Drives the embedded SSO widget the way a browser would and turns the
resulting service ticket into OAuth credentials.

## Flow:
1. **Cookie step**: GET the embed page to obtain session cookies
2. **CSRF step**: GET the sign-in widget and read its `_csrf` token
3. **Credential step**: POST username/password to the sign-in widget
   - account locked / phone update required → terminal error
   - MFA page → seal the pending state into a session token and stop
   - otherwise the page carries the service ticket
4. **Resume** (MFA only): POST the emailed code with the restored cookies
5. **Exchange**: ticket → OAuth1 signing credential → OAuth2 bearer credential

## States:
`START → AWAITING_TICKET → {AWAITING_SECOND_FACTOR | AUTHENTICATED}` and
`AWAITING_SECOND_FACTOR → AUTHENTICATED`. Any failure drops back to `START`.
Every step is awaited in order; nothing is retried automatically.
"""

import asyncio
import hashlib
import logging
from enum import Enum
from urllib.parse import quote, urlencode

from garmin.auth.credential_manager import CredentialManager
from garmin.auth.oauth_signer import RequestSigner
from garmin.auth.page_scraper import MFA_SUCCESS_TITLE, PageClassifier
from garmin.auth.session_codec import MFA_SESSION_EXPIRY_MINUTES, MFASessionCodec
from garmin.exceptions import (
    AccountLockedError,
    InvalidCredentialsError,
    MFARejectedError,
    MFASessionExpiredError,
    UnsupportedFlowError,
)
from garmin.http_session import HttpSession
from garmin.models import BearerReady, LoginResult, MFARequired, PendingHandshakeState
from garmin.urls import USER_AGENT_BROWSER, GarminUrls
from shared_lib.baseclient.exceptions import HTTPError
from shared_lib.baseclient.types import HttpResponse
from shared_lib.logging import mask_identifier
from shared_lib.utils.date import Clock, default_clock

logger = logging.getLogger(__name__)

CLIENT_ID = "GarminConnect"
WIDGET_ID = "gauth-widget"
LOCALE = "en"


class HandshakeState(Enum):
    START = "start"
    AWAITING_TICKET = "awaiting_ticket"
    AWAITING_SECOND_FACTOR = "awaiting_second_factor"
    AUTHENTICATED = "authenticated"


TRANSITIONS: dict[HandshakeState, frozenset[HandshakeState]] = {
    HandshakeState.START: frozenset(
        {HandshakeState.AWAITING_TICKET, HandshakeState.AWAITING_SECOND_FACTOR}
    ),
    HandshakeState.AWAITING_TICKET: frozenset(
        {HandshakeState.AWAITING_SECOND_FACTOR, HandshakeState.AUTHENTICATED}
    ),
    HandshakeState.AWAITING_SECOND_FACTOR: frozenset({HandshakeState.AUTHENTICATED}),
    HandshakeState.AUTHENTICATED: frozenset(),
}


def _query(params: dict[str, str]) -> str:
    return urlencode(params, quote_via=quote)


def _token_digest(session_token: str) -> str:
    return hashlib.sha256(session_token.encode("utf-8")).hexdigest()


class HandshakeEngine:
    """Runs `login` and `resume` for one client instance."""

    def __init__(
        self,
        session: HttpSession,
        signer: RequestSigner,
        codec: MFASessionCodec,
        credentials: CredentialManager,
        urls: GarminUrls,
        classifier: PageClassifier | None = None,
        clock: Clock = default_clock,
    ) -> None:
        self.session = session
        self.signer = signer
        self.codec = codec
        self.credentials = credentials
        self.urls = urls
        self.classifier = classifier or PageClassifier()
        self.clock = clock

        self.state = HandshakeState.START
        self._lock = asyncio.Lock()
        # digest -> seal time (epoch seconds) of tokens that completed a resume
        self._consumed_tokens: dict[str, float] = {}

    def _transition(self, target: HandshakeState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal handshake transition {self.state.value} -> {target.value}"
            )
        logger.debug(f"Handshake {self.state.value} -> {target.value}")
        self.state = target

    def signin_params(self) -> dict[str, str]:
        embed = self.urls.GARMIN_SSO_EMBED
        return {
            "id": WIDGET_ID,
            "embedWidget": "true",
            "clientId": CLIENT_ID,
            "locale": LOCALE,
            "gauthHost": embed,
            "service": embed,
            "source": embed,
            "redirectAfterAccountLoginUrl": embed,
            "redirectAfterAccountCreationUrl": embed,
        }

    def _form_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/x-www-form-urlencoded",
            "Dnt": "1",
            "Origin": self.urls.GARMIN_SSO_ORIGIN,
            "Referer": self.urls.SIGNIN_URL,
            "User-Agent": USER_AGENT_BROWSER,
        }

    @staticmethod
    def _expect_ok(response: HttpResponse, step: str) -> None:
        if not response.ok:
            logger.error(f"SSO {step} step failed with status {response.status}")
            raise HTTPError(
                f"SSO {step} step failed with status {response.status}",
                status_code=response.status,
                response_body=response.body,
            )

    async def login(self, identifier: str, secret: str) -> LoginResult:
        """
        Run the sign-in flow with a username and password.

        Returns `BearerReady` when Garmin issued a ticket straight away, or
        `MFARequired` carrying the session token to pass to `resume`.
        """
        async with self._lock:
            self.state = HandshakeState.START
            try:
                return await self._login(identifier, secret)
            except Exception:
                self.state = HandshakeState.START
                raise

    async def _login(self, identifier: str, secret: str) -> LoginResult:
        logger.info(f"Starting SSO login for {mask_identifier(identifier)}")
        await self.signer.load_consumer()
        self._transition(HandshakeState.AWAITING_TICKET)

        # Step 1: session cookies
        embed_params = {
            "clientId": CLIENT_ID,
            "locale": LOCALE,
            "service": self.urls.GC_MODERN,
        }
        response = await self.session.send(
            "GET", f"{self.urls.GARMIN_SSO_EMBED}?{_query(embed_params)}"
        )
        self._expect_ok(response, "embed")

        # Step 2: csrf token
        widget_params = {
            "id": WIDGET_ID,
            "embedWidget": "true",
            "locale": LOCALE,
            "gauthHost": self.urls.GARMIN_SSO_EMBED,
        }
        response = await self.session.send(
            "GET", f"{self.urls.SIGNIN_URL}?{_query(widget_params)}"
        )
        self._expect_ok(response, "signin page")
        csrf_token = self.classifier.extract_csrf_token(response.body)
        if not csrf_token:
            raise UnsupportedFlowError("csrf token not found")

        # Step 3: credentials
        signin_params = self.signin_params()
        form = urlencode(
            {"username": identifier, "password": secret, "embed": "true", "_csrf": csrf_token}
        )
        response = await self.session.send(
            "POST",
            f"{self.urls.SIGNIN_URL}?{_query(signin_params)}",
            headers=self._form_headers(),
            body=form,
        )
        if response.status == 401:
            raise InvalidCredentialsError(
                "Login failed (ticket not found), please check username and password"
            )
        self._expect_ok(response, "signin")
        page = response.body

        lock_status = self.classifier.extract_lock_status(page)
        if lock_status:
            logger.warning(f"Account locked: {lock_status}")
            raise AccountLockedError(
                "Login failed (account locked), open Garmin Connect in a browser to unlock it"
            )

        if self.classifier.requires_phone_update(page):
            raise UnsupportedFlowError(
                "Login failed (update phone number), the account requires a phone number update"
            )

        if self.classifier.is_mfa_page(page):
            mfa_csrf_token = self.classifier.extract_csrf_token(page) or csrf_token
            state = PendingHandshakeState(
                cookies=self.session.cookies.snapshot(),
                csrf_token=mfa_csrf_token,
                signin_params=signin_params,
                timestamp=int(self.clock() * 1000),
            )
            self._transition(HandshakeState.AWAITING_SECOND_FACTOR)
            logger.info("MFA code required, returning session token")
            return MFARequired(session_token=self.codec.seal(state))

        ticket = self.classifier.extract_ticket(page)
        if not ticket:
            raise InvalidCredentialsError(
                "Login failed (ticket not found), please check username and password"
            )

        return await self._complete(ticket)

    async def resume(self, session_token: str, code: str) -> BearerReady:
        """
        Finish a login that stopped at the MFA page.

        ## Raises:
        - `MFASessionExpiredError`: Token too old, or already used on this client
        - `MFASessionCorruptError`: Token cannot be decrypted or parsed
        - `MFARejectedError`: Garmin did not answer with the success page
        """
        async with self._lock:
            self.state = HandshakeState.START
            try:
                return await self._resume(session_token, code)
            except Exception:
                self.state = HandshakeState.START
                raise

    def _forget_expired_tokens(self) -> None:
        horizon = self.clock() - MFA_SESSION_EXPIRY_MINUTES * 60
        self._consumed_tokens = {
            digest: sealed_at
            for digest, sealed_at in self._consumed_tokens.items()
            if sealed_at >= horizon
        }

    async def _resume(self, session_token: str, code: str) -> BearerReady:
        self._forget_expired_tokens()
        digest = _token_digest(session_token)
        if digest in self._consumed_tokens:
            raise MFASessionExpiredError("MFA session already used. Please login again.")

        state = self.codec.open(session_token)
        self._transition(HandshakeState.AWAITING_SECOND_FACTOR)

        self.session.cookies.restore(state.cookies)
        await self.signer.load_consumer()

        form = urlencode(
            {
                "mfa-code": code,
                "embed": "true",
                "_csrf": state.csrf_token,
                "fromPage": "setupEnterMfaCode",
                "rememberMyBrowserChecked": "true",
            }
        )
        response = await self.session.send(
            "POST",
            f"{self.urls.MFA_VERIFY}?{_query(state.signin_params)}",
            headers=self._form_headers(),
            body=form,
        )
        self._expect_ok(response, "MFA verification")

        title = self.classifier.extract_page_title(response.body) or "Unknown"
        if title != MFA_SUCCESS_TITLE:
            raise MFARejectedError(
                f"MFA verification failed. Page title: {title}", title=title
            )

        ticket = self.classifier.extract_ticket(response.body)
        if not ticket:
            raise MFARejectedError("MFA verification failed: ticket not found", title=title)

        result = await self._complete(ticket)
        self._consumed_tokens[digest] = state.timestamp / 1000
        return result

    async def _complete(self, ticket: str) -> BearerReady:
        signing = await self.signer.exchange_ticket_for_signing_credential(ticket)
        bearer = await self.signer.exchange_signing_for_bearer_credential(signing)
        self.credentials.set_credentials(signing, bearer)
        self._transition(HandshakeState.AUTHENTICATED)
        logger.info("SSO login complete")
        return BearerReady(credentials=self.credentials.export())
