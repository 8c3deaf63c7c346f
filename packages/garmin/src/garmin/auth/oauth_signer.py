"""
OAuth 1.0a request signing and the two credential exchanges.

Garmin's SSO ends with a service ticket. The ticket is traded for an OAuth1
token (`SigningCredential`) through a signed `preauthorized` call, and the
OAuth1 token is traded for an OAuth2 token (`BearerCredential`) through a
signed `exchange/user/2.0` call. The same second exchange is used for every
renewal.

Signatures are HMAC-SHA1 over the standard base string::

    METHOD & enc(base url) & enc(sorted "k=v" pairs joined by "&")

where the pairs include the query string, any form parameters and the
`oauth_*` parameters, and `enc` is RFC 3986 percent-encoding.
"""

import asyncio
import base64
import hashlib
import hmac
import logging
import secrets
import string
from collections.abc import Callable
from urllib.parse import parse_qs, parse_qsl, quote, urlencode, urlsplit

from pydantic import ValidationError

from garmin.auth.auth_tokens import BearerCredential, OAuthConsumer, SigningCredential
from garmin.exceptions import ExchangeFailedError
from garmin.http_session import HttpSession
from garmin.models import OAuth2TokenResponse, OAuthConsumerPayload
from garmin.urls import OAUTH_CONSUMER_URL, USER_AGENT_CONNECTMOBILE, GarminUrls
from shared_lib.utils.date import Clock, default_clock

logger = logging.getLogger(__name__)

SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"
NONCE_ALPHABET = string.ascii_letters + string.digits
NONCE_LENGTH = 32


def percent_encode(value: object) -> str:
    """RFC 3986 encoding: everything but unreserved characters is escaped."""
    return quote(str(value), safe="~")


def generate_nonce() -> str:
    return "".join(secrets.choice(NONCE_ALPHABET) for _ in range(NONCE_LENGTH))


class OAuth1Signer:
    """
    HMAC-SHA1 signer bound to one consumer identity.

    `clock` and `nonce_factory` are injectable so that signatures are
    reproducible in tests.
    """

    def __init__(
        self,
        consumer: OAuthConsumer,
        clock: Clock = default_clock,
        nonce_factory: Callable[[], str] = generate_nonce,
    ) -> None:
        self.consumer = consumer
        self.clock = clock
        self.nonce_factory = nonce_factory

    def base_string(
        self,
        method: str,
        url: str,
        params: dict[str, str] | None = None,
    ) -> str:
        parts = urlsplit(url)
        base_url = f"{parts.scheme}://{parts.netloc}{parts.path}"

        pairs = parse_qsl(parts.query, keep_blank_values=True)
        pairs.extend((params or {}).items())
        encoded = sorted((percent_encode(k), percent_encode(v)) for k, v in pairs)
        param_string = "&".join(f"{k}={v}" for k, v in encoded)

        return "&".join(
            [method.upper(), percent_encode(base_url), percent_encode(param_string)]
        )

    def signing_key(self, token_secret: str | None = None) -> str:
        return f"{percent_encode(self.consumer.secret)}&{percent_encode(token_secret or '')}"

    def sign(self, base_string: str, token_secret: str | None = None) -> str:
        digest = hmac.new(
            self.signing_key(token_secret).encode("utf-8"),
            base_string.encode("utf-8"),
            hashlib.sha1,
        ).digest()
        return base64.b64encode(digest).decode("ascii")

    def authorize(
        self,
        method: str,
        url: str,
        token: SigningCredential | None = None,
        form: dict[str, str] | None = None,
    ) -> dict[str, str]:
        """
        Build the signed `oauth_*` parameter set for one request.

        Args:
            method: HTTP method.
            url: Full request URL; its query string takes part in the signature.
            token: OAuth1 token to sign with, if any.
            form: Form-encoded body parameters, if any.

        Returns:
            The `oauth_*` parameters including `oauth_signature`.
        """
        oauth_params = {
            "oauth_consumer_key": self.consumer.key,
            "oauth_nonce": self.nonce_factory(),
            "oauth_signature_method": SIGNATURE_METHOD,
            "oauth_timestamp": str(int(self.clock())),
            "oauth_version": OAUTH_VERSION,
        }
        if token is not None:
            oauth_params["oauth_token"] = token.key

        base = self.base_string(method, url, {**(form or {}), **oauth_params})
        oauth_params["oauth_signature"] = self.sign(
            base, token.secret if token is not None else None
        )
        return oauth_params

    @staticmethod
    def to_header(oauth_params: dict[str, str]) -> dict[str, str]:
        """Render signed parameters as an `Authorization: OAuth ...` header."""
        rendered = ", ".join(
            f'{percent_encode(k)}="{percent_encode(v)}"'
            for k, v in sorted(oauth_params.items())
            if k.startswith("oauth_")
        )
        return {"Authorization": f"OAuth {rendered}"}


class RequestSigner:
    """
    # Credential Exchanges

    Owns the consumer identity and performs the ticket → OAuth1 and
    OAuth1 → OAuth2 exchanges.

    ## Consumer identity:
    Fetched once from the well-known consumer document (without cookies) and
    cached for the lifetime of the instance. Concurrent first callers share a
    single fetch. A consumer passed in at construction is used as-is.

    ## Errors:
    Any non-2xx answer or unreadable body raises `ExchangeFailedError`; there
    is no retry at this layer. Network failures propagate as `TransportError`.
    """

    def __init__(
        self,
        session: HttpSession,
        urls: GarminUrls,
        clock: Clock = default_clock,
        consumer: OAuthConsumer | None = None,
        consumer_url: str = OAUTH_CONSUMER_URL,
        nonce_factory: Callable[[], str] = generate_nonce,
    ) -> None:
        self.session = session
        self.urls = urls
        self.clock = clock
        self.consumer = consumer
        self.consumer_url = consumer_url
        self.nonce_factory = nonce_factory
        self._consumer_lock = asyncio.Lock()

    async def load_consumer(self) -> OAuthConsumer:
        if self.consumer is not None:
            return self.consumer

        async with self._consumer_lock:
            if self.consumer is None:
                self.consumer = await self._fetch_consumer()
        return self.consumer

    async def _fetch_consumer(self) -> OAuthConsumer:
        logger.debug("Fetching OAuth consumer identity")
        response = await self.session.transport.send(
            "GET", self.consumer_url, headers={"Accept": "application/json"}
        )
        if not response.ok:
            raise ExchangeFailedError(
                f"OAuth consumer fetch failed with status {response.status}",
                step="consumer",
                status_code=response.status,
            )

        try:
            payload = OAuthConsumerPayload.model_validate_json(response.body)
        except ValidationError as e:
            raise ExchangeFailedError(
                "OAuth consumer document is malformed",
                step="consumer",
                status_code=response.status,
            ) from e

        logger.info("OAuth consumer identity loaded")
        return OAuthConsumer(key=payload.consumer_key, secret=payload.consumer_secret)

    def _signer(self, consumer: OAuthConsumer) -> OAuth1Signer:
        return OAuth1Signer(consumer, clock=self.clock, nonce_factory=self.nonce_factory)

    async def exchange_ticket_for_signing_credential(self, ticket: str) -> SigningCredential:
        consumer = await self.load_consumer()
        params = {
            "ticket": ticket,
            "login-url": self.urls.GARMIN_SSO_EMBED,
            "accepts-mfa-tokens": "true",
        }
        url = f"{self.urls.PREAUTHORIZED}?{urlencode(params, quote_via=quote)}"

        signer = self._signer(consumer)
        headers = signer.to_header(signer.authorize("GET", url))
        headers["User-Agent"] = USER_AGENT_CONNECTMOBILE

        response = await self.session.send("GET", url, headers=headers)
        if not response.ok:
            logger.error(f"Ticket exchange rejected with status {response.status}")
            raise ExchangeFailedError(
                f"Ticket exchange failed with status {response.status}",
                step="preauthorized",
                status_code=response.status,
            )

        form = {key: values[0] for key, values in parse_qs(response.body).items()}
        try:
            credential = SigningCredential.from_form(form)
        except KeyError as e:
            raise ExchangeFailedError(
                "Ticket exchange response has no OAuth1 token",
                step="preauthorized",
                status_code=response.status,
            ) from e

        logger.info("OAuth1 signing credential obtained")
        return credential

    async def exchange_signing_for_bearer_credential(
        self, signing: SigningCredential
    ) -> BearerCredential:
        consumer = await self.load_consumer()
        signer = self._signer(consumer)

        oauth_params = signer.authorize("POST", self.urls.EXCHANGE, token=signing)
        url = f"{self.urls.EXCHANGE}?{urlencode(oauth_params, quote_via=quote)}"
        headers = {
            "User-Agent": USER_AGENT_CONNECTMOBILE,
            "Content-Type": "application/x-www-form-urlencoded",
        }

        response = await self.session.send("POST", url, headers=headers)
        if not response.ok:
            logger.error(f"OAuth2 exchange rejected with status {response.status}")
            raise ExchangeFailedError(
                f"OAuth2 exchange failed with status {response.status}",
                step="exchange",
                status_code=response.status,
            )

        try:
            payload = OAuth2TokenResponse.model_validate_json(response.body)
        except ValidationError as e:
            raise ExchangeFailedError(
                "OAuth2 exchange response is malformed",
                step="exchange",
                status_code=response.status,
            ) from e

        credential = BearerCredential.issue(
            access_token=payload.access_token,
            refresh_token=payload.refresh_token,
            expires_in=payload.expires_in,
            refresh_token_expires_in=payload.refresh_token_expires_in,
            issued_at=self.clock(),
            token_type=payload.token_type,
            scope=payload.scope,
        )
        logger.info("OAuth2 bearer credential issued")
        return credential
