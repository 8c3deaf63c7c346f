"""# Garmin Connect Authentication Client

Main entry point for signing in to Garmin Connect and calling its API with
the resulting credentials.

## Basic Usage

```python
from garmin import AuthConfig, GarminClient

async with GarminClient(AuthConfig.from_env()) as client:
    result = await client.login("user@example.com", "password")
    if result.needs_mfa:
        code = input("Code from email: ")
        result = await client.resume(result.session_token, code)

    profile = await client.get(f"{client.urls.GC_API}/userprofile-service/socialProfile")
```

## MFA across processes

`MFARequired.session_token` is self-contained and encrypted. A server can
return it to its caller and finish the login later on another client
instance configured with the same `MFA_SECRET_KEY`. Tokens expire after five
minutes and cannot be used twice on the same client.

## Storing credentials

The client never writes credentials anywhere. Use `export_credentials()` to
take a copy and `restore_credentials()` to load it back into a new client.
"""

import json
import logging
from collections.abc import Callable
from typing import Any
from urllib.parse import urlencode

from garmin.auth.auth_tokens import BearerCredential, SigningCredential
from garmin.auth.cookie_manager import CookieManager
from garmin.auth.credential_manager import CredentialManager
from garmin.auth.handshake import HandshakeEngine
from garmin.auth.oauth_signer import RequestSigner, generate_nonce
from garmin.auth.page_scraper import PageClassifier
from garmin.auth.session_codec import MFASessionCodec
from garmin.config import AuthConfig
from garmin.http_session import HttpSession
from garmin.models import BearerReady, ExportedCredentials, LoginResult
from garmin.urls import GarminUrls
from shared_lib.baseclient.client import HttpxTransport
from shared_lib.baseclient.exceptions import HTTPError
from shared_lib.baseclient.types import HttpRequest, HttpResponse, Transport
from shared_lib.utils.date import Clock, default_clock

logger = logging.getLogger(__name__)


class GarminClient:
    """
    # Garmin Client

    Wires the cookie jar, page classifier, session codec, request signer,
    handshake engine and credential manager together for one account.

    ## Args:
    - `config` (AuthConfig): Validated immediately; raises `ConfigurationError`
    - `transport` (Transport, optional): Defaults to an `HttpxTransport` built
      from `config`; a transport passed in is not closed by the client
    - `classifier` (PageClassifier, optional): SSO page detection rules
    - `clock` (Clock, optional): Time source for every expiry decision
    """

    def __init__(
        self,
        config: AuthConfig,
        transport: Transport | None = None,
        classifier: PageClassifier | None = None,
        clock: Clock = default_clock,
        nonce_factory: Callable[[], str] = generate_nonce,
    ) -> None:
        config.validate()
        self.config = config
        self.urls = GarminUrls(config.domain)

        self._owns_transport = transport is None
        self.transport = transport or HttpxTransport(
            proxy=config.proxy, timeout=config.timeout
        )
        self.cookies = CookieManager()
        self.session = HttpSession(self.transport, self.cookies)

        self.signer = RequestSigner(
            self.session,
            self.urls,
            clock=clock,
            consumer=config.preset_consumer,
            consumer_url=config.consumer_url,
            nonce_factory=nonce_factory,
        )
        self.credentials = CredentialManager(
            self.signer.exchange_signing_for_bearer_credential, clock=clock
        )
        self.handshake = HandshakeEngine(
            self.session,
            self.signer,
            MFASessionCodec(config.mfa_secret_key, clock=clock),
            self.credentials,
            self.urls,
            classifier=classifier,
            clock=clock,
        )
        self.common_headers: dict[str, str] = {}

    async def login(self, identifier: str, secret: str) -> LoginResult:
        return await self.handshake.login(identifier, secret)

    async def resume(self, session_token: str, code: str) -> BearerReady:
        return await self.handshake.resume(session_token, code)

    def export_credentials(self) -> ExportedCredentials:
        return self.credentials.export()

    def restore_credentials(
        self,
        signing: SigningCredential | None,
        bearer: BearerCredential | None = None,
    ) -> None:
        """Load credentials exported earlier (no login round trips)."""
        self.credentials.set_credentials(signing, bearer)
        logger.info("Credentials restored")

    def set_common_headers(self, headers: dict[str, str]) -> None:
        """Headers added to every authorized call."""
        self.common_headers.update(headers)

    async def ensure_fresh(self) -> BearerCredential | None:
        return await self.credentials.ensure_fresh()

    async def authorized_call(self, request: HttpRequest) -> HttpResponse:
        """
        Send `request` with the bearer token attached.

        A 401 triggers one shared renewal and a single retry. Any other status
        is returned untouched.
        """
        return await self.credentials.call(self._send, request)

    async def _send(self, request: HttpRequest) -> HttpResponse:
        headers = {**self.common_headers, **request.headers}
        return await self.session.send(
            request.method, request.url, headers=headers, body=request.body
        )

    async def _request_json(
        self,
        method: str,
        url: str,
        data: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        request_headers = {"Accept": "application/json", **(headers or {})}
        body: str | bytes | None = None
        if isinstance(data, (str, bytes)):
            body = data
        elif data is not None:
            body = json.dumps(data)
            request_headers.setdefault("Content-Type", "application/json")

        response = await self.authorized_call(
            HttpRequest(method=method, url=url, headers=request_headers, body=body)
        )
        if not response.ok:
            logger.error(f"{method} {url} failed with status {response.status}")
            raise HTTPError(
                f"HTTP {response.status} for {method} {url}",
                status_code=response.status,
                response_body=response.body,
            )

        if not response.body:
            return None
        try:
            return response.json()
        except ValueError:
            return response.body

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        if params:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}{urlencode(params)}"
        return await self._request_json("GET", url, headers=headers)

    async def post(
        self, url: str, data: Any = None, headers: dict[str, str] | None = None
    ) -> Any:
        return await self._request_json("POST", url, data=data, headers=headers)

    async def put(
        self, url: str, data: Any = None, headers: dict[str, str] | None = None
    ) -> Any:
        return await self._request_json("PUT", url, data=data, headers=headers)

    async def delete(self, url: str, headers: dict[str, str] | None = None) -> Any:
        # Garmin Connect expects deletes tunnelled through POST.
        override = {**(headers or {}), "X-Http-Method-Override": "DELETE"}
        return await self._request_json("POST", url, headers=override)

    async def close(self) -> None:
        if self._owns_transport:
            await self.transport.close()

    async def __aenter__(self) -> "GarminClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
