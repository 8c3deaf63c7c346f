"""
Shared fixtures for the Garmin authentication tests.

`FakeGarminServer` is a scripted `Transport`: every (method, URL without
query) pair maps to a canned `HttpResponse` or to a callable building one. The
default script is a full successful login without MFA; tests swap single
routes to exercise the other branches.
"""

import inspect
import json
from collections.abc import Awaitable, Callable
from types import SimpleNamespace
from urllib.parse import parse_qs, urlsplit

import pytest

from garmin.client import GarminClient
from garmin.config import AuthConfig
from garmin.urls import OAUTH_CONSUMER_URL, GarminUrls
from shared_lib.baseclient.types import HttpRequest, HttpResponse

SECRET_KEY = "0123456789abcdef0123456789abcdef"
START_TIME = 1_700_000_000.0

URLS = GarminUrls("garmin.com")

EMBED_PAGE = "<html><head><title>GARMIN Authentication Application</title></head></html>"
SIGNIN_PAGE = (
    "<html><head><title>GARMIN Authentication Application</title></head><body>"
    '<form method="post"><input type="hidden" name="_csrf" value="csrf-step2" />'
    "</form></body></html>"
)
SUCCESS_PAGE = (
    "<html><head><title>Success</title></head><body><script>"
    'var response_url = "https://sso.garmin.com/sso/embed?ticket=ST-0123-abc-cas";'
    "</script></body></html>"
)
MFA_PAGE = (
    "<html><head><title>Enter MFA Code</title></head><body>"
    '<form action="/sso/verifyMFA/loginEnterMfaCode" method="post">'
    '<input type="hidden" name="_csrf" value="csrf-mfa" />'
    '<input type="text" name="mfa-code" id="mfa-code" />'
    "</form></body></html>"
)
MFA_MARKER_ONLY_PAGE = (
    "<html><head><title>GARMIN Authentication Application</title></head><body>"
    '<form action="/sso/verifyMFA/loginEnterMfaCode" method="post"></form>'
    "</body></html>"
)
MFA_FAILED_PAGE = (
    "<html><head><title>Enter MFA Code</title></head><body>"
    '<div class="error">Invalid code</div></body></html>'
)
LOCKED_PAGE = (
    "<html><head><title>GARMIN Authentication Application</title></head><body>"
    '<script>var status = "ACCOUNT_LOCKED";</script></body></html>'
)
PHONE_UPDATE_PAGE = "<html><head><title>Update Phone Number</title></head></html>"
INVALID_CREDENTIALS_PAGE = (
    "<html><head><title>GARMIN Authentication Application</title></head><body>"
    '<div id="status">Invalid sign in. Please try again.</div></body></html>'
)

Responder = HttpResponse | Callable[[HttpRequest], HttpResponse | Awaitable[HttpResponse]]


def html(body: str, status: int = 200, cookies: tuple[str, ...] = ()) -> HttpResponse:
    headers = [("Content-Type", "text/html;charset=UTF-8")]
    headers.extend(("Set-Cookie", cookie) for cookie in cookies)
    return HttpResponse(status=status, headers=headers, body=body)


def json_response(payload: dict, status: int = 200) -> HttpResponse:
    return HttpResponse(
        status=status,
        headers=[("Content-Type", "application/json")],
        body=json.dumps(payload),
    )


def query_of(request: HttpRequest) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlsplit(request.url).query).items()}


def form_of(request: HttpRequest) -> dict[str, str]:
    body = request.body.decode() if isinstance(request.body, bytes) else request.body
    return {k: v[0] for k, v in parse_qs(body or "").items()}


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGarminServer:
    """Scripted transport playing Garmin SSO and the OAuth service."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Responder] = {}
        self.requests: list[HttpRequest] = []
        self.exchange_count = 0
        self.closed = False

        self.route("GET", OAUTH_CONSUMER_URL, json_response(
            {"consumer_key": "consumer-key", "consumer_secret": "consumer-secret"}
        ))
        self.route("GET", URLS.GARMIN_SSO_EMBED, html(EMBED_PAGE, cookies=("SESSIONID=embed-1; Path=/; HttpOnly",)))
        self.route("GET", URLS.SIGNIN_URL, html(SIGNIN_PAGE, cookies=("__cflb=lb-1; Path=/",)))
        self.route("POST", URLS.SIGNIN_URL, html(SUCCESS_PAGE, cookies=("CASTGC=tgc-1; Path=/sso",)))
        self.route("POST", URLS.MFA_VERIFY, html(SUCCESS_PAGE))
        self.route("GET", URLS.PREAUTHORIZED, HttpResponse(
            status=200,
            headers=[("Content-Type", "text/plain")],
            body="oauth_token=oauth1-token&oauth_token_secret=oauth1-secret"
            "&mfa_token=mfa-1&mfa_expiration_timestamp=2026-12-31+00%3A00%3A00.000",
        ))
        self.route("POST", URLS.EXCHANGE, self._exchange)

    def route(self, method: str, url: str, responder: Responder) -> None:
        self.routes[(method, url)] = responder

    def _exchange(self, request: HttpRequest) -> HttpResponse:
        self.exchange_count += 1
        return json_response(
            {
                "scope": "CONNECT_READ CONNECT_WRITE",
                "jti": f"jti-{self.exchange_count}",
                "access_token": f"access-{self.exchange_count}",
                "token_type": "Bearer",
                "refresh_token": f"refresh-{self.exchange_count}",
                "expires_in": 3600,
                "refresh_token_expires_in": 7200,
            }
        )

    def requests_to(self, method: str, url: str) -> list[HttpRequest]:
        return [
            r for r in self.requests
            if r.method == method and r.url.split("?", 1)[0] == url
        ]

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        body: str | bytes | None = None,
    ) -> HttpResponse:
        request = HttpRequest(method=method, url=url, headers=dict(headers or {}), body=body)
        self.requests.append(request)

        responder = self.routes.get((method, url.split("?", 1)[0]))
        if responder is None:
            raise AssertionError(f"Unexpected request: {method} {url}")

        response = responder if isinstance(responder, HttpResponse) else responder(request)
        if inspect.isawaitable(response):
            response = await response
        return response

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def server() -> FakeGarminServer:
    return FakeGarminServer()


@pytest.fixture
def auth_config() -> AuthConfig:
    return AuthConfig(mfa_secret_key=SECRET_KEY)


@pytest.fixture
def client(auth_config: AuthConfig, server: FakeGarminServer, clock: FakeClock) -> GarminClient:
    return GarminClient(
        auth_config, transport=server, clock=clock, nonce_factory=lambda: "fixed-nonce"
    )


@pytest.fixture
def make_client(auth_config: AuthConfig, clock: FakeClock):
    """Build extra clients (for cross-instance MFA resumption)."""

    def factory(transport: FakeGarminServer, config: AuthConfig | None = None) -> GarminClient:
        return GarminClient(
            config or auth_config,
            transport=transport,
            clock=clock,
            nonce_factory=lambda: "fixed-nonce",
        )

    return factory


@pytest.fixture
def pages() -> SimpleNamespace:
    """Canned SSO pages."""
    return SimpleNamespace(
        embed=EMBED_PAGE,
        signin=SIGNIN_PAGE,
        success=SUCCESS_PAGE,
        mfa=MFA_PAGE,
        mfa_marker_only=MFA_MARKER_ONLY_PAGE,
        mfa_failed=MFA_FAILED_PAGE,
        locked=LOCKED_PAGE,
        phone_update=PHONE_UPDATE_PAGE,
        invalid_credentials=INVALID_CREDENTIALS_PAGE,
    )


@pytest.fixture
def wire() -> SimpleNamespace:
    """Helpers for building responses and reading recorded requests."""
    return SimpleNamespace(
        urls=URLS,
        html=html,
        json_response=json_response,
        query_of=query_of,
        form_of=form_of,
        secret_key=SECRET_KEY,
        start_time=START_TIME,
    )


@pytest.fixture
def server_factory():
    """Build additional scripted servers."""
    return FakeGarminServer
