import logging
from urllib.parse import urljoin, urlsplit

from garmin.auth.cookie_manager import CookieManager
from shared_lib.baseclient.exceptions import TransportError
from shared_lib.baseclient.types import HttpResponse, Transport

logger = logging.getLogger(__name__)

MAX_REDIRECTS = 10
REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
BODY_HEADERS = ("content-type", "content-length")


class HttpSession:
    """
    Transport wrapper that keeps the SSO cookie jar in sync.

    Cookies are attached to every outgoing request and captured from every
    response, whatever its status. Redirects are followed here rather than in
    the transport, so each hop reads the jar and feeds it.
    """

    def __init__(self, transport: Transport, cookies: CookieManager | None = None) -> None:
        self.transport = transport
        self.cookies = cookies or CookieManager()

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        body: str | bytes | None = None,
    ) -> HttpResponse:
        """
        Send a request, following redirects hop by hop.

        303 (and 301/302 after a POST) turns the next hop into a body-less GET,
        307/308 repeat the method and body. `Authorization` is dropped when a
        hop leaves the original host.

        Raises:
            TransportError: More than `MAX_REDIRECTS` hops
        """
        headers = dict(headers or {})
        for _ in range(MAX_REDIRECTS + 1):
            response = await self._send_once(method, url, headers, body)

            location = response.header("location")
            if response.status not in REDIRECT_STATUSES or not location:
                return response

            next_url = urljoin(url, location)
            if response.status == 303 or (response.status in (301, 302) and method == "POST"):
                method = "GET"
                body = None
                headers = {k: v for k, v in headers.items() if k.lower() not in BODY_HEADERS}
            if urlsplit(next_url).netloc != urlsplit(url).netloc:
                headers = {k: v for k, v in headers.items() if k.lower() != "authorization"}

            logger.debug(f"Redirect {response.status} -> {next_url.split('?', 1)[0]}")
            url = next_url

        raise TransportError(f"Too many redirects (more than {MAX_REDIRECTS})")

    async def _send_once(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: str | bytes | None,
    ) -> HttpResponse:
        request_headers = self.cookies.attach(dict(headers))
        response = await self.transport.send(method, url, headers=request_headers, body=body)

        self.cookies.capture(response.headers)
        logger.debug(f"{method} {url.split('?', 1)[0]} -> {response.status}")
        return response
