"""
Base HTTP transport built on httpx.

This module provides the default `Transport` implementation used by the
authentication core. It includes support for proxies, default headers and
timeouts, and maps httpx network failures onto the shared exception types.
"""

from typing import Any
import logging

import httpx

from .exceptions import ConfigurationError, ProxyError, RequestTimeoutError, TransportError
from .types import HttpResponse


logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "GarminAuth/0.1.0"


class HttpxTransport:
    """
    Async HTTP transport backed by `httpx.AsyncClient`.

    The transport returns every response regardless of status code; deciding
    what a 401 or a 500 means is left to the caller. Redirects are returned
    as-is unless `follow_redirects` is set, in which case ``Set-Cookie``
    headers from intermediate hops are reported along with the final response
    headers.

    Example:
        >>> async with HttpxTransport(proxy="proxy.example.com:8080") as transport:
        ...     response = await transport.send("GET", "https://example.com")
        ...     print(response.status)
    """

    def __init__(
        self,
        proxy: str | None = None,
        timeout: float = 30.0,
        follow_redirects: bool = False,
        **kwargs: Any,
    ):
        """
        Initialize the transport.

        Args:
            proxy: Proxy URL in format "host:port" or "http://host:port".
            timeout: Request timeout in seconds. Defaults to 30.0.
            follow_redirects: Whether httpx follows redirects itself. Defaults to
                False so the caller sees, and can cookie, every hop.
            **kwargs: Additional arguments passed to httpx.AsyncClient.
                     Common options include:
                     - headers: Custom default headers dict
                     - verify: SSL verification (bool or path to cert)
                     - transport: Custom httpx transport (tests use MockTransport)

        Raises:
            ConfigurationError: If proxy format is invalid.
        """
        self.proxy = proxy

        # Configure proxy if provided
        if self.proxy is not None:
            try:
                proxy_url = (
                    self.proxy
                    if self.proxy.startswith("http")
                    else f"http://{self.proxy}"
                )
                kwargs["proxy"] = proxy_url
                logger.debug(f"Proxy configured: {proxy_url}")
            except Exception as e:
                raise ConfigurationError(f"Invalid proxy configuration: {e}") from e

        if "timeout" not in kwargs:
            kwargs["timeout"] = timeout

        default_headers = {
            "Accept": "*/*",
            "User-Agent": DEFAULT_USER_AGENT,
        }
        user_headers = kwargs.pop("headers", {})

        self.client = httpx.AsyncClient(
            headers={**default_headers, **user_headers},
            follow_redirects=follow_redirects,
            **kwargs,
        )

        logger.info("Httpx transport initialized")

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        body: str | bytes | None = None,
    ) -> HttpResponse:
        """
        Perform an HTTP request and return the raw response.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, PATCH, etc.).
            url: Absolute request URL, query string included.
            headers: Headers for this specific request.
            body: Request body, already encoded.

        Returns:
            HttpResponse with status, header pairs, text body and final URL.

        Raises:
            ProxyError: If there's a proxy-related connection issue.
            RequestTimeoutError: If the request times out.
            TransportError: For any other network-level failure.
        """
        try:
            logger.debug(f"{method} {url.split('?', 1)[0]}")
            response = await self.client.request(
                method,
                url,
                headers=headers,
                content=body,
            )
        except httpx.ProxyError as e:
            logger.error(f"Proxy error: {e}")
            raise ProxyError(f"Proxy connection failed: {e}") from e
        except httpx.TimeoutException as e:
            logger.error(f"Request timeout: {e}")
            raise RequestTimeoutError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            logger.error(f"Connection error: {e}")
            raise TransportError(f"Request failed: {e}") from e

        # Cookie state belongs to the caller; never replay httpx's own jar.
        self.client.cookies.clear()

        logger.debug(f"Response status: {response.status_code}")
        return self._to_http_response(response)

    @staticmethod
    def _to_http_response(response: httpx.Response) -> HttpResponse:
        header_pairs: list[tuple[str, str]] = []
        for hop in response.history:
            header_pairs.extend(
                ("set-cookie", value) for value in hop.headers.get_list("set-cookie")
            )
        header_pairs.extend(response.headers.multi_items())

        return HttpResponse(
            status=response.status_code,
            headers=header_pairs,
            body=response.text,
            url=str(response.url),
        )

    async def close(self) -> None:
        """
        Close the HTTP client and release resources.

        Example:
            >>> transport = HttpxTransport()
            >>> try:
            ...     await transport.send("GET", "https://example.com")
            ... finally:
            ...     await transport.close()
        """
        await self.client.aclose()
        logger.info("Httpx transport closed")

    async def __aenter__(self):
        """Enable use as async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Ensure transport is closed when exiting context."""
        await self.close()
