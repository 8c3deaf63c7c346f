"""
Alternative HTTP transport built on aiohttp.

Same contract as `HttpxTransport`: every response is returned as an
`HttpResponse` regardless of status, and network-level failures are mapped
onto the shared exception types.
"""

from typing import Any
import asyncio
import logging

import aiohttp
from aiohttp import ClientTimeout

from .client import DEFAULT_USER_AGENT
from .exceptions import ConfigurationError, ProxyError, RequestTimeoutError, TransportError
from .types import HttpResponse


logger = logging.getLogger(__name__)


class AioHttpTransport:
    """
    Async HTTP transport backed by `aiohttp.ClientSession`.

    The session uses a `DummyCookieJar` unless another jar is passed in:
    cookie state belongs to the caller, and a second jar would merge stale
    values into the explicit ``Cookie`` header.

    Attributes:
        session (aiohttp.ClientSession): The underlying aiohttp client session.

    Example:
        >>> async with AioHttpTransport(proxy="proxy.example.com:8080") as transport:
        ...     response = await transport.send("GET", "https://example.com")
    """

    def __init__(
        self,
        proxy: str | None = None,
        timeout: float = 30.0,
        follow_redirects: bool = False,
        **kwargs: Any,
    ):
        """
        Initialize the aiohttp transport.

        Args:
            proxy: Proxy URL in format "host:port" or "http://host:port".
            timeout: Request timeout in seconds. Defaults to 30.0.
            follow_redirects: Whether aiohttp follows redirects itself. Defaults
                to False so the caller sees every hop.
            **kwargs: Additional arguments passed to aiohttp.ClientSession.
                     Common options include:
                     - headers: Custom default headers dict
                     - connector: Custom TCPConnector instance
                     - cookie_jar: Replace the default DummyCookieJar

        Raises:
            ConfigurationError: If proxy configuration is invalid.
        """
        self.proxy = proxy

        proxy_url = None
        if self.proxy is not None:
            try:
                proxy_url = (
                    self.proxy
                    if self.proxy.startswith("http")
                    else f"http://{self.proxy}"
                )
                logger.debug(f"Proxy configured: {proxy_url}")
            except Exception as e:
                raise ConfigurationError(f"Invalid proxy configuration: {e}") from e

        default_headers = {
            "Accept": "*/*",
            "User-Agent": DEFAULT_USER_AGENT,
        }
        user_headers = kwargs.pop("headers", {})
        cookie_jar = kwargs.pop("cookie_jar", None) or aiohttp.DummyCookieJar()

        self.session = aiohttp.ClientSession(
            headers={**default_headers, **user_headers},
            timeout=ClientTimeout(total=timeout),
            cookie_jar=cookie_jar,
            **kwargs,
        )
        self._proxy_url = proxy_url
        self.follow_redirects = follow_redirects

        logger.info("AioHttp transport initialized")

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        body: str | bytes | None = None,
    ) -> HttpResponse:
        """
        Perform an HTTP request and return the raw response.

        Raises:
            ProxyError: If there's a proxy-related connection issue.
            RequestTimeoutError: If the request times out.
            TransportError: For any other network-level failure.
        """
        kwargs: dict[str, Any] = {}
        if self._proxy_url:
            kwargs["proxy"] = self._proxy_url

        try:
            logger.debug(f"{method} {url.split('?', 1)[0]}")
            async with self.session.request(
                method,
                url,
                headers=headers,
                data=body,
                allow_redirects=self.follow_redirects,
                **kwargs,
            ) as response:
                text = await response.text()

                header_pairs: list[tuple[str, str]] = []
                for hop in response.history:
                    header_pairs.extend(
                        ("Set-Cookie", value)
                        for value in hop.headers.getall("Set-Cookie", [])
                    )
                header_pairs.extend(response.headers.items())

                logger.debug(f"Response status: {response.status}")
                return HttpResponse(
                    status=response.status,
                    headers=header_pairs,
                    body=text,
                    url=str(response.url),
                )

        except aiohttp.ClientProxyConnectionError as e:
            logger.error(f"Proxy error: {e}")
            raise ProxyError(f"Proxy connection failed: {e}") from e
        except (aiohttp.ServerTimeoutError, asyncio.TimeoutError) as e:
            logger.error(f"Request timeout: {e}")
            raise RequestTimeoutError(f"Request timed out: {e}") from e
        except aiohttp.ClientError as e:
            logger.error(f"Connection error: {e}")
            raise TransportError(f"Request failed: {e}") from e

    async def close(self) -> None:
        """Close the aiohttp session and release resources."""
        await self.session.close()
        logger.info("AioHttp transport closed")

    async def __aenter__(self):
        """Enable use as async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Ensure transport is closed when exiting context."""
        await self.close()
