"""
Base HTTP transports for building API clients.

This package provides async request/response transports with built-in
support for proxies, timeouts and uniform error handling.
"""

from .client import HttpxTransport as Client
from .client import HttpxTransport
from .aiohttp_client import AioHttpTransport
from .types import HttpRequest, HttpResponse, Transport

__version__ = "0.1.0"
__all__ = [
    "Client",
    "HttpxTransport",
    "AioHttpTransport",
    "HttpRequest",
    "HttpResponse",
    "Transport",
]
