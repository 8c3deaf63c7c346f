"""
Request/response value types shared by every transport.

Transports only move bytes: they never raise on HTTP status codes and never
keep cookies on behalf of the caller. Callers layer cookie handling and
authorization on top of `Transport.send`.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class HttpRequest:
    """A single outgoing HTTP request."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str | bytes | None = None


@dataclass(frozen=True)
class HttpResponse:
    """
    A completed HTTP exchange.

    Attributes:
        status: HTTP status code of the final response.
        headers: Raw header pairs in arrival order. Repeated headers such as
            ``Set-Cookie`` appear once per directive.
        body: Decoded response body.
        url: Final URL after redirects.
    """

    status: int
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: str = ""
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str) -> str | None:
        """Return the first header value matching `name` (case-insensitive)."""
        values = self.header_list(name)
        return values[0] if values else None

    def header_list(self, name: str) -> list[str]:
        """Return every header value matching `name` (case-insensitive)."""
        lowered = name.lower()
        return [value for key, value in self.headers if key.lower() == lowered]

    def json(self) -> Any:
        return json.loads(self.body)


@runtime_checkable
class Transport(Protocol):
    """Plain request/response capability used by the auth core."""

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        body: str | bytes | None = None,
    ) -> HttpResponse: ...

    async def close(self) -> None: ...
