import logging
import threading
from collections.abc import Iterable


class CookieManager:
    """
    # HTTP Cookie Manager

    Session cookie jar for the Garmin SSO handshake. Every response is fed
    through `capture` (error responses included, SSO sets cookies on 4xx
    pages) and every request through `attach`.

    ## Responsibilities:
    - Parse `Set-Cookie` directives and keep the latest value per name
    - Format the jar as a single `Cookie` header
    - Snapshot/restore the jar for MFA session tokens

    ## Cookie Format:
    Cookies are formatted as: `name1=value1; name2=value2; name3=value3`

    ## Design Decisions:
    - Names are case-sensitive, attributes (Path, Expires, ...) are ignored
    - No expiry tracking: cookies live as long as the client instance
    - A lock guards every read-modify-write; no critical section awaits,
      so the same lock works for asyncio tasks and threads

    ## Example:
    ```python
    jar = CookieManager()
    jar.capture([("Set-Cookie", "SESSION=abc; Path=/; HttpOnly")])

    headers = jar.attach({})
    # {"Cookie": "SESSION=abc"}
    ```
    """

    def __init__(self) -> None:
        self.cookies: dict[str, str] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def capture(self, response_headers: Iterable[tuple[str, str]]) -> None:
        """
        Store every cookie set by a response.

        ## Args:
        - `response_headers`: Raw `(name, value)` header pairs. Only
          `Set-Cookie` entries are considered; later directives win.
        """
        parsed: list[tuple[str, str]] = []
        for header, value in response_headers:
            if header.lower() != "set-cookie":
                continue
            name_value = value.split(";", 1)[0]
            name, sep, cookie_value = name_value.partition("=")
            name = name.strip()
            if not sep or not name:
                continue
            parsed.append((name, cookie_value.strip()))

        if not parsed:
            return

        with self._lock:
            for name, cookie_value in parsed:
                self.cookies[name] = cookie_value
        self.logger.debug(f"Captured {len(parsed)} cookie(s)")

    def get_cookie_header(self) -> str:
        """
        Format cookies as HTTP Cookie header string.

        ## Returns:
        - `str`: Formatted cookie string (e.g., "name1=value1; name2=value2")
          Returns empty string if no cookies are set
        """
        with self._lock:
            cookie_pairs = [f"{key}={value}" for key, value in self.cookies.items()]
        return "; ".join(cookie_pairs)

    def attach(self, request_headers: dict[str, str]) -> dict[str, str]:
        """
        Add the `Cookie` header to `request_headers` (in place) and return it.

        The header is omitted entirely while the jar is empty.
        """
        cookie_header = self.get_cookie_header()
        if cookie_header:
            request_headers["Cookie"] = cookie_header
        return request_headers

    def snapshot(self) -> dict[str, str]:
        """Return a copy of the jar."""
        with self._lock:
            return dict(self.cookies)

    def restore(self, snapshot: dict[str, str]) -> None:
        """Replace the whole jar with `snapshot`."""
        with self._lock:
            self.cookies = dict(snapshot)
        self.logger.debug(f"Cookie jar restored with {len(snapshot)} cookie(s)")

