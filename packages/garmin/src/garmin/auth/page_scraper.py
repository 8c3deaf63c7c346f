"""
HTML scraping for the Garmin SSO widget.

Garmin's SSO pages are not an API: the csrf token, the redirect ticket and
the error conditions are read out of rendered HTML with fixed patterns. Those
patterns change without notice, so they are grouped in `PagePatterns` and
consumed through a `PageClassifier`; callers (and tests) can swap in another
pattern set without touching the handshake.

Every lookup returns `None` when nothing matches. Absence is a normal
outcome; the handshake decides whether it is fatal.
"""

import re
from dataclasses import dataclass

CSRF_RE = re.compile(r'name="_csrf"\s+value="(.+?)"')
# Matches both the redirect URL form (ticket=ST-...") and a quoted value (ticket="...").
TICKET_RE = re.compile(r'ticket="?([^"]+)"')
ACCOUNT_LOCKED_RE = re.compile(r'var status\s*=\s*"([^"]*)"')
PAGE_TITLE_RE = re.compile(r"<title>([^<]*)</title>")

MFA_TITLE_MARKERS = ("MFA", "Verification")
MFA_BODY_MARKERS = (
    "mfa-code",
    "verifyMFA",
    "loginEnterMfaCode",
    "verification-code",
    "setupEnterMfaCode",
)
PHONE_UPDATE_TITLE = "Update Phone Number"
MFA_SUCCESS_TITLE = "Success"


@dataclass(frozen=True)
class PagePatterns:
    """One set of detection rules for the SSO widget markup."""

    csrf: re.Pattern[str] = CSRF_RE
    ticket: re.Pattern[str] = TICKET_RE
    lock_status: re.Pattern[str] = ACCOUNT_LOCKED_RE
    title: re.Pattern[str] = PAGE_TITLE_RE
    mfa_title_markers: tuple[str, ...] = MFA_TITLE_MARKERS
    mfa_body_markers: tuple[str, ...] = MFA_BODY_MARKERS
    phone_update_title: str = PHONE_UPDATE_TITLE


def _first_group(pattern: re.Pattern[str], html: str | None) -> str | None:
    if not html:
        return None
    match = pattern.search(html)
    return match.group(1) if match else None


class PageClassifier:
    """Reads tokens and page conditions out of SSO responses."""

    def __init__(self, patterns: PagePatterns | None = None) -> None:
        self.patterns = patterns or PagePatterns()

    def extract_csrf_token(self, html: str | None) -> str | None:
        return _first_group(self.patterns.csrf, html)

    def extract_ticket(self, html: str | None) -> str | None:
        return _first_group(self.patterns.ticket, html)

    def extract_page_title(self, html: str | None) -> str | None:
        return _first_group(self.patterns.title, html)

    def extract_lock_status(self, html: str | None) -> str | None:
        """Status message embedded in the locked-account page, if any."""
        return _first_group(self.patterns.lock_status, html)

    def requires_phone_update(self, html: str | None) -> bool:
        title = self.extract_page_title(html)
        return bool(title) and self.patterns.phone_update_title in title

    def is_mfa_page(self, html: str | None) -> bool:
        """
        Detect the MFA prompt by title first, then by form markers.

        The markers cover both the "enter code" and "set up MFA" variants of
        the page.
        """
        if not html:
            return False

        title = self.extract_page_title(html)
        if title and any(marker in title for marker in self.patterns.mfa_title_markers):
            return True

        return any(marker in html for marker in self.patterns.mfa_body_markers)


default_classifier = PageClassifier()


def extract_csrf_token(html: str | None) -> str | None:
    return default_classifier.extract_csrf_token(html)


def extract_ticket(html: str | None) -> str | None:
    return default_classifier.extract_ticket(html)


def extract_page_title(html: str | None) -> str | None:
    return default_classifier.extract_page_title(html)


def extract_lock_status(html: str | None) -> str | None:
    return default_classifier.extract_lock_status(html)
