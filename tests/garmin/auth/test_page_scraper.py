"""Tests for SSO page scraping."""

import re

from garmin.auth.page_scraper import (
    PageClassifier,
    PagePatterns,
    extract_csrf_token,
    extract_lock_status,
    extract_page_title,
    extract_ticket,
)


class TestExtractors:
    """Tests for the module-level extract_* helpers."""

    def test_csrf_token(self, pages):
        assert extract_csrf_token(pages.signin) == "csrf-step2"

    def test_csrf_token_first_occurrence(self):
        page = (
            '<input name="_csrf" value="first" />'
            '<input name="_csrf" value="second" />'
        )

        assert extract_csrf_token(page) == "first"

    def test_ticket_from_redirect_url(self, pages):
        assert extract_ticket(pages.success) == "ST-0123-abc-cas"

    def test_ticket_from_quoted_value(self):
        assert extract_ticket('ticket="ABC123"') == "ABC123"

    def test_page_title(self, pages):
        assert extract_page_title(pages.mfa) == "Enter MFA Code"

    def test_empty_title(self):
        assert extract_page_title("<title></title>") == ""

    def test_lock_status(self, pages):
        assert extract_lock_status(pages.locked) == "ACCOUNT_LOCKED"

    def test_lock_status_allows_whitespace(self):
        assert extract_lock_status('var status   =   "LOCKED";') == "LOCKED"

    def test_absence_is_none(self, pages):
        assert extract_csrf_token(pages.success) is None
        assert extract_ticket(pages.signin) is None
        assert extract_page_title("<html></html>") is None
        assert extract_lock_status(pages.success) is None

    def test_empty_and_none_input(self):
        for extractor in (extract_csrf_token, extract_ticket, extract_page_title, extract_lock_status):
            assert extractor("") is None
            assert extractor(None) is None


class TestPageClassifier:
    """Tests for page condition detection."""

    def test_mfa_by_title(self):
        classifier = PageClassifier()

        assert classifier.is_mfa_page("<title>Enter MFA Code</title>") is True
        assert classifier.is_mfa_page("<title>Verification Required</title>") is True

    def test_mfa_by_body_marker(self, pages):
        classifier = PageClassifier()

        assert classifier.is_mfa_page(pages.mfa_marker_only) is True
        assert classifier.is_mfa_page('<div id="setupEnterMfaCode"></div>') is True
        assert classifier.is_mfa_page('<input name="verification-code">') is True

    def test_not_mfa(self, pages):
        classifier = PageClassifier()

        assert classifier.is_mfa_page(pages.success) is False
        assert classifier.is_mfa_page(pages.invalid_credentials) is False
        assert classifier.is_mfa_page("") is False

    def test_requires_phone_update(self, pages):
        classifier = PageClassifier()

        assert classifier.requires_phone_update(pages.phone_update) is True
        assert classifier.requires_phone_update(pages.success) is False
        assert classifier.requires_phone_update(None) is False

    def test_custom_patterns(self):
        """A swapped pattern set changes detection without touching callers."""
        patterns = PagePatterns(
            csrf=re.compile(r'data-csrf="([^"]+)"'),
            mfa_title_markers=("Two-Step",),
            mfa_body_markers=("otp-input",),
            phone_update_title="Add Phone",
        )
        classifier = PageClassifier(patterns)

        assert classifier.extract_csrf_token('<div data-csrf="xyz">') == "xyz"
        assert classifier.extract_csrf_token('name="_csrf" value="old"') is None
        assert classifier.is_mfa_page("<title>Two-Step Check</title>") is True
        assert classifier.is_mfa_page('<input class="otp-input">') is True
        assert classifier.is_mfa_page('<input name="mfa-code">') is False
        assert classifier.requires_phone_update("<title>Add Phone</title>") is True
