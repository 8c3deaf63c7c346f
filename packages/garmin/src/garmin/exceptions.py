"""
Exceptions raised by the Garmin authentication core.

Each error carries an `action` hint so wrapping CLIs and servers can tell
"fix the credentials" apart from "contact Garmin" and "log in again" without
parsing messages. Payloads never contain secrets.
"""

from shared_lib.baseclient.exceptions import AuthenticationError

ACTION_CHECK_CREDENTIALS = "check_credentials"
ACTION_CHECK_CODE = "check_code"
ACTION_CONTACT_PROVIDER = "contact_provider"
ACTION_LOGIN_AGAIN = "login_again"


class GarminAuthError(AuthenticationError):
    """Base class for every authentication failure."""

    action: str = ACTION_LOGIN_AGAIN
    code: str = "auth_error"

    def to_payload(self) -> dict[str, str]:
        """Return a JSON-serialisable payload without secrets."""
        return {"error": self.code, "action": self.action, "message": self.message}


class InvalidCredentialsError(GarminAuthError):
    """No ticket was issued for the submitted username/password."""

    action = ACTION_CHECK_CREDENTIALS
    code = "invalid_credentials"


class AccountLockedError(GarminAuthError):
    """The account is locked and must be unlocked on the Garmin website."""

    action = ACTION_CONTACT_PROVIDER
    code = "account_locked"


class UnsupportedFlowError(GarminAuthError):
    """The provider requires an interactive step that cannot be automated."""

    action = ACTION_CONTACT_PROVIDER
    code = "unsupported_flow"


class MFASessionError(GarminAuthError):
    """The MFA session token cannot be used."""

    code = "mfa_session_invalid"


class MFASessionExpiredError(MFASessionError):
    """The MFA session token is older than its validity window or was already used."""

    code = "mfa_session_expired"


class MFASessionCorruptError(MFASessionError):
    """The MFA session token failed decryption, authentication or parsing."""

    code = "mfa_session_corrupt"


class MFARejectedError(GarminAuthError):
    """Garmin did not accept the one-time code."""

    action = ACTION_CHECK_CODE
    code = "mfa_rejected"

    def __init__(self, message: str, title: str | None = None):
        super().__init__(message, title=title)
        self.title = title


class ExchangeFailedError(GarminAuthError):
    """A ticket/OAuth1/OAuth2 exchange returned a non-2xx response."""

    code = "exchange_failed"

    def __init__(self, message: str, step: str, status_code: int | None = None):
        super().__init__(message, step=step, status_code=status_code)
        self.step = step
        self.status_code = status_code


class RenewalFailedError(GarminAuthError):
    """The OAuth2 renewal exchange was rejected or errored."""

    code = "renewal_failed"
