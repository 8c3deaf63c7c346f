from garmin.auth.auth_tokens import BearerCredential, OAuthConsumer, SigningCredential
from garmin.auth.page_scraper import PageClassifier, PagePatterns
from garmin.client import GarminClient
from garmin.config import AuthConfig
from garmin.exceptions import (
    AccountLockedError,
    ExchangeFailedError,
    GarminAuthError,
    InvalidCredentialsError,
    MFARejectedError,
    MFASessionCorruptError,
    MFASessionError,
    MFASessionExpiredError,
    RenewalFailedError,
    UnsupportedFlowError,
)
from garmin.models import BearerReady, ExportedCredentials, LoginResult, MFARequired

__version__ = "0.1.0"

__all__ = [
    # Main client
    "GarminClient",
    "AuthConfig",
    # Credentials
    "SigningCredential",
    "BearerCredential",
    "OAuthConsumer",
    "ExportedCredentials",
    # Login results
    "BearerReady",
    "MFARequired",
    "LoginResult",
    # Page detection
    "PageClassifier",
    "PagePatterns",
    # Exceptions
    "GarminAuthError",
    "InvalidCredentialsError",
    "AccountLockedError",
    "UnsupportedFlowError",
    "MFASessionError",
    "MFASessionExpiredError",
    "MFASessionCorruptError",
    "MFARejectedError",
    "ExchangeFailedError",
    "RenewalFailedError",
]
