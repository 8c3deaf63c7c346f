import os
from dataclasses import dataclass

from dotenv import load_dotenv

from garmin.auth.auth_tokens import OAuthConsumer
from garmin.auth.session_codec import derive_session_key
from garmin.urls import OAUTH_CONSUMER_URL, SUPPORTED_DOMAINS
from shared_lib.baseclient.exceptions import ConfigurationError

DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class AuthConfig:
    """
    # Client Configuration

    ## Attributes:
    - `mfa_secret_key` (str | None): Secret used to seal MFA session tokens, at least 32 bytes
    - `domain` (str): `garmin.com` or `garmin.cn`
    - `timeout` (float): Transport timeout in seconds
    - `proxy` (str | None): Proxy URL for every request
    - `consumer_key` / `consumer_secret` (str | None): Preset OAuth consumer;
      fetched from `consumer_url` when not set
    """

    mfa_secret_key: str | None = None
    domain: str = "garmin.com"
    timeout: float = DEFAULT_TIMEOUT
    proxy: str | None = None
    consumer_key: str | None = None
    consumer_secret: str | None = None
    consumer_url: str = OAUTH_CONSUMER_URL

    def validate(self) -> None:
        """
        Check the configuration before any network access.

        ## Raises:
        - `ConfigurationError`: Missing/short secret, unknown domain,
          non-positive timeout or half-configured consumer
        """
        derive_session_key(self.mfa_secret_key)

        if self.domain not in SUPPORTED_DOMAINS:
            raise ConfigurationError(
                f"Unsupported Garmin domain '{self.domain}', expected one of {SUPPORTED_DOMAINS}"
            )
        if self.timeout <= 0:
            raise ConfigurationError("Timeout must be a positive number of seconds")
        if bool(self.consumer_key) != bool(self.consumer_secret):
            raise ConfigurationError(
                "consumer_key and consumer_secret must be configured together"
            )

    @property
    def preset_consumer(self) -> OAuthConsumer | None:
        if self.consumer_key and self.consumer_secret:
            return OAuthConsumer(key=self.consumer_key, secret=self.consumer_secret)
        return None

    @classmethod
    def from_env(cls, env_file: str | None = None, use_dotenv: bool = True) -> "AuthConfig":
        """
        Build a configuration from environment variables.

        ## Environment Variables:
        - `MFA_SECRET_KEY`: Session token secret (required, >= 32 bytes)
        - `GARMIN_DOMAIN`: `garmin.com` (default) or `garmin.cn`
        - `GARMIN_HTTP_TIMEOUT`: Timeout in seconds (default 30)
        - `GARMIN_PROXY`: Proxy URL
        - `GARMIN_OAUTH_CONSUMER_KEY` / `GARMIN_OAUTH_CONSUMER_SECRET`: Preset consumer

        A `.env` file is loaded first unless `use_dotenv` is False; variables
        already set in the environment win.
        """
        if use_dotenv:
            load_dotenv(env_file)

        raw_timeout = os.getenv("GARMIN_HTTP_TIMEOUT")
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT
        except ValueError as e:
            raise ConfigurationError(
                f"GARMIN_HTTP_TIMEOUT must be a number, got '{raw_timeout}'"
            ) from e

        return cls(
            mfa_secret_key=os.getenv("MFA_SECRET_KEY"),
            domain=os.getenv("GARMIN_DOMAIN") or "garmin.com",
            timeout=timeout,
            proxy=os.getenv("GARMIN_PROXY") or None,
            consumer_key=os.getenv("GARMIN_OAUTH_CONSUMER_KEY") or None,
            consumer_secret=os.getenv("GARMIN_OAUTH_CONSUMER_SECRET") or None,
        )
