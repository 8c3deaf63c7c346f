from dataclasses import asdict, dataclass
from typing import Any

# Treat the access token as expired this many seconds early
TOKEN_EXPIRED_BUFFER = 60


@dataclass(frozen=True)
class OAuthConsumer:
    """Static consumer key/secret pair shared by every Garmin Connect client."""

    key: str
    secret: str


@dataclass(frozen=True)
class SigningCredential:
    """
    # OAuth1 Signing Credential

    Key/secret pair returned by the `preauthorized` exchange. It signs every
    OAuth2 exchange, including renewals, and is only replaced by a new login.

    ## Attributes:
    - `key` (str): `oauth_token`
    - `secret` (str): `oauth_token_secret`
    - `mfa_token` (str | None): Remember-this-browser token issued after MFA
    - `mfa_expiration_timestamp` (str | None): Expiry of `mfa_token` as sent by Garmin
    """

    key: str
    secret: str
    mfa_token: str | None = None
    mfa_expiration_timestamp: str | None = None

    @classmethod
    def from_form(cls, data: dict[str, str]) -> "SigningCredential":
        """
        Build from the form-encoded `preauthorized` response.

        ## Raises:
        - `KeyError`: If `oauth_token` or `oauth_token_secret` is missing
        """
        return cls(
            key=data["oauth_token"],
            secret=data["oauth_token_secret"],
            mfa_token=data.get("mfa_token") or None,
            mfa_expiration_timestamp=data.get("mfa_expiration_timestamp") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SigningCredential":
        return cls(
            key=str(data["key"]),
            secret=str(data["secret"]),
            mfa_token=data.get("mfa_token"),
            mfa_expiration_timestamp=data.get("mfa_expiration_timestamp"),
        )


@dataclass(frozen=True)
class BearerCredential:
    """
    # OAuth2 Bearer Credential

    Frozen so that renewal can only replace the whole value. Expiry
    timestamps are derived from the lifetimes Garmin reports at exchange time.

    ## Attributes:
    - `access_token` (str): Bearer token for Garmin Connect API calls
    - `refresh_token` (str): Refresh token reported by Garmin
    - `issued_at` (float): Unix timestamp of the exchange
    - `expires_at` (float): `issued_at + expires_in`
    - `refresh_expires_at` (float): `issued_at + refresh_token_expires_in`
    - `token_type` (str): Normally "Bearer"
    - `scope` (str | None): Space separated scopes, when reported
    """

    access_token: str
    refresh_token: str
    issued_at: float
    expires_at: float
    refresh_expires_at: float
    token_type: str = "Bearer"
    scope: str | None = None

    @classmethod
    def issue(
        cls,
        access_token: str,
        refresh_token: str,
        expires_in: int,
        refresh_token_expires_in: int,
        issued_at: float,
        token_type: str = "Bearer",
        scope: str | None = None,
    ) -> "BearerCredential":
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            issued_at=issued_at,
            expires_at=issued_at + expires_in,
            refresh_expires_at=issued_at + refresh_token_expires_in,
            token_type=token_type,
            scope=scope,
        )

    def is_expired_at(self, now: float) -> bool:
        """True once `now` is within `TOKEN_EXPIRED_BUFFER` of expiry."""
        return now >= (self.expires_at - TOKEN_EXPIRED_BUFFER)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BearerCredential":
        """
        Restore a credential exported by `to_dict`.

        ## Raises:
        - `KeyError`: If required fields are missing from dictionary
        - `ValueError`: If timestamps are not numeric
        """
        return cls(
            access_token=str(data["access_token"]),
            refresh_token=str(data["refresh_token"]),
            issued_at=float(data["issued_at"]),
            expires_at=float(data["expires_at"]),
            refresh_expires_at=float(data["refresh_expires_at"]),
            token_type=str(data.get("token_type") or "Bearer"),
            scope=data.get("scope"),
        )
