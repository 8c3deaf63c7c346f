"""Wire payloads and login results for the Garmin authentication flow.

Pydantic models describe what Garmin (or a caller-held MFA session token)
sends us; plain dataclasses describe what we hand back to callers.
"""

import json
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from garmin.auth.auth_tokens import BearerCredential, SigningCredential


class APIBaseModel(BaseModel):
    """Base class for every wire model."""

    def __str__(self) -> str:
        return self.model_dump_json(indent=2, ensure_ascii=False)


class OAuthConsumerPayload(APIBaseModel):
    """Body of the well-known consumer JSON document."""

    consumer_key: str
    consumer_secret: str


class OAuth2TokenResponse(APIBaseModel):
    """Body returned by `/oauth-service/oauth/exchange/user/2.0`."""

    model_config = ConfigDict(extra="allow")

    access_token: str
    refresh_token: str
    expires_in: int
    refresh_token_expires_in: int
    token_type: str = "Bearer"
    scope: str | None = None
    jti: str | None = None


class PendingHandshakeState(APIBaseModel):
    """
    Resumable state of a login that stopped at the MFA page.

    Serialized with the camelCase field names (`csrfToken`, `signinParams`,
    `timestamp` in epoch milliseconds, `cookies` as a JSON string) so tokens
    stay readable across implementations.
    """

    model_config = ConfigDict(populate_by_name=True)

    cookies: dict[str, str]
    csrf_token: str = Field(alias="csrfToken")
    signin_params: dict[str, str] = Field(alias="signinParams")
    timestamp: int

    @field_validator("cookies", mode="before")
    @classmethod
    def _load_cookie_snapshot(cls, value: Any) -> Any:
        if isinstance(value, str):
            return json.loads(value)
        return value

    @field_serializer("cookies")
    def _dump_cookie_snapshot(self, value: dict[str, str]) -> str:
        return json.dumps(value)


@dataclass(frozen=True)
class ExportedCredentials:
    """Copy of the credential pair owned by the client."""

    signing: SigningCredential | None
    bearer: BearerCredential | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "signing": self.signing.to_dict() if self.signing else None,
            "bearer": self.bearer.to_dict() if self.bearer else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExportedCredentials":
        signing = data.get("signing")
        bearer = data.get("bearer")
        return cls(
            signing=SigningCredential.from_dict(signing) if signing else None,
            bearer=BearerCredential.from_dict(bearer) if bearer else None,
        )


@dataclass(frozen=True)
class BearerReady:
    """Login finished; the client now holds both credentials."""

    credentials: ExportedCredentials
    needs_mfa: Literal[False] = False


@dataclass(frozen=True)
class MFARequired:
    """Login stopped at the MFA page; resume with the emailed code."""

    session_token: str
    needs_mfa: Literal[True] = True


LoginResult = BearerReady | MFARequired
