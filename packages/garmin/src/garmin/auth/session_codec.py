"""
Encrypted, caller-held MFA session tokens.

When Garmin asks for an emailed code, the half-finished login (cookies, csrf
token, sign-in query parameters) is handed back to the caller as an opaque
token instead of being kept server-side. The token is AES-256-GCM encrypted
and laid out as::

    base64( nonce (16 bytes) || auth tag (16 bytes) || ciphertext )

A token is valid for five minutes after it was sealed. Expired tokens fail
with `MFASessionExpiredError`; anything that does not decrypt, authenticate
or parse fails with `MFASessionCorruptError` and is never partially trusted.
"""

import base64
import binascii
import logging
import os
from datetime import datetime, timezone

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import ValidationError

from garmin.exceptions import MFASessionCorruptError, MFASessionExpiredError
from garmin.models import PendingHandshakeState
from shared_lib.baseclient.exceptions import ConfigurationError
from shared_lib.utils.date import Clock, default_clock, is_unix_timestamp_older_than

logger = logging.getLogger(__name__)

MFA_NONCE_LENGTH = 16
MFA_AUTH_TAG_LENGTH = 16
MFA_SESSION_EXPIRY_MINUTES = 5
MFA_SECRET_MIN_BYTES = 32


def derive_session_key(secret: str | bytes | None) -> bytes:
    """
    Turn the configured secret into a 256-bit key.

    The key is the first 32 bytes of the UTF-8 encoded secret.

    Raises:
        ConfigurationError: If the secret is missing or shorter than 32 bytes.
    """
    if secret is None:
        raise ConfigurationError("MFA_SECRET_KEY is not configured")

    raw = secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)
    if len(raw) < MFA_SECRET_MIN_BYTES:
        raise ConfigurationError(
            f"MFA_SECRET_KEY must be at least {MFA_SECRET_MIN_BYTES} bytes long"
        )
    return raw[:MFA_SECRET_MIN_BYTES]


class MFASessionCodec:
    """Seal/open `PendingHandshakeState` values. Holds no mutable state."""

    def __init__(self, secret: str | bytes | None, clock: Clock = default_clock) -> None:
        self._aesgcm = AESGCM(derive_session_key(secret))
        self.clock = clock

    def seal(self, state: PendingHandshakeState) -> str:
        nonce = os.urandom(MFA_NONCE_LENGTH)
        plaintext = state.model_dump_json(by_alias=True).encode("utf-8")

        # AESGCM appends the tag; the token format puts it before the ciphertext.
        sealed = self._aesgcm.encrypt(nonce, plaintext, None)
        ciphertext, tag = sealed[:-MFA_AUTH_TAG_LENGTH], sealed[-MFA_AUTH_TAG_LENGTH:]

        return base64.b64encode(nonce + tag + ciphertext).decode("ascii")

    def open(self, token: str) -> PendingHandshakeState:
        """
        Decrypt and validate a session token.

        Raises:
            MFASessionCorruptError: Bad base64, bad tag, truncated token,
                malformed payload or an out-of-range timestamp.
            MFASessionExpiredError: Token sealed more than five minutes ago.
        """
        try:
            raw = base64.b64decode(token, validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            logger.warning("MFA session token is not valid base64")
            raise MFASessionCorruptError("Invalid or corrupted MFA session") from e

        header_length = MFA_NONCE_LENGTH + MFA_AUTH_TAG_LENGTH
        if len(raw) <= header_length:
            logger.warning("MFA session token is truncated")
            raise MFASessionCorruptError("Invalid or corrupted MFA session")

        nonce = raw[:MFA_NONCE_LENGTH]
        tag = raw[MFA_NONCE_LENGTH:header_length]
        ciphertext = raw[header_length:]

        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            logger.warning("MFA session token failed authentication")
            raise MFASessionCorruptError("Invalid or corrupted MFA session") from e

        try:
            state = PendingHandshakeState.model_validate_json(plaintext)
        except ValidationError as e:
            logger.warning("MFA session payload is malformed")
            raise MFASessionCorruptError("Invalid or corrupted MFA session") from e

        self._check_timestamp(state)
        if is_unix_timestamp_older_than(
            state.timestamp,
            minutes=MFA_SESSION_EXPIRY_MINUTES,
            milliseconds=True,
            now=self.clock(),
        ):
            logger.info("MFA session token expired")
            raise MFASessionExpiredError("MFA session expired. Please login again.")

        return state

    def _check_timestamp(self, state: PendingHandshakeState) -> None:
        """A seal time that is unrepresentable or in the future cannot expire."""
        try:
            sealed_at = datetime.fromtimestamp(state.timestamp / 1000, tz=timezone.utc)
        except (ValueError, OSError, OverflowError) as e:
            logger.warning("MFA session timestamp is out of range")
            raise MFASessionCorruptError("Invalid or corrupted MFA session") from e

        if sealed_at.timestamp() - self.clock() > MFA_SESSION_EXPIRY_MINUTES * 60:
            logger.warning("MFA session timestamp lies in the future")
            raise MFASessionCorruptError("Invalid or corrupted MFA session")
