"""
Sealed session cookies.

The voter identity lives client-side in a cookie instead of a server-side
session store, so any API instance can serve any request.

Token layout (all parts base64url without padding):

    v1.<key id>.<12-byte nonce || AES-256-GCM ciphertext+tag>

The key id is the first 8 bytes of SHA-256(key). It lets rotated keys keep
opening tokens they sealed, and reveals nothing about the identity. Every
token gets a fresh random nonce, so sealing the same identity twice yields
unrelated tokens.
"""

import base64
import binascii
import hashlib
import json
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional, Sequence

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from core.config import settings
from core.exceptions import InvalidTokenError
from core.security import constant_time_equals

logger = structlog.get_logger(__name__)

TOKEN_VERSION = "v1"
ASSOCIATED_DATA = b"accent-vote-cookie"
NONCE_SIZE = 12
KEY_SIZE = 32
KEY_ID_SIZE = 8


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def key_id(key: bytes) -> bytes:
    """Public identifier of a cookie key."""
    return hashlib.sha256(key).digest()[:KEY_ID_SIZE]


@dataclass(frozen=True)
class SessionState:
    """Contents of an opened session cookie."""

    identity: str
    issued_at: datetime


class CookieGuard:
    """
    AES-256-GCM sealing of the voter identity.

    The first key seals; every key (current and rotated) can unseal.
    Unsealing fails closed: any malformed, tampered, truncated, wrong-key or
    expired token raises InvalidTokenError and never yields a partial value.
    """

    def __init__(self, keys: Sequence[bytes], max_age_seconds: Optional[int] = None):
        if not keys:
            raise ValueError("CookieGuard needs at least one key")
        for key in keys:
            if len(key) != KEY_SIZE:
                raise ValueError(f"Cookie keys must be {KEY_SIZE} bytes, got {len(key)}")

        self._ciphers = [(key_id(key), AESGCM(key)) for key in keys]
        self._max_age_seconds = max_age_seconds

    def seal(self, identity: str, issued_at: Optional[int] = None) -> str:
        """Seal an identity into an opaque cookie value."""
        if not identity:
            raise ValueError("Cannot seal an empty identity")

        kid, aesgcm = self._ciphers[0]
        payload = json.dumps(
            {"sub": identity, "iat": int(issued_at if issued_at is not None else time.time())},
            separators=(",", ":"),
        ).encode("utf-8")

        nonce = secrets.token_bytes(NONCE_SIZE)
        ciphertext = aesgcm.encrypt(nonce, payload, ASSOCIATED_DATA)

        return ".".join([TOKEN_VERSION, _b64encode(kid), _b64encode(nonce + ciphertext)])

    def unseal(self, token: str) -> str:
        """Open a cookie value and return the identity it carries."""
        return self.unseal_session(token).identity

    def unseal_session(self, token: str) -> SessionState:
        """Open a cookie value and return the identity with its issue time."""
        if not token or not isinstance(token, str):
            raise InvalidTokenError("Session token is empty")

        parts = token.split(".")
        if len(parts) != 3 or parts[0] != TOKEN_VERSION:
            raise InvalidTokenError("Session token has an unknown format")

        try:
            kid = _b64decode(parts[1])
            blob = _b64decode(parts[2])
        except (binascii.Error, ValueError) as e:
            raise InvalidTokenError("Session token is not valid base64") from e

        if len(blob) <= NONCE_SIZE:
            raise InvalidTokenError("Session token is truncated")

        aesgcm = self._cipher_for(kid)
        if aesgcm is None:
            raise InvalidTokenError("Session token was sealed with an unknown key")

        nonce, ciphertext = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
        try:
            plaintext = aesgcm.decrypt(nonce, ciphertext, ASSOCIATED_DATA)
        except InvalidTag as e:
            raise InvalidTokenError("Session token failed authentication") from e

        try:
            payload = json.loads(plaintext.decode("utf-8"))
            identity = payload["sub"]
            issued_at = int(payload["iat"])
        except (ValueError, KeyError, TypeError) as e:
            raise InvalidTokenError("Session token payload is malformed") from e

        if not isinstance(identity, str) or not identity:
            raise InvalidTokenError("Session token payload is malformed")

        if self._max_age_seconds is not None and time.time() - issued_at > self._max_age_seconds:
            raise InvalidTokenError("Session token has expired")

        return SessionState(
            identity=identity,
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
        )

    def _cipher_for(self, kid: bytes) -> Optional[AESGCM]:
        match = None
        # Check every key so the lookup time does not depend on which one matched
        for candidate_kid, aesgcm in self._ciphers:
            if constant_time_equals(candidate_kid, kid) and match is None:
                match = aesgcm
        return match


def _decode_key(key_str: str) -> bytes:
    key = base64.b64decode(key_str)
    if len(key) != KEY_SIZE:
        raise ValueError(f"Cookie key must decode to {KEY_SIZE} bytes, got {len(key)}")
    return key


def load_cookie_keys() -> list[bytes]:
    """Load the sealing key and rotated keys from settings."""
    keys: list[bytes] = []

    if settings.COOKIE_SECRET_KEY:
        keys.append(_decode_key(settings.COOKIE_SECRET_KEY))
    elif settings.is_production:
        logger.error(
            "cookie_key_required_in_production",
            app_env=settings.APP_ENV,
            message="COOKIE_SECRET_KEY must be set in production/staging",
        )
        raise ValueError("COOKIE_SECRET_KEY must be set in production/staging")
    else:
        logger.warning(
            "cookie_key_derived_from_secret",
            app_env=settings.APP_ENV,
            message="Set COOKIE_SECRET_KEY; deriving a development key from SECRET_KEY",
        )
        keys.append(hashlib.sha256(f"cookie:{settings.SECRET_KEY}".encode("utf-8")).digest())

    for previous in settings.cookie_previous_keys_list:
        keys.append(_decode_key(previous))

    return keys


@lru_cache()
def get_cookie_guard() -> CookieGuard:
    """Get the singleton CookieGuard instance."""
    return CookieGuard(
        load_cookie_keys(),
        max_age_seconds=settings.COOKIE_MAX_AGE_DAYS * 24 * 3600,
    )


def generate_cookie_key() -> str:
    """
    Generate a new base64-encoded 256-bit cookie key.

    Run: python -c "from core.cookie_guard import generate_cookie_key; print(generate_cookie_key())"
    """
    return base64.b64encode(secrets.token_bytes(KEY_SIZE)).decode("ascii")
