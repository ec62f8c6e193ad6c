"""Identity derivation and token helpers.

Voters are anonymous: a device fingerprint (or an authenticated user id) is
reduced to a one-way SHA-256 identity. Only that hash ever reaches the vote
ledger.
"""

import hashlib
import hmac
import json
from typing import Any, Mapping, Optional

from jose import JWTError, jwt

from core.config import settings
from core.exceptions import InvalidFingerprintError

# Serialization order of fingerprint fields. Changing it changes every identity.
FINGERPRINT_FIELDS = (
    "user_agent",
    "screen_resolution",
    "timezone",
    "language",
    "platform",
)

IDENTITY_LENGTH = 64  # SHA-256 hex


def derive_identity(fingerprint: Mapping[str, Any] | Any) -> str:
    """
    Derive a stable anonymous identity from a device fingerprint.

    The present fingerprint fields are serialized as compact JSON in a fixed
    order and hashed with SHA-256, so the same fingerprint always yields the
    same identity across calls and process restarts.

    Args:
        fingerprint: Mapping or object with ``user_agent`` (required) and the
            optional ``screen_resolution``, ``timezone``, ``language`` and
            ``platform`` attributes.

    Returns:
        64-character lowercase hex identity

    Raises:
        InvalidFingerprintError: If the user agent is missing or blank
    """
    if isinstance(fingerprint, Mapping):
        values = {name: fingerprint.get(name) for name in FINGERPRINT_FIELDS}
    else:
        values = {name: getattr(fingerprint, name, None) for name in FINGERPRINT_FIELDS}

    user_agent = values["user_agent"]
    if not isinstance(user_agent, str) or not user_agent.strip():
        raise InvalidFingerprintError("Fingerprint must include a non-empty user agent")

    ordered = {name: values[name] for name in FINGERPRINT_FIELDS if values[name] is not None}
    data = json.dumps(ordered, separators=(",", ":"), ensure_ascii=False)

    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def derive_user_identity(user_id: str) -> str:
    """
    Derive the ledger identity of an authenticated voter.

    The user id is salted with SECRET_KEY so it cannot be recovered from the
    ledger by hashing known ids.
    """
    data = f"user:{user_id}:{settings.SECRET_KEY}"
    return hashlib.sha256(data.encode()).hexdigest()


def is_identity(value: Optional[str]) -> bool:
    """Check that a value has the shape of a derived identity."""
    if not value or len(value) != IDENTITY_LENGTH:
        return False
    return all(c in "0123456789abcdef" for c in value)


def constant_time_equals(a: str | bytes, b: str | bytes) -> bool:
    """Compare two secrets without leaking timing information."""
    if isinstance(a, str):
        a = a.encode("utf-8")
    if isinstance(b, str):
        b = b.encode("utf-8")
    return hmac.compare_digest(a, b)


def decode_user_token(token: str) -> Optional[str]:
    """
    Decode a bearer access token and return its subject (the user id).

    Tokens are issued by the authentication collaborator with the shared
    SECRET_KEY. Returns None for any invalid, expired or non-access token.
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except JWTError:
        return None

    if payload.get("type", "access") != "access":
        return None

    subject = payload.get("sub")
    return str(subject) if subject else None


def short_identity(identity: str) -> str:
    """Shorten an identity for log output."""
    return identity[:8]
