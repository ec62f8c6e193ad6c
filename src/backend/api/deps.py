"""
Shared dependencies for API endpoints.

Includes:
- Voter identity resolution (bearer token, sealed device cookie, fingerprint)
- Per-request settings snapshot
"""

from dataclasses import dataclass
from typing import Annotated, Optional

import structlog
from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.cookie_guard import CookieGuard, get_cookie_guard
from core.exceptions import InvalidFingerprintError, InvalidTokenError
from core.security import (
    decode_user_token,
    derive_identity,
    derive_user_identity,
    is_identity,
    short_identity,
)
from db.session import get_db
from schemas.vote import Fingerprint
from services.config_store import ConfigSnapshot, ConfigStore

logger = structlog.get_logger(__name__)

# Bearer tokens are optional: anonymous voters are identified by cookie or fingerprint
security_optional = HTTPBearer(auto_error=False)

BearerCredentials = Annotated[Optional[HTTPAuthorizationCredentials], Depends(security_optional)]
Guard = Annotated[CookieGuard, Depends(get_cookie_guard)]


# =============================================================================
# Voter identity
# =============================================================================


def identity_from_cookie(request: Request, guard: CookieGuard) -> Optional[str]:
    """
    Open the identity cookie, if present.

    A cookie that cannot be opened (tampered, expired, rotated-out key) is
    treated as absent so the voter gets a fresh identity.
    """
    token = request.cookies.get(settings.COOKIE_NAME)
    if not token:
        return None

    try:
        identity = guard.unseal(token)
    except InvalidTokenError as e:
        logger.info("cookie_unseal_failed", reason=str(e))
        return None

    if not is_identity(identity):
        logger.info("cookie_identity_malformed")
        return None
    return identity


def identity_from_bearer(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """
    Derive the identity of an authenticated voter.

    Raises:
        InvalidTokenError: A bearer token was sent but is not a valid access token
    """
    if credentials is None:
        return None

    user_id = decode_user_token(credentials.credentials)
    if user_id is None:
        raise InvalidTokenError("Invalid or expired access token")
    return derive_user_identity(user_id)


@dataclass(frozen=True)
class VoterIdentity:
    """Resolved voter identity and whether it belongs to a signed-in user."""

    value: str
    authenticated: bool = False


def resolve_voter_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
    guard: CookieGuard,
    fingerprint: Optional[Fingerprint] = None,
) -> VoterIdentity:
    """
    Work out who is voting.

    Order: bearer token, then identity cookie, then device fingerprint. The
    cookie only ever holds a device identity, so a signed-in user never
    inherits the votes of whoever used the browser before.

    Raises:
        InvalidTokenError: Bad bearer token
        InvalidFingerprintError: No cookie, no token and no usable fingerprint
    """
    identity = identity_from_bearer(credentials)
    if identity:
        return VoterIdentity(identity, authenticated=True)

    identity = identity_from_cookie(request, guard)
    if identity:
        return VoterIdentity(identity)

    if fingerprint is None:
        raise InvalidFingerprintError("A device fingerprint is required for new voters")

    identity = derive_identity(fingerprint)
    logger.info("identity_derived_from_fingerprint", identity=short_identity(identity))
    return VoterIdentity(identity)


async def get_optional_voter_identity(
    request: Request,
    credentials: BearerCredentials,
    guard: Guard,
) -> Optional[str]:
    """
    Identity of the caller for read endpoints, or None for a first visit.
    """
    identity = identity_from_bearer(credentials)
    if identity:
        return identity
    return identity_from_cookie(request, guard)


def set_identity_cookie(response: Response, guard: CookieGuard, identity: str) -> None:
    """Seal the identity into the response cookie (fresh issue time)."""
    response.set_cookie(
        key=settings.COOKIE_NAME,
        value=guard.seal(identity),
        max_age=settings.COOKIE_MAX_AGE_DAYS * 24 * 3600,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


# =============================================================================
# Settings
# =============================================================================


async def get_config_snapshot(db: AsyncSession = Depends(get_db)) -> ConfigSnapshot:
    """Versioned app settings, read once per request."""
    return await ConfigStore(db).snapshot()
