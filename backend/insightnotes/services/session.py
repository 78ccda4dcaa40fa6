"""
Session resolution.

Turns a session token into the current identity id. Every persistence call
is scoped by the id returned here; None means "not authenticated".
"""

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from jose import JWTError, jwt
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from insightnotes.config import Settings
from insightnotes.db.models import AuthIdentity
from insightnotes.errors import SessionUnknownError

logger = logging.getLogger(__name__)


def create_access_token(identity_id: UUID, settings: Settings, *, name: str | None = None) -> str:
    """
    Create a JWT access token for an identity.

    Token payload contains:
    - sub: identity id as string (standard JWT subject claim)
    - name: display name, used to seed the profile
    - exp: expiration timestamp
    """
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {
        "sub": str(identity_id),
        "exp": expire,
    }
    if name:
        payload["name"] = name
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> UUID | None:
    """
    Decode and validate a JWT access token.

    Returns the identity id if valid, None if invalid/expired.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        subject = payload.get("sub")
        if subject is None:
            return None
        return UUID(subject)
    except (JWTError, ValueError):
        return None


async def resolve_identity(
    db: AsyncSession,
    token: str | None,
    settings: Settings,
) -> AuthIdentity | None:
    """
    Resolve the identity behind a session token.

    The token is checked first (signature, expiry, subject), then the
    identity record is fetched. Either step failing yields None. A database
    error while fetching raises SessionUnknownError so callers can tell a
    failed lookup from a logged-out user.
    """
    if not token:
        logger.debug("No session token supplied")
        return None

    identity_id = decode_access_token(token, settings)
    if identity_id is None:
        logger.debug("Session token rejected")
        return None

    try:
        identity = await db.get(AuthIdentity, identity_id)
    except SQLAlchemyError as e:
        logger.warning("Identity lookup failed for %s: %s", identity_id, e)
        raise SessionUnknownError() from e

    if identity is None:
        logger.debug("No identity found for %s", identity_id)
    return identity


async def resolve_current_user_id(
    db: AsyncSession,
    token: str | None,
    settings: Settings,
) -> UUID | None:
    """Return the current identity id, or None when not authenticated."""
    identity = await resolve_identity(db, token, settings)
    return identity.id if identity else None
