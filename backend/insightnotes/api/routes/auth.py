"""
Authentication Routes

Endpoints:
- POST /auth/google - Exchange Google id_token for session
- POST /auth/logout - Clear session
- GET /auth/me - Get the current identity

Auth Flow:
1. Frontend performs the Google sign-in and receives an id_token
2. Frontend POSTs id_token to /auth/google
3. Backend verifies id_token with Google's public keys
4. Backend upserts the auth_identity
5. Backend returns JWT (in cookie and response body)

Security:
- id_token is verified using Google's public keys (fetched from google-auth library)
- We do NOT store Google access/refresh tokens (no need for Google API calls)
- JWT is HttpOnly cookie + response body (client chooses how to use)
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from insightnotes.api.deps import AppSettings, CurrentIdentity, DbSession
from insightnotes.config import Settings
from insightnotes.db.models import AuthIdentity
from insightnotes.errors import StoreFailureError, UnauthenticatedError
from insightnotes.schemas.auth import GoogleAuthRequest, TokenResponse
from insightnotes.schemas.user import IdentityRead
from insightnotes.services.session import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


def verify_google_id_token(token: str, settings: Settings) -> dict:
    """
    Verify a Google id_token and return its claims.

    Checks signature, expiry, audience and issuer. Raises ValueError when
    any check fails.
    """
    idinfo = google_id_token.verify_oauth2_token(
        token,
        google_requests.Request(),
        settings.google_client_id,
    )
    if idinfo.get("iss") not in GOOGLE_ISSUERS:
        raise ValueError("Invalid issuer")
    return idinfo


def _cookie_options(settings: Settings) -> dict:
    # Cross-domain deployments need samesite="none" + secure=True
    return {
        "httponly": True,
        "secure": settings.cookie_cross_domain or settings.environment != "development",
        "samesite": "none" if settings.cookie_cross_domain else "lax",
    }


@router.post("/google", response_model=TokenResponse)
async def google_login(
    request: GoogleAuthRequest,
    response: Response,
    db: DbSession,
    settings: AppSettings,
) -> TokenResponse:
    """
    Exchange Google id_token for a session JWT.

    Flow:
    1. Verify id_token with Google's public keys
    2. Extract user info (sub, email, name)
    3. Find or create auth_identity by (provider='google', provider_user_id=sub)
    4. Return JWT
    """
    try:
        idinfo = verify_google_id_token(request.id_token, settings)
    except ValueError as e:
        raise UnauthenticatedError(f"Invalid Google id_token: {e}") from e

    provider_user_id = idinfo["sub"]
    email = idinfo.get("email")
    # Only trust verified emails
    if email and not idinfo.get("email_verified", False):
        email = None
    name = idinfo.get("name") or email or None

    now = datetime.now(timezone.utc)
    try:
        result = await db.execute(
            select(AuthIdentity).where(
                AuthIdentity.provider == "google",
                AuthIdentity.provider_user_id == provider_user_id,
            )
        )
        identity = result.scalar_one_or_none()

        if identity:
            identity.last_login_at = now
            if email:
                identity.email = email
            if name:
                identity.display_name = name
        else:
            identity = AuthIdentity(
                provider="google",
                provider_user_id=provider_user_id,
                email=email,
                display_name=name,
                created_at=now,
                last_login_at=now,
            )
            db.add(identity)
            logger.info("New google identity for subject %s", provider_user_id)

        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreFailureError(f"Database error: {e}") from e

    access_token = create_access_token(identity.id, settings, name=identity.display_name)
    expires_in = settings.jwt_expire_minutes * 60

    response.set_cookie(
        key="access_token",
        value=access_token,
        max_age=expires_in,
        **_cookie_options(settings),
    )

    return TokenResponse(
        access_token=access_token,
        expires_in=expires_in,
        identity_id=identity.id,
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(response: Response, settings: AppSettings) -> None:
    """
    Clear the authentication session.

    Note: This only clears the cookie. If the client stored the JWT
    elsewhere, it remains valid until expiry.
    """
    response.delete_cookie(key="access_token", **_cookie_options(settings))


@router.get("/me", response_model=IdentityRead)
async def get_me(identity: CurrentIdentity) -> IdentityRead:
    """Get the current authenticated identity."""
    return IdentityRead.model_validate(identity)
