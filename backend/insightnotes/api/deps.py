"""
FastAPI Dependencies for authentication and service injection.

Key patterns:
1. The session resolver turns the request's token into an identity (or None)
2. Services are built once by the composition root and read from app.state
3. No global "current user" state - the identity id is passed explicitly
   into every service call, which scopes its queries by it

Security model:
- JWT stored in HttpOnly cookie (recommended) or Authorization header
- All note/writing queries are scoped by user_id at the SQL level
"""

from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from fastapi import Cookie, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from insightnotes.config import Settings
from insightnotes.db.models import AuthIdentity
from insightnotes.db.session import get_db
from insightnotes.errors import UnauthenticatedError
from insightnotes.services import AssistantService, ConversationStore, PersistenceService, ProfileService
from insightnotes.services.session import resolve_identity


@dataclass
class ServiceContainer:
    """Services wired by the composition root."""

    persistence: PersistenceService
    profiles: ProfileService
    assistant: AssistantService
    conversations: ConversationStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


DbSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Services = Annotated[ServiceContainer, Depends(get_services)]


# =============================================================================
# SESSION RESOLUTION
# =============================================================================


async def get_token_from_request(
    authorization: Annotated[str | None, Header()] = None,
    access_token: Annotated[str | None, Cookie()] = None,
) -> str | None:
    """
    Extract the JWT from the request, if any.

    Supports two methods (in order of preference):
    1. HttpOnly cookie named 'access_token'
    2. Authorization header: 'Bearer <token>'
    """
    if access_token:
        return access_token

    if authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]

    return None


async def get_current_identity(
    token: Annotated[str | None, Depends(get_token_from_request)],
    db: DbSession,
    settings: AppSettings,
) -> AuthIdentity | None:
    """Identity behind the request, or None. Raises SessionUnknownError if the lookup fails."""
    return await resolve_identity(db, token, settings)


async def get_current_user_id(
    identity: Annotated[AuthIdentity | None, Depends(get_current_identity)],
) -> UUID | None:
    return identity.id if identity else None


async def require_current_identity(
    identity: Annotated[AuthIdentity | None, Depends(get_current_identity)],
) -> AuthIdentity:
    """
    Identity behind the request; 401 when there is none.

    Use it in route handlers that cannot degrade for anonymous callers:

        @router.post("/notes")
        async def create_note(user_id: CurrentUserId, ...):
            ...
    """
    if identity is None:
        raise UnauthenticatedError()
    return identity


async def require_current_user_id(
    identity: Annotated[AuthIdentity, Depends(require_current_identity)],
) -> UUID:
    return identity.id


# Type aliases for dependency injection
OptionalUserId = Annotated[UUID | None, Depends(get_current_user_id)]
CurrentUserId = Annotated[UUID, Depends(require_current_user_id)]
CurrentIdentity = Annotated[AuthIdentity, Depends(require_current_identity)]
