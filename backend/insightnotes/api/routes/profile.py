"""Profile routes."""

from fastapi import APIRouter

from insightnotes.api.deps import CurrentIdentity, CurrentUserId, DbSession, Services
from insightnotes.schemas.user import ProfileRead, ProfileUpdate

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("/", response_model=ProfileRead)
async def get_profile(identity: CurrentIdentity, db: DbSession, services: Services) -> ProfileRead:
    """Get the current user's profile, creating it on first access."""
    return await services.profiles.get_or_create(db, identity)


@router.put("/", response_model=ProfileRead)
async def save_profile(
    data: ProfileUpdate,
    user_id: CurrentUserId,
    db: DbSession,
    services: Services,
) -> ProfileRead:
    return await services.profiles.update(db, user_id, data)
