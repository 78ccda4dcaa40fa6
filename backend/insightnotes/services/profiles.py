"""User profile service: lazily created on first read, updated by explicit save."""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from insightnotes.db.models import AuthIdentity, UserProfile
from insightnotes.errors import StoreFailureError, UnauthenticatedError
from insightnotes.schemas.user import ProfileRead, ProfileUpdate
from insightnotes.services.mappers import row_to_profile

logger = logging.getLogger(__name__)


class ProfileService:
    """Reads and writes the `users` profile table."""

    async def _fetch(self, db: AsyncSession, user_id: UUID) -> UserProfile | None:
        try:
            result = await db.execute(select(UserProfile).where(UserProfile.id == user_id))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await db.rollback()
            raise StoreFailureError(f"Database error: {e}") from e

    async def _commit(self, db: AsyncSession) -> None:
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise StoreFailureError(f"Database error: {e}") from e

    async def get_or_create(self, db: AsyncSession, identity: AuthIdentity | None) -> ProfileRead:
        """
        Get the identity's profile, creating it if missing.

        A new profile is seeded with the identity's display name and an
        empty phone number.
        """
        if identity is None:
            raise UnauthenticatedError()

        profile = await self._fetch(db, identity.id)
        if profile is None:
            now = datetime.now(timezone.utc)
            profile = UserProfile(
                id=identity.id,
                name=identity.display_name or "",
                phone="",
                created_at=now,
                updated_at=now,
            )
            db.add(profile)
            await self._commit(db)
            logger.info("Created profile for identity %s", identity.id)

        return row_to_profile(profile)

    async def update(self, db: AsyncSession, user_id: UUID | None, data: ProfileUpdate) -> ProfileRead:
        """Save name/phone (upsert). An empty phone is stored as NULL."""
        if user_id is None:
            raise UnauthenticatedError()

        now = datetime.now(timezone.utc)
        profile = await self._fetch(db, user_id)
        if profile is None:
            profile = UserProfile(id=user_id, created_at=now)
            db.add(profile)

        profile.name = data.name
        profile.phone = data.phone or None
        profile.updated_at = now
        await self._commit(db)
        return row_to_profile(profile)
