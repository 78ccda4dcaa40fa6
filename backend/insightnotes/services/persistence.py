"""
Persistence service for notes and creative writings.

Key patterns:
1. Every query is scoped by the caller's identity id (WHERE user_id = ...),
   so guessing another user's id never reaches their rows.
2. user_id=None means "not authenticated": list/get degrade to empty/None,
   writes raise UnauthenticatedError.
3. No caching - every read goes to the database.
4. Writes are guarded by the row's `version` column. A concurrent writer
   that committed between our read and our write makes the flush fail with
   StaleDataError, surfaced as ConflictError instead of a lost update.
"""

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from insightnotes.db.models import DEFAULT_CATEGORY, CreativeWriting, Note, NoteType
from insightnotes.errors import (
    ConflictError,
    EntityValidationError,
    NotFoundError,
    StoreFailureError,
    UnauthenticatedError,
)
from insightnotes.schemas.notes import NoteCreate, NoteRead
from insightnotes.schemas.writings import CreativeWritingCreate, CreativeWritingRead
from insightnotes.services.mappers import row_to_note, row_to_writing

logger = logging.getLogger(__name__)

APPEND_SEPARATOR = "\n\n"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _next_timestamp(previous: datetime | None) -> datetime:
    """Write time, nudged forward so updated_at strictly increases."""
    now = _utcnow()
    if previous is None:
        return now
    if previous.tzinfo is None:
        previous = previous.replace(tzinfo=timezone.utc)
    return now if now > previous else previous + timedelta(microseconds=1)


class EntityKind(str, PyEnum):
    """Persisted entity kinds."""

    NOTE = "note"
    CREATIVE_WRITING = "creative_writing"


class OwnedEntityService:
    """CRUD over one user-owned table. Subclasses set the model and mapping."""

    model: Any = None
    discriminator: str = ""
    label: str = "Entity"

    def to_read(self, row: Any) -> Any:
        raise NotImplementedError

    def build(self, user_id: UUID, data: Any) -> Any:
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # helpers
    # -------------------------------------------------------------------------

    async def _get_owned(self, db: AsyncSession, user_id: UUID, entity_id: UUID) -> Any:
        result = await db.execute(
            select(self.model).where(self.model.id == entity_id, self.model.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def _load_owned(self, db: AsyncSession, user_id: UUID, entity_id: UUID) -> Any:
        try:
            return await self._get_owned(db, user_id, entity_id)
        except SQLAlchemyError as e:
            await db.rollback()
            raise StoreFailureError(f"Database error: {e}") from e

    async def _commit(self, db: AsyncSession) -> None:
        try:
            await db.commit()
        except StaleDataError as e:
            await db.rollback()
            raise ConflictError(f"{self.label} was modified by another request") from e
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("%s write failed: %s", self.label, e)
            raise StoreFailureError(f"Database error: {e}") from e

    # -------------------------------------------------------------------------
    # operations
    # -------------------------------------------------------------------------

    async def list(
        self,
        db: AsyncSession,
        user_id: UUID | None,
        discriminator: str | None = None,
        *,
        tag: str | None = None,
        q: str | None = None,
    ) -> list:
        """
        List the user's entities, most recently modified first.

        Filters:
        - discriminator: note type / writing category
        - tag: entities carrying this tag
        - q: case-insensitive search in title and content

        Never raises for store failures; they are logged and yield [].
        """
        if user_id is None:
            return []

        query = select(self.model).where(self.model.user_id == user_id)
        if discriminator is not None:
            value = getattr(discriminator, "value", discriminator)
            query = query.where(getattr(self.model, self.discriminator) == value)
        if q:
            search_pattern = f"%{q}%"
            query = query.where(
                or_(
                    self.model.title.ilike(search_pattern),
                    self.model.content.ilike(search_pattern),
                )
            )
        query = query.order_by(self.model.updated_at.desc())

        try:
            result = await db.execute(query)
            rows = list(result.scalars())
        except SQLAlchemyError:
            logger.exception("Error fetching %s list for user %s", self.label.lower(), user_id)
            await db.rollback()
            return []

        if tag:
            # Filtered here so it works for both TEXT[] and JSON tag columns
            rows = [row for row in rows if tag in (row.tags or [])]
        return [self.to_read(row) for row in rows]

    async def get(self, db: AsyncSession, user_id: UUID | None, entity_id: UUID) -> Any:
        """Fetch one entity; None when absent, not owned or unauthenticated."""
        if user_id is None:
            return None
        row = await self._load_owned(db, user_id, entity_id)
        return self.to_read(row) if row is not None else None

    async def create(self, db: AsyncSession, user_id: UUID | None, data: Any) -> Any:
        """Create an entity owned by the user. Timestamps are set at write time."""
        if user_id is None:
            raise UnauthenticatedError()
        if not data.title or not data.title.strip():
            raise EntityValidationError("Title is required")

        row = self.build(user_id, data)
        now = _utcnow()
        row.created_at = now
        row.updated_at = now
        db.add(row)
        await self._commit(db)
        logger.info("Created %s %s for user %s", self.label.lower(), row.id, user_id)
        return self.to_read(row)

    async def update(self, db: AsyncSession, user_id: UUID | None, entity_id: UUID, data: Any) -> Any:
        """
        Apply a partial update.

        Only fields present (and non-null) in `data` change. When
        `data.expected_version` is set it must match the stored version.
        """
        if user_id is None:
            raise UnauthenticatedError()

        row = await self._load_owned(db, user_id, entity_id)
        if row is None:
            raise NotFoundError(f"{self.label} not found")

        expected_version = getattr(data, "expected_version", None)
        if expected_version is not None and expected_version != row.version:
            raise ConflictError(
                f"{self.label} is at version {row.version}, not {expected_version}"
            )

        changes = data.model_dump(exclude_unset=True, exclude_none=True, exclude={"expected_version"})
        for key, value in changes.items():
            setattr(row, key, value)
        row.updated_at = _next_timestamp(row.updated_at)
        await self._commit(db)
        return self.to_read(row)

    async def delete(self, db: AsyncSession, user_id: UUID | None, entity_id: UUID) -> bool:
        """Delete an entity. Deleting a missing id is not an error."""
        if user_id is None:
            raise UnauthenticatedError()
        try:
            await db.execute(
                delete(self.model).where(self.model.id == entity_id, self.model.user_id == user_id)
            )
        except SQLAlchemyError as e:
            await db.rollback()
            raise StoreFailureError(f"Database error: {e}") from e
        await self._commit(db)
        return True

    async def append_text(
        self,
        db: AsyncSession,
        user_id: UUID | None,
        entity_id: UUID,
        text: str,
    ) -> bool:
        """
        Append text to the entity's content, separated by a blank line.

        Returns False when the entity does not exist. Raises ConflictError
        if someone else wrote the entity between our read and our write.
        """
        if user_id is None:
            raise UnauthenticatedError()

        row = await self._load_owned(db, user_id, entity_id)
        if row is None:
            return False

        row.content = (row.content or "") + APPEND_SEPARATOR + text
        row.updated_at = _next_timestamp(row.updated_at)
        await self._commit(db)
        return True


class NoteService(OwnedEntityService):
    """Notes, partitioned by `type` (academic | creative)."""

    model = Note
    discriminator = "type"
    label = "Note"

    def to_read(self, row: Note) -> NoteRead:
        return row_to_note(row)

    def build(self, user_id: UUID, data: NoteCreate) -> Note:
        note_type = data.type or NoteType.ACADEMIC
        return Note(
            user_id=user_id,
            title=data.title,
            content=data.content,
            tags=list(data.tags or []),
            type=NoteType(note_type).value,
        )


class CreativeWritingService(OwnedEntityService):
    """Creative writings, partitioned by free-form `category`."""

    model = CreativeWriting
    discriminator = "category"
    label = "Creative writing"

    def to_read(self, row: CreativeWriting) -> CreativeWritingRead:
        return row_to_writing(row)

    def build(self, user_id: UUID, data: CreativeWritingCreate) -> CreativeWriting:
        category = (data.category or "").strip() or DEFAULT_CATEGORY
        return CreativeWriting(
            user_id=user_id,
            title=data.title,
            content=data.content,
            tags=list(data.tags or []),
            category=category,
        )

    async def list_categories(self, db: AsyncSession, user_id: UUID | None) -> list[str]:
        """Distinct categories in use by the user's writings."""
        if user_id is None:
            return []
        query = (
            select(CreativeWriting.category)
            .where(CreativeWriting.user_id == user_id, CreativeWriting.category.is_not(None))
            .distinct()
            .order_by(CreativeWriting.category)
        )
        try:
            result = await db.execute(query)
        except SQLAlchemyError:
            logger.exception("Error fetching creative writing categories for user %s", user_id)
            await db.rollback()
            return []
        return [category for category in result.scalars() if category]


class PersistenceService:
    """Dispatches entity operations by EntityKind."""

    def __init__(
        self,
        notes: NoteService | None = None,
        writings: CreativeWritingService | None = None,
    ):
        self.notes = notes or NoteService()
        self.writings = writings or CreativeWritingService()
        self._by_kind: dict[EntityKind, OwnedEntityService] = {
            EntityKind.NOTE: self.notes,
            EntityKind.CREATIVE_WRITING: self.writings,
        }

    def __getitem__(self, kind: EntityKind | str) -> OwnedEntityService:
        return self._by_kind[EntityKind(kind)]

    async def list(self, kind, db, user_id, discriminator=None, **filters):
        return await self[kind].list(db, user_id, discriminator, **filters)

    async def get(self, kind, db, user_id, entity_id):
        return await self[kind].get(db, user_id, entity_id)

    async def create(self, kind, db, user_id, data):
        return await self[kind].create(db, user_id, data)

    async def update(self, kind, db, user_id, entity_id, data):
        return await self[kind].update(db, user_id, entity_id, data)

    async def delete(self, kind, db, user_id, entity_id) -> bool:
        return await self[kind].delete(db, user_id, entity_id)

    async def append_text(self, kind, db, user_id, entity_id, text) -> bool:
        return await self[kind].append_text(db, user_id, entity_id, text)
