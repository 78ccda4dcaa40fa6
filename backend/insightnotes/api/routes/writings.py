"""Creative writing CRUD routes."""

from uuid import UUID

from fastapi import APIRouter, status

from insightnotes.api.deps import CurrentUserId, DbSession, OptionalUserId, Services
from insightnotes.db.models import CATEGORY_SUGGESTIONS
from insightnotes.errors import NotFoundError
from insightnotes.schemas.notes import AppendTextRequest
from insightnotes.schemas.writings import (
    CreativeWritingCreate,
    CreativeWritingRead,
    CreativeWritingUpdate,
)

router = APIRouter(prefix="/creative-writings", tags=["creative-writings"])


@router.get("/", response_model=list[CreativeWritingRead])
async def list_writings(
    user_id: OptionalUserId,
    db: DbSession,
    services: Services,
    category: str | None = None,
    tag: str | None = None,
    q: str | None = None,
) -> list[CreativeWritingRead]:
    """List the current user's writings, optionally narrowed by category, tag or search text."""
    return await services.persistence.writings.list(db, user_id, category, tag=tag, q=q)


@router.get("/categories", response_model=list[str])
async def list_categories(
    user_id: OptionalUserId,
    db: DbSession,
    services: Services,
) -> list[str]:
    """Categories in use, followed by the suggested ones not used yet."""
    used = await services.persistence.writings.list_categories(db, user_id)
    return used + [category for category in CATEGORY_SUGGESTIONS if category not in used]


@router.post("/", response_model=CreativeWritingRead, status_code=status.HTTP_201_CREATED)
async def create_writing(
    data: CreativeWritingCreate,
    user_id: CurrentUserId,
    db: DbSession,
    services: Services,
) -> CreativeWritingRead:
    """Create a writing. Category defaults to 'general'."""
    return await services.persistence.writings.create(db, user_id, data)


@router.get("/{writing_id}", response_model=CreativeWritingRead)
async def get_writing(
    writing_id: UUID,
    user_id: CurrentUserId,
    db: DbSession,
    services: Services,
) -> CreativeWritingRead:
    writing = await services.persistence.writings.get(db, user_id, writing_id)
    if writing is None:
        raise NotFoundError("Creative writing not found")
    return writing


@router.patch("/{writing_id}", response_model=CreativeWritingRead)
async def update_writing(
    writing_id: UUID,
    data: CreativeWritingUpdate,
    user_id: CurrentUserId,
    db: DbSession,
    services: Services,
) -> CreativeWritingRead:
    return await services.persistence.writings.update(db, user_id, writing_id, data)


@router.delete("/{writing_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_writing(
    writing_id: UUID,
    user_id: CurrentUserId,
    db: DbSession,
    services: Services,
) -> None:
    await services.persistence.writings.delete(db, user_id, writing_id)


@router.post("/{writing_id}/append", response_model=CreativeWritingRead)
async def append_to_writing(
    writing_id: UUID,
    data: AppendTextRequest,
    user_id: CurrentUserId,
    db: DbSession,
    services: Services,
) -> CreativeWritingRead:
    """Append text to the writing's content."""
    writings = services.persistence.writings
    if not await writings.append_text(db, user_id, writing_id, data.text):
        raise NotFoundError("Creative writing not found")
    return await writings.get(db, user_id, writing_id)
