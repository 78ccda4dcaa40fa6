"""Notes CRUD routes."""

from uuid import UUID

from fastapi import APIRouter, status

from insightnotes.api.deps import CurrentUserId, DbSession, OptionalUserId, Services
from insightnotes.db.models import NoteType
from insightnotes.errors import NotFoundError
from insightnotes.schemas.notes import AppendTextRequest, NoteCreate, NoteRead, NoteUpdate

router = APIRouter(prefix="/notes", tags=["notes"])


@router.get("/", response_model=list[NoteRead])
async def list_notes(
    user_id: OptionalUserId,
    db: DbSession,
    services: Services,
    type: NoteType | None = None,
    tag: str | None = None,
    q: str | None = None,
) -> list[NoteRead]:
    """
    List notes for the current user, most recently updated first.

    Filters:
    - type: academic or creative
    - tag: notes carrying this tag
    - q: search in title and content

    Anonymous callers get an empty list.
    """
    return await services.persistence.notes.list(db, user_id, type, tag=tag, q=q)


@router.post("/", response_model=NoteRead, status_code=status.HTTP_201_CREATED)
async def create_note(
    data: NoteCreate,
    user_id: CurrentUserId,
    db: DbSession,
    services: Services,
) -> NoteRead:
    """Create a new note. Type defaults to academic."""
    return await services.persistence.notes.create(db, user_id, data)


@router.get("/{note_id}", response_model=NoteRead)
async def get_note(
    note_id: UUID,
    user_id: CurrentUserId,
    db: DbSession,
    services: Services,
) -> NoteRead:
    """Get a specific note by ID."""
    note = await services.persistence.notes.get(db, user_id, note_id)
    if note is None:
        raise NotFoundError("Note not found")
    return note


@router.patch("/{note_id}", response_model=NoteRead)
async def update_note(
    note_id: UUID,
    data: NoteUpdate,
    user_id: CurrentUserId,
    db: DbSession,
    services: Services,
) -> NoteRead:
    """Update a note's title, content or tags."""
    return await services.persistence.notes.update(db, user_id, note_id, data)


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    note_id: UUID,
    user_id: CurrentUserId,
    db: DbSession,
    services: Services,
) -> None:
    """Delete a note. Deleting an already-deleted note also answers 204."""
    await services.persistence.notes.delete(db, user_id, note_id)


@router.post("/{note_id}/append", response_model=NoteRead)
async def append_to_note(
    note_id: UUID,
    data: AppendTextRequest,
    user_id: CurrentUserId,
    db: DbSession,
    services: Services,
) -> NoteRead:
    """Append text (e.g. a selected assistant answer) to the note's content."""
    notes = services.persistence.notes
    if not await notes.append_text(db, user_id, note_id, data.text):
        raise NotFoundError("Note not found")
    return await notes.get(db, user_id, note_id)
