"""
Row -> record mapping.

Pure functions turning storage rows (ORM objects or plain mappings) into the
read schemas. Nullable storage fields (content, tags, type, version,
a blank title) are defaulted so a sparse row still maps. The
NOT NULL columns `id`, `user_id`, `created_at` and `updated_at` are
required: a row missing one of them is not a stored row, and mapping it
raises pydantic.ValidationError.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from insightnotes.db.models import NoteType
from insightnotes.schemas.notes import NoteRead
from insightnotes.schemas.user import ProfileRead
from insightnotes.schemas.writings import CreativeWritingRead


def _field(row: Any, name: str, default: Any = None) -> Any:
    if isinstance(row, Mapping):
        value = row.get(name, default)
    else:
        value = getattr(row, name, default)
    return default if value is None else value


def _timestamp(row: Any, name: str) -> datetime | None:
    # Some dialects (SQLite) hand back naive datetimes; they are stored as UTC
    value = _field(row, name)
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _note_type(value: Any) -> NoteType:
    try:
        return NoteType(value)
    except ValueError:
        return NoteType.ACADEMIC


def row_to_note(row: Any) -> NoteRead:
    """Map a `notes` row to a NoteRead."""
    return NoteRead(
        id=_field(row, "id"),
        user_id=_field(row, "user_id"),
        title=_field(row, "title") or "Untitled",
        content=_field(row, "content", ""),
        tags=list(_field(row, "tags", [])),
        type=_note_type(_field(row, "type")),
        version=_field(row, "version", 1),
        created_at=_timestamp(row, "created_at"),
        updated_at=_timestamp(row, "updated_at"),
    )


def row_to_writing(row: Any) -> CreativeWritingRead:
    """Map a `creative_writings` row to a CreativeWritingRead. Category stays nullable."""
    return CreativeWritingRead(
        id=_field(row, "id"),
        user_id=_field(row, "user_id"),
        title=_field(row, "title") or "Untitled",
        content=_field(row, "content", ""),
        tags=list(_field(row, "tags", [])),
        category=_field(row, "category"),
        version=_field(row, "version", 1),
        created_at=_timestamp(row, "created_at"),
        updated_at=_timestamp(row, "updated_at"),
    )


def row_to_profile(row: Any) -> ProfileRead:
    """Map a `users` row to a ProfileRead."""
    return ProfileRead(
        id=_field(row, "id"),
        name=_field(row, "name"),
        phone=_field(row, "phone"),
        created_at=_timestamp(row, "created_at"),
        updated_at=_timestamp(row, "updated_at"),
    )
