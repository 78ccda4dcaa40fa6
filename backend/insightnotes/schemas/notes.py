"""Note schemas."""

from uuid import UUID

from pydantic import Field

from insightnotes.db.models import NoteType
from insightnotes.schemas.base import ContentSchema, IDMixin, Tags, TimestampMixin, Title


class NoteBase(ContentSchema):
    """Base note schema."""

    title: Title
    content: str = ""
    tags: Tags = Field(default_factory=list)


class NoteCreate(NoteBase):
    """Schema for creating a note. Type defaults to academic."""

    type: NoteType = NoteType.ACADEMIC


class NoteRead(NoteBase, IDMixin, TimestampMixin):
    """Schema for reading note data."""

    user_id: UUID
    type: NoteType
    version: int


class NoteUpdate(ContentSchema):
    """
    Schema for updating a note. All fields optional.

    Omitted (or null) fields are left unchanged. `type` is not editable.
    `expected_version`, when given, must match the stored version.
    """

    title: Title | None = None
    content: str | None = None
    tags: Tags | None = None
    expected_version: int | None = Field(None, ge=1)


class AppendTextRequest(ContentSchema):
    """Text to append to a note or writing's content."""

    text: str = Field(..., min_length=1)
