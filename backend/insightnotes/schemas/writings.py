"""Creative writing schemas."""

from uuid import UUID

from pydantic import Field

from insightnotes.schemas.base import ContentSchema, IDMixin, Tags, TimestampMixin, Title


class CreativeWritingBase(ContentSchema):
    """Base creative writing schema."""

    title: Title
    content: str = ""
    tags: Tags = Field(default_factory=list)


class CreativeWritingCreate(CreativeWritingBase):
    """Schema for creating a writing. Category defaults to 'general'."""

    category: str | None = Field(None, max_length=100)


class CreativeWritingRead(CreativeWritingBase, IDMixin, TimestampMixin):
    """Schema for reading creative writing data."""

    user_id: UUID
    category: str | None
    version: int


class CreativeWritingUpdate(ContentSchema):
    """Schema for updating a writing. Omitted (or null) fields are left unchanged."""

    title: Title | None = None
    content: str | None = None
    tags: Tags | None = None
    category: str | None = Field(None, max_length=100)
    expected_version: int | None = Field(None, ge=1)
