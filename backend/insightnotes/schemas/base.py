"""Base schema configuration and shared field types."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, StringConstraints

MAX_TAG_LENGTH = 50


def normalize_tags(tags: list[str]) -> list[str]:
    """Strip, drop empties and de-duplicate tags, keeping first occurrence order."""
    seen: set[str] = set()
    result = []
    for raw in tags:
        tag = raw.strip()
        if not tag or tag in seen:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            raise ValueError(f"Tag '{tag[:20]}...' exceeds {MAX_TAG_LENGTH} characters")
        seen.add(tag)
        result.append(tag)
    return result


Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
Tags = Annotated[list[str], AfterValidator(normalize_tags)]


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,  # Enable ORM mode
        str_strip_whitespace=True,
        validate_assignment=True,
    )


class ContentSchema(BaseSchema):
    """Schemas carrying user-authored text keep whitespace as typed."""

    model_config = ConfigDict(str_strip_whitespace=False)


class TimestampMixin(BaseModel):
    """Mixin for created_at/updated_at timestamps."""

    created_at: datetime
    updated_at: datetime


class IDMixin(BaseModel):
    """Mixin for UUID primary key."""

    id: UUID
