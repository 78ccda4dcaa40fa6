"""Identity and profile schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from insightnotes.schemas.base import BaseSchema


class IdentityRead(BaseSchema):
    """Schema for reading the authenticated identity."""

    id: UUID
    provider: str
    email: str | None
    display_name: str | None
    created_at: datetime
    last_login_at: datetime


class ProfileRead(BaseSchema):
    """Schema for reading a user profile."""

    id: UUID
    name: str | None
    phone: str | None
    created_at: datetime
    updated_at: datetime


class ProfileUpdate(BaseSchema):
    """Schema for saving the profile. Name is required, phone may be cleared."""

    name: str = Field(..., max_length=255)
    phone: str | None = Field(None, max_length=50)
