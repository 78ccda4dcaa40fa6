"""
SQLAlchemy 2.0 Models for InsightNotes.

Uses modern declarative syntax with Mapped[] type annotations.
Column types are portable (Uuid, DateTime, JSON) with PostgreSQL variants
where PostgreSQL has a better native type (TEXT[] for tags).
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column, relationship

from insightnotes.db.base import Base

# TEXT[] on PostgreSQL, JSON elsewhere (SQLite in tests)
TagList = JSON().with_variant(ARRAY(Text), "postgresql")


# =============================================================================
# ENUMS
# =============================================================================


class NoteType(str, PyEnum):
    """Discriminator partitioning the notes table."""

    ACADEMIC = "academic"
    CREATIVE = "creative"


class ChatRole(str, PyEnum):
    """Role in chat conversation."""

    USER = "user"
    ASSISTANT = "assistant"


DEFAULT_CATEGORY = "general"
CATEGORY_SUGGESTIONS = ("Poetry", "Short Stories", "Journal", "Novel")


# =============================================================================
# MODELS
# =============================================================================


class AuthIdentity(Base):
    """
    Authenticated identity.

    One row per (provider, provider_user_id). Its id is the owner id that
    every note, writing and profile row is scoped by. Does NOT store OAuth
    access/refresh tokens - we only verify id_tokens at login.
    """

    __tablename__ = "auth_identities"
    __table_args__ = (
        UniqueConstraint("provider", "provider_user_id", name="unique_provider_identity"),
        Index("idx_auth_identities_provider_lookup", "provider", "provider_user_id"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)  # 'google'
    provider_user_id: Mapped[str] = mapped_column(String(255), nullable=False)  # Provider's 'sub' claim
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_login_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    profile: Mapped[Optional["UserProfile"]] = relationship(
        "UserProfile", back_populates="identity", uselist=False, cascade="all, delete-orphan"
    )
    notes: Mapped[list["Note"]] = relationship(
        "Note", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True
    )
    creative_writings: Mapped[list["CreativeWriting"]] = relationship(
        "CreativeWriting", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True
    )


class UserProfile(Base):
    """
    Editable profile (1:1 with auth_identities).

    Created lazily on first read, seeded from the identity's display name.
    Never deleted by the application.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("auth_identities.id", ondelete="CASCADE"), primary_key=True
    )
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    identity: Mapped["AuthIdentity"] = relationship("AuthIdentity", back_populates="profile")


class Note(Base):
    """
    Academic (or creative) note.

    `type` is set at creation and not changed by editors. `version` is the
    optimistic-concurrency token: SQLAlchemy adds `WHERE version = :old` to
    every UPDATE and bumps it, so concurrent writers cannot silently
    overwrite each other.
    """

    __tablename__ = "notes"
    __table_args__ = (
        Index("idx_notes_user_updated_at", "user_id", "updated_at"),
        Index("idx_notes_user_type", "user_id", "type"),
        CheckConstraint("type IN ('academic', 'creative')", name="valid_note_type"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("auth_identities.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(TagList, nullable=False, default=list)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=NoteType.ACADEMIC.value)
    version: Mapped[int] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    owner: Mapped["AuthIdentity"] = relationship("AuthIdentity", back_populates="notes")


class CreativeWriting(Base):
    """
    Creative writing (poem, story, journal entry, ...).

    Same shape as Note but in its own table, partitioned by a free-form
    `category` instead of `type`.
    """

    __tablename__ = "creative_writings"
    __table_args__ = (
        Index("idx_creative_writings_user_updated_at", "user_id", "updated_at"),
        Index("idx_creative_writings_user_category", "user_id", "category"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("auth_identities.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(TagList, nullable=False, default=list)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, default=DEFAULT_CATEGORY)
    version: Mapped[int] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    owner: Mapped["AuthIdentity"] = relationship("AuthIdentity", back_populates="creative_writings")
