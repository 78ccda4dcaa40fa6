"""Initial schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

Creates the InsightNotes database schema:
- Extensions: uuid-ossp
- Tables: auth_identities, users (profiles), notes, creative_writings
- Indexes: per-owner listing indexes

updated_at is written by the application (it must strictly increase per
row), so there are no updated_at triggers.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ==========================================================================
    # AUTH_IDENTITIES TABLE
    # ==========================================================================
    op.create_table(
        "auth_identities",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("uuid_generate_v4()"), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("provider_user_id", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("created_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("last_login_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider", "provider_user_id", name="unique_provider_identity"),
    )
    op.create_index("idx_auth_identities_provider_lookup", "auth_identities", ["provider", "provider_user_id"])

    # ==========================================================================
    # USERS (PROFILE) TABLE
    # ==========================================================================
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("created_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["id"], ["auth_identities.id"], ondelete="CASCADE"),
    )

    # ==========================================================================
    # NOTES TABLE
    # ==========================================================================
    op.create_table(
        "notes",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("uuid_generate_v4()"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("tags", postgresql.ARRAY(sa.Text()), server_default=sa.text("'{}'"), nullable=False),
        sa.Column("type", sa.String(20), server_default="academic", nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.Column("created_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["auth_identities.id"], ondelete="CASCADE"),
        sa.CheckConstraint("type IN ('academic', 'creative')", name="valid_note_type"),
    )
    op.create_index("idx_notes_user_updated_at", "notes", ["user_id", "updated_at"])
    op.create_index("idx_notes_user_type", "notes", ["user_id", "type"])
    op.execute("CREATE INDEX idx_notes_tags ON notes USING GIN(tags)")

    # ==========================================================================
    # CREATIVE_WRITINGS TABLE
    # ==========================================================================
    op.create_table(
        "creative_writings",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("uuid_generate_v4()"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("tags", postgresql.ARRAY(sa.Text()), server_default=sa.text("'{}'"), nullable=False),
        sa.Column("category", sa.String(100), server_default="general", nullable=True),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.Column("created_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["auth_identities.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_creative_writings_user_updated_at", "creative_writings", ["user_id", "updated_at"])
    op.create_index("idx_creative_writings_user_category", "creative_writings", ["user_id", "category"])


def downgrade() -> None:
    op.drop_table("creative_writings")
    op.drop_table("notes")
    op.drop_table("users")
    op.drop_table("auth_identities")
