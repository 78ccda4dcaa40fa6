"""Pydantic schemas for the AI assistant and chat histories."""

from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from insightnotes.db.models import ChatRole


class ChatMessage(BaseModel):
    """One message of a conversation. Timestamps are epoch milliseconds."""

    role: ChatRole
    content: str
    timestamp: int


class ChatHistory(BaseModel):
    """Append-only conversation log, stored locally."""

    id: str
    # Older files were written with camelCase keys; output is always snake_case
    user_id: str = Field(validation_alias=AliasChoices("user_id", "userId"))
    messages: list[ChatMessage] = Field(default_factory=list)
    created_at: int = Field(validation_alias=AliasChoices("created_at", "createdAt"))
    updated_at: int = Field(validation_alias=AliasChoices("updated_at", "updatedAt"))


class ChatHistoryList(BaseModel):
    """List of chat histories."""

    histories: list[ChatHistory]
    total: int


class MessageAppendRequest(BaseModel):
    """Request to append a message to a history."""

    role: ChatRole
    content: str = Field(..., min_length=1)


class AskRequest(BaseModel):
    """Request to ask the assistant."""

    query: str = Field(..., min_length=1, max_length=10000)
    is_creative: bool = False
    history_id: str | None = None
    # Restrict context to these note/writing ids; all of the user's items otherwise
    item_ids: list[UUID] | None = None


class AskResponse(BaseModel):
    """Assistant answer (HTML fragment) and the history it was recorded in."""

    text: str
    history_id: str | None
    is_general: bool
    source_ids: list[UUID] = Field(default_factory=list)


class Insight(BaseModel):
    """Generated question/answer pair about the user's notes."""

    id: str
    question: str
    answer: str
