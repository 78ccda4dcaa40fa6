"""Pydantic schemas for API request/response validation."""

from insightnotes.schemas.assistant import (
    AskRequest,
    AskResponse,
    ChatHistory,
    ChatHistoryList,
    ChatMessage,
    Insight,
    MessageAppendRequest,
)
from insightnotes.schemas.auth import GoogleAuthRequest, TokenResponse
from insightnotes.schemas.notes import AppendTextRequest, NoteCreate, NoteRead, NoteUpdate
from insightnotes.schemas.user import IdentityRead, ProfileRead, ProfileUpdate
from insightnotes.schemas.writings import (
    CreativeWritingCreate,
    CreativeWritingRead,
    CreativeWritingUpdate,
)

__all__ = [
    # Auth
    "GoogleAuthRequest",
    "TokenResponse",
    # Identity / profile
    "IdentityRead",
    "ProfileRead",
    "ProfileUpdate",
    # Notes
    "NoteCreate",
    "NoteRead",
    "NoteUpdate",
    "AppendTextRequest",
    # Creative writings
    "CreativeWritingCreate",
    "CreativeWritingRead",
    "CreativeWritingUpdate",
    # Assistant
    "AskRequest",
    "AskResponse",
    "ChatHistory",
    "ChatHistoryList",
    "ChatMessage",
    "Insight",
    "MessageAppendRequest",
]
