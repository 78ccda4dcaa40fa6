"""Service layer: persistence, profiles, AI assistant and conversation store."""

from insightnotes.services.assistant import AssistantService
from insightnotes.services.conversation_store import ConversationStore
from insightnotes.services.persistence import (
    CreativeWritingService,
    EntityKind,
    NoteService,
    PersistenceService,
)
from insightnotes.services.profiles import ProfileService

__all__ = [
    "AssistantService",
    "ConversationStore",
    "CreativeWritingService",
    "EntityKind",
    "NoteService",
    "PersistenceService",
    "ProfileService",
]
