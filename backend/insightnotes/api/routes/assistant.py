"""API routes for the AI assistant and its chat histories."""

import asyncio
import logging
from uuid import UUID

from fastapi import APIRouter, status

from insightnotes.api.deps import CurrentUserId, DbSession, Services
from insightnotes.db.models import ChatRole, NoteType
from insightnotes.errors import NotFoundError, StoreFailureError
from insightnotes.schemas.assistant import (
    AskRequest,
    AskResponse,
    ChatHistory,
    ChatHistoryList,
    ChatMessage,
    Insight,
    MessageAppendRequest,
)
from insightnotes.services.assistant import is_greeting
from insightnotes.services.conversation_store import ConversationStore, now_ms

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/assistant", tags=["assistant"])


# =============================================================================
# HELPERS
# =============================================================================
# The store does blocking file I/O, so every call runs in a worker thread.


async def _get_owned_history(store: ConversationStore, history_id: str, user_id: UUID) -> ChatHistory:
    """Fetch a history, raising 404 if it does not exist or belongs to someone else."""
    history = await asyncio.to_thread(store.get, history_id)
    if history is None or history.user_id != str(user_id):
        raise NotFoundError("Chat history not found")
    return history


async def _record(store: ConversationStore, history_id: str, role: ChatRole, content: str) -> None:
    message = ChatMessage(role=role, content=content, timestamp=now_ms())
    if not await asyncio.to_thread(store.append, history_id, message):
        logger.warning("Could not record %s message in chat history %s", role.value, history_id)


# =============================================================================
# ASSISTANT
# =============================================================================


@router.post("/ask", response_model=AskResponse)
async def ask(
    data: AskRequest,
    user_id: CurrentUserId,
    db: DbSession,
    services: Services,
) -> AskResponse:
    """
    Ask the assistant a question about the user's notes or writings.

    Context is the user's creative writings in creative mode and their
    academic notes otherwise, narrowed to `item_ids` when given. The query
    and answer are appended to the chat history (a new one is started when
    `history_id` is omitted); the history's earlier messages are sent along
    as conversational memory. If a new history cannot be stored, the
    question is still answered and `history_id` comes back null.
    """
    store = services.conversations
    if data.history_id:
        history = await _get_owned_history(store, data.history_id, user_id)
    else:
        history = await asyncio.to_thread(store.create_history, str(user_id))
        if history is None:
            logger.warning("Answering without a chat history for user %s", user_id)

    if data.is_creative:
        items = await services.persistence.writings.list(db, user_id)
    else:
        items = await services.persistence.notes.list(db, user_id, NoteType.ACADEMIC)
    if data.item_ids is not None:
        wanted = set(data.item_ids)
        items = [item for item in items if item.id in wanted]

    general = is_greeting(data.query)
    previous = history.messages if history is not None else []
    text = await services.assistant.ask(data.query, data.is_creative, items, previous)

    if history is not None:
        await _record(store, history.id, ChatRole.USER, data.query)
        await _record(store, history.id, ChatRole.ASSISTANT, text)

    return AskResponse(
        text=text,
        history_id=history.id if history is not None else None,
        is_general=general,
        source_ids=[] if general else [item.id for item in items],
    )


@router.post("/insights", response_model=list[Insight])
async def generate_insights(
    user_id: CurrentUserId,
    db: DbSession,
    services: Services,
) -> list[Insight]:
    """Question/answer pairs generated from the user's academic notes."""
    notes = await services.persistence.notes.list(db, user_id, NoteType.ACADEMIC)
    return await services.assistant.generate_insights(notes)


# =============================================================================
# CHAT HISTORIES
# =============================================================================


@router.get("/histories", response_model=ChatHistoryList)
async def list_histories(user_id: CurrentUserId, services: Services) -> ChatHistoryList:
    """List the user's chat histories, most recently updated first."""
    histories = sorted(
        await asyncio.to_thread(services.conversations.list_for, str(user_id)),
        key=lambda history: history.updated_at,
        reverse=True,
    )
    return ChatHistoryList(histories=histories, total=len(histories))


@router.post("/histories", response_model=ChatHistory, status_code=status.HTTP_201_CREATED)
async def create_history(user_id: CurrentUserId, services: Services) -> ChatHistory:
    history = await asyncio.to_thread(services.conversations.create_history, str(user_id))
    if history is None:
        raise StoreFailureError("Could not create chat history")
    return history


@router.get("/histories/{history_id}", response_model=ChatHistory)
async def get_history(history_id: str, user_id: CurrentUserId, services: Services) -> ChatHistory:
    return await _get_owned_history(services.conversations, history_id, user_id)


@router.delete("/histories/{history_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_history(history_id: str, user_id: CurrentUserId, services: Services) -> None:
    """Delete a chat history. Unknown ids also answer 204."""
    store = services.conversations
    history = await asyncio.to_thread(store.get, history_id)
    if history is not None and history.user_id != str(user_id):
        raise NotFoundError("Chat history not found")
    await asyncio.to_thread(store.delete, history_id)


@router.post("/histories/{history_id}/messages", response_model=ChatHistory)
async def append_message(
    history_id: str,
    data: MessageAppendRequest,
    user_id: CurrentUserId,
    services: Services,
) -> ChatHistory:
    """Append a message to the end of a history."""
    store = services.conversations
    await _get_owned_history(store, history_id, user_id)
    message = ChatMessage(role=data.role, content=data.content, timestamp=now_ms())
    if not await asyncio.to_thread(store.append, history_id, message):
        raise NotFoundError("Chat history not found")
    return await _get_owned_history(store, history_id, user_id)


@router.post("/histories/{history_id}/clear", response_model=ChatHistory)
async def clear_history(history_id: str, user_id: CurrentUserId, services: Services) -> ChatHistory:
    """Remove all messages, keeping the history."""
    store = services.conversations
    await _get_owned_history(store, history_id, user_id)
    if not await asyncio.to_thread(store.clear, history_id):
        raise NotFoundError("Chat history not found")
    return await _get_owned_history(store, history_id, user_id)
