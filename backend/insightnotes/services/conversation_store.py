"""
Local conversation store.

Chat histories live in a single JSON file on the server's disk; they are
never written to the database. Every mutation reads the whole collection,
changes it and writes it back, so two writers racing on the file can lose
each other's appends (last writer wins).

File layout:
    {"version": 1, "histories": [ChatHistory, ...]}

A bare JSON array of histories (the pre-envelope layout) is still read,
including its camelCase `userId`/`createdAt`/`updatedAt` keys.

Failures are logged and reported through the return value (None, False
or an empty list); nothing here raises on a missing, unreadable or
corrupt file.
"""

import json
import logging
import os
import time
from pathlib import Path
from uuid import uuid4

from pydantic import ValidationError

from insightnotes.schemas.assistant import ChatHistory, ChatMessage

logger = logging.getLogger(__name__)

STORE_VERSION = 1


def now_ms() -> int:
    return int(time.time() * 1000)


def new_history_id() -> str:
    return f"chat_{uuid4().hex}"


class ConversationStore:
    """Append-only chat logs keyed by history id."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    # -------------------------------------------------------------------------
    # whole-collection I/O
    # -------------------------------------------------------------------------

    def _read_all(self) -> list[ChatHistory]:
        if not self.path.exists():
            return []
        raw = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        if isinstance(raw, dict):
            version = raw.get("version", STORE_VERSION)
            if version > STORE_VERSION:
                logger.warning("Conversation store %s has newer version %s", self.path, version)
            raw = raw.get("histories", [])
        return [ChatHistory.model_validate(item) for item in raw]

    def _write_all(self, histories: list[ChatHistory]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": STORE_VERSION,
            "histories": [history.model_dump(mode="json") for history in histories],
        }
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def _save(self, history: ChatHistory) -> None:
        histories = self._read_all()
        for index, existing in enumerate(histories):
            if existing.id == history.id:
                histories[index] = history
                break
        else:
            histories.append(history)
        self._write_all(histories)

    # -------------------------------------------------------------------------
    # operations
    # -------------------------------------------------------------------------

    def create_history(self, user_id: str) -> ChatHistory | None:
        """Start an empty history for a user. None if the store cannot be written."""
        now = now_ms()
        history = ChatHistory(id=new_history_id(), user_id=str(user_id), messages=[], created_at=now, updated_at=now)
        try:
            self._save(history)
        except (OSError, ValueError, ValidationError) as e:
            logger.error("Error creating chat history for user %s: %s", user_id, e)
            return None
        return history

    def get(self, history_id: str) -> ChatHistory | None:
        try:
            histories = self._read_all()
        except (OSError, ValueError, ValidationError) as e:
            logger.error("Error reading conversation store %s: %s", self.path, e)
            return None
        return next((history for history in histories if history.id == history_id), None)

    def list_for(self, user_id: str) -> list[ChatHistory]:
        """A user's histories, in creation order."""
        try:
            histories = self._read_all()
        except (OSError, ValueError, ValidationError) as e:
            logger.error("Error reading conversation store %s: %s", self.path, e)
            return []
        return [history for history in histories if history.user_id == str(user_id)]

    def append(self, history_id: str, message: ChatMessage) -> bool:
        """Add a message at the end of the history. False if the history is unknown."""
        try:
            history = self.get(history_id)
            if history is None:
                return False
            history.messages.append(message)
            history.updated_at = now_ms()
            self._save(history)
            return True
        except (OSError, ValueError, ValidationError) as e:
            logger.error("Error adding message to chat history %s: %s", history_id, e)
            return False

    def clear(self, history_id: str) -> bool:
        """Drop all messages, keeping the history id and owner."""
        try:
            history = self.get(history_id)
            if history is None:
                return False
            history.messages = []
            history.updated_at = now_ms()
            self._save(history)
            return True
        except (OSError, ValueError, ValidationError) as e:
            logger.error("Error clearing chat history %s: %s", history_id, e)
            return False

    def delete(self, history_id: str) -> bool:
        """Remove a history. Deleting an unknown id still succeeds."""
        try:
            histories = self._read_all()
            self._write_all([history for history in histories if history.id != history_id])
            return True
        except (OSError, ValueError, ValidationError) as e:
            logger.error("Error deleting chat history %s: %s", history_id, e)
            return False
