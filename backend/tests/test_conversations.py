"""Tests for the local conversation store and the assistant endpoints."""

import json
import threading

from httpx import ASGITransport, AsyncClient

from insightnotes.db.models import ChatRole
from insightnotes.main import create_app
from insightnotes.schemas.assistant import ChatMessage
from insightnotes.services.conversation_store import ConversationStore


def _message(role: ChatRole, content: str, timestamp: int = 1) -> ChatMessage:
    return ChatMessage(role=role, content=content, timestamp=timestamp)


# =============================================================================
# ConversationStore
# =============================================================================


def test_greeting_exchange_is_recorded_in_order(conversation_store: ConversationStore):
    history = conversation_store.create_history("user-1")

    assert conversation_store.append(history.id, _message(ChatRole.USER, "Hi"))
    assert conversation_store.append(history.id, _message(ChatRole.ASSISTANT, "<p>Hello!</p>"))

    messages = conversation_store.get(history.id).messages
    assert [(m.role, m.content) for m in messages] == [
        (ChatRole.USER, "Hi"),
        (ChatRole.ASSISTANT, "<p>Hello!</p>"),
    ]


def test_append_is_monotonic(conversation_store: ConversationStore):
    history = conversation_store.create_history("user-1")

    for index in range(4):
        before = conversation_store.get(history.id).messages
        assert conversation_store.append(history.id, _message(ChatRole.USER, f"m{index}", index))
        after = conversation_store.get(history.id).messages
        assert len(after) == len(before) + 1
        assert after[:-1] == before


def test_append_to_unknown_history_fails(conversation_store: ConversationStore):
    assert conversation_store.append("chat_missing", _message(ChatRole.USER, "Hi")) is False


def test_clear_keeps_id_and_owner(conversation_store: ConversationStore):
    history = conversation_store.create_history("user-1")
    conversation_store.append(history.id, _message(ChatRole.USER, "Hi"))

    assert conversation_store.clear(history.id)

    cleared = conversation_store.get(history.id)
    assert cleared.messages == []
    assert cleared.id == history.id
    assert cleared.user_id == "user-1"


def test_delete_is_idempotent(conversation_store: ConversationStore):
    history = conversation_store.create_history("user-1")

    assert conversation_store.delete(history.id)
    assert conversation_store.get(history.id) is None
    assert conversation_store.delete(history.id)


def test_histories_are_listed_per_user(conversation_store: ConversationStore):
    mine = conversation_store.create_history("user-1")
    conversation_store.create_history("user-2")

    assert [history.id for history in conversation_store.list_for("user-1")] == [mine.id]


def test_history_ids_are_unique(conversation_store: ConversationStore):
    ids = {conversation_store.create_history("user-1").id for _ in range(20)}
    assert len(ids) == 20
    assert all(history_id.startswith("chat_") for history_id in ids)


def test_file_uses_versioned_envelope(conversation_store: ConversationStore):
    conversation_store.create_history("user-1")

    payload = json.loads(conversation_store.path.read_text(encoding="utf-8"))
    assert payload["version"] == 1
    assert len(payload["histories"]) == 1


def test_bare_array_file_is_still_read(tmp_path):
    path = tmp_path / "legacy.json"
    path.write_text(
        json.dumps(
            [
                {
                    "id": "chat_legacy",
                    "user_id": "user-1",
                    "messages": [{"role": "user", "content": "Hi", "timestamp": 1}],
                    "created_at": 1,
                    "updated_at": 1,
                }
            ]
        ),
        encoding="utf-8",
    )
    store = ConversationStore(path)

    assert store.get("chat_legacy").messages[0].content == "Hi"
    assert store.append("chat_legacy", _message(ChatRole.ASSISTANT, "<p>Hello!</p>", 2))
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1


def test_corrupt_file_is_reported_not_raised(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    store = ConversationStore(path)

    assert store.get("chat_x") is None
    assert store.list_for("user-1") == []
    assert store.append("chat_x", _message(ChatRole.USER, "Hi")) is False
    assert store.create_history("user-1") is None


def test_camel_case_legacy_file_is_read(tmp_path):
    path = tmp_path / "legacy.json"
    path.write_text(
        json.dumps(
            [
                {
                    "id": "chat_camel",
                    "userId": "user-1",
                    "messages": [{"role": "user", "content": "Hi", "timestamp": 1}],
                    "createdAt": 1,
                    "updatedAt": 2,
                }
            ]
        ),
        encoding="utf-8",
    )
    store = ConversationStore(path)

    history = store.get("chat_camel")
    assert history.user_id == "user-1"
    assert history.updated_at == 2
    assert [h.id for h in store.list_for("user-1")] == ["chat_camel"]

    assert store.append("chat_camel", _message(ChatRole.ASSISTANT, "<p>Hello!</p>", 3))
    saved = json.loads(path.read_text(encoding="utf-8"))["histories"][0]
    assert saved["user_id"] == "user-1"
    assert "userId" not in saved


# =============================================================================
# /assistant endpoints
# =============================================================================


async def test_ask_records_exchange_and_uses_notes(client: AsyncClient, auth_headers, llm):
    await client.post(
        "/notes/", json={"title": "Physics", "content": "Newton's laws"}, headers=auth_headers
    )
    await client.post(
        "/notes/", json={"title": "Sonnet", "type": "creative"}, headers=auth_headers
    )

    response = await client.post("/assistant/ask", json={"query": "What is inertia?"}, headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["text"] == "<p>Answer</p>"
    assert body["is_general"] is False
    assert len(body["source_ids"]) == 1
    assert "Title: Physics" in llm.messages.last_prompt
    assert "Sonnet" not in llm.messages.last_prompt

    response = await client.get(f"/assistant/histories/{body['history_id']}", headers=auth_headers)
    messages = response.json()["messages"]
    assert [(m["role"], m["content"]) for m in messages] == [
        ("user", "What is inertia?"),
        ("assistant", "<p>Answer</p>"),
    ]

    response = await client.post(
        "/assistant/ask",
        json={"query": "And momentum?", "history_id": body["history_id"]},
        headers=auth_headers,
    )
    assert response.json()["history_id"] == body["history_id"]
    assert "user: What is inertia?" in llm.messages.last_prompt


async def test_ask_greeting_is_general(client: AsyncClient, auth_headers, llm):
    await client.post("/notes/", json={"title": "Physics"}, headers=auth_headers)

    response = await client.post("/assistant/ask", json={"query": "Hi"}, headers=auth_headers)

    assert response.json()["is_general"] is True
    assert response.json()["source_ids"] == []
    assert "Context:" not in llm.messages.last_prompt


async def test_ask_creative_uses_writings(client: AsyncClient, auth_headers, llm):
    await client.post("/notes/", json={"title": "Physics"}, headers=auth_headers)
    await client.post(
        "/creative-writings/", json={"title": "Ode", "category": "Poetry"}, headers=auth_headers
    )

    response = await client.post(
        "/assistant/ask", json={"query": "Improve my poem", "is_creative": True}, headers=auth_headers
    )

    assert response.status_code == 200
    assert "Title: Ode" in llm.messages.last_prompt
    assert "Physics" not in llm.messages.last_prompt
    assert llm.messages.calls[-1]["temperature"] == 0.9


async def test_ask_can_narrow_context(client: AsyncClient, auth_headers, llm):
    physics = (await client.post("/notes/", json={"title": "Physics"}, headers=auth_headers)).json()
    await client.post("/notes/", json={"title": "Chemistry"}, headers=auth_headers)

    response = await client.post(
        "/assistant/ask",
        json={"query": "Summarize", "item_ids": [physics["id"]]},
        headers=auth_headers,
    )

    assert response.json()["source_ids"] == [physics["id"]]
    assert "Chemistry" not in llm.messages.last_prompt


async def test_ask_without_api_key_answers_error_bubble(settings, session_factory, conversation_store, auth_headers):
    app = create_app(settings, session_factory=session_factory, conversation_store=conversation_store)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post("/assistant/ask", json={"query": "What is inertia?"}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["text"].startswith("<p>Error: ")
    assert "not configured" in response.json()["text"]


async def test_ask_requires_session(client: AsyncClient):
    response = await client.post("/assistant/ask", json={"query": "Hi"})
    assert response.status_code == 401


async def test_insights_endpoint(client: AsyncClient, auth_headers, llm):
    llm.messages.reply = '[{"question": "What is F?", "answer": "<p>Force</p>"}]'
    await client.post("/notes/", json={"title": "Physics", "content": "F = ma"}, headers=auth_headers)

    response = await client.post("/assistant/insights", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()[0]["question"] == "What is F?"


async def test_history_endpoints(client: AsyncClient, auth_headers, other_auth_headers):
    response = await client.post("/assistant/histories", headers=auth_headers)
    assert response.status_code == 201
    history_id = response.json()["id"]

    response = await client.post(
        f"/assistant/histories/{history_id}/messages",
        json={"role": "user", "content": "Hi"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert [m["content"] for m in response.json()["messages"]] == ["Hi"]

    response = await client.get("/assistant/histories", headers=auth_headers)
    assert response.json()["total"] == 1

    response = await client.get(f"/assistant/histories/{history_id}", headers=other_auth_headers)
    assert response.status_code == 404
    response = await client.get("/assistant/histories", headers=other_auth_headers)
    assert response.json()["total"] == 0

    response = await client.post(f"/assistant/histories/{history_id}/clear", headers=auth_headers)
    assert response.json()["messages"] == []
    assert response.json()["id"] == history_id

    response = await client.delete(f"/assistant/histories/{history_id}", headers=other_auth_headers)
    assert response.status_code == 404

    response = await client.delete(f"/assistant/histories/{history_id}", headers=auth_headers)
    assert response.status_code == 204
    response = await client.delete(f"/assistant/histories/{history_id}", headers=auth_headers)
    assert response.status_code == 204
    response = await client.get(f"/assistant/histories/{history_id}", headers=auth_headers)
    assert response.status_code == 404


async def test_ask_still_answers_when_history_cannot_be_created(client: AsyncClient, auth_headers, settings):
    settings.conversation_store_path.write_text("{not json", encoding="utf-8")

    response = await client.post("/assistant/ask", json={"query": "What is inertia?"}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["text"] == "<p>Answer</p>"
    assert response.json()["history_id"] is None


async def test_create_history_reports_store_failure(client: AsyncClient, auth_headers, settings):
    settings.conversation_store_path.write_text("{not json", encoding="utf-8")

    response = await client.post("/assistant/histories", headers=auth_headers)

    assert response.status_code == 502
    assert response.json()["error"] == "store_failure"


class ThreadRecordingStore(ConversationStore):
    """Remembers which threads touched the file."""

    def __init__(self, path):
        super().__init__(path)
        self.threads: set[int] = set()

    def _read_all(self):
        self.threads.add(threading.get_ident())
        return super()._read_all()


async def test_store_io_runs_off_the_event_loop(settings, session_factory, llm, auth_headers):
    store = ThreadRecordingStore(settings.conversation_store_path)
    app = create_app(settings, session_factory=session_factory, llm_client=llm, conversation_store=store)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post("/assistant/ask", json={"query": "Hi"}, headers=auth_headers)
        await ac.get(f"/assistant/histories/{response.json()['history_id']}", headers=auth_headers)

    assert store.threads
    assert threading.get_ident() not in store.threads
