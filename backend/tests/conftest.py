"""Pytest configuration and fixtures."""

import os

# Required settings must exist before anything reads get_settings()
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id.apps.googleusercontent.com")
os.environ.setdefault("ENVIRONMENT", "development")

from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from insightnotes.config import Settings
from insightnotes.db.base import Base
from insightnotes.db import models  # noqa: F401 - Import models to register them
from insightnotes.db.models import AuthIdentity
from insightnotes.db.session import build_session_factory
from insightnotes.main import create_app
from insightnotes.services.conversation_store import ConversationStore
from insightnotes.services.session import create_access_token


class FakeMessages:
    """Stands in for `AsyncAnthropic.messages`, recording every request."""

    def __init__(self):
        self.calls: list[dict] = []
        self.reply = "<p>Answer</p>"
        self.error: Exception | None = None

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.reply)])

    @property
    def last_prompt(self) -> str:
        return self.calls[-1]["messages"][0]["content"]


class FakeAnthropic:
    def __init__(self):
        self.messages = FakeMessages()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        jwt_secret_key="test-secret-key",
        google_client_id="test-client-id.apps.googleusercontent.com",
        database_url_override=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        conversation_store_path=tmp_path / "chat_histories.json",
        anthropic_api_key=None,
        llm_max_attempts=1,
        llm_retry_base_delay=0,
    )


@pytest.fixture
async def session_factory(settings) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """File-backed SQLite database with the full schema, one per test."""
    engine = create_async_engine(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def llm() -> FakeAnthropic:
    return FakeAnthropic()


@pytest.fixture
def conversation_store(settings) -> ConversationStore:
    return ConversationStore(settings.conversation_store_path)


@pytest.fixture
def app(settings, session_factory, llm, conversation_store):
    return create_app(
        settings,
        session_factory=session_factory,
        llm_client=llm,
        conversation_store=conversation_store,
    )


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


async def _make_identity(session_factory, subject: str, name: str) -> AuthIdentity:
    now = datetime.now(timezone.utc)
    async with session_factory() as session:
        identity = AuthIdentity(
            provider="google",
            provider_user_id=subject,
            email=f"{subject}@example.com",
            display_name=name,
            created_at=now,
            last_login_at=now,
        )
        session.add(identity)
        await session.commit()
        return identity


@pytest.fixture
async def identity(session_factory) -> AuthIdentity:
    return await _make_identity(session_factory, "google-sub-ada", "Ada Lovelace")


@pytest.fixture
async def other_identity(session_factory) -> AuthIdentity:
    return await _make_identity(session_factory, "google-sub-grace", "Grace Hopper")


@pytest.fixture
def auth_headers(identity, settings) -> dict[str, str]:
    token = create_access_token(identity.id, settings, name=identity.display_name)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_auth_headers(other_identity, settings) -> dict[str, str]:
    token = create_access_token(other_identity.id, settings, name=other_identity.display_name)
    return {"Authorization": f"Bearer {token}"}
