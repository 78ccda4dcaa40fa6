"""
InsightNotes FastAPI Application Entry Point.

Run with: uvicorn insightnotes.main:create_app --factory --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from anthropic import AsyncAnthropic
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from insightnotes.api.deps import ServiceContainer
from insightnotes.api.error_handlers import register_error_handlers
from insightnotes.api.routes import assistant, auth, notes, profile, writings
from insightnotes.config import Settings, configure_logging, get_settings
from insightnotes.db.session import build_engine, build_session_factory
from insightnotes.services import (
    AssistantService,
    ConversationStore,
    PersistenceService,
    ProfileService,
)

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    llm_client: AsyncAnthropic | None = None,
    conversation_store: ConversationStore | None = None,
) -> FastAPI:
    """
    Build the application and wire its services.

    Everything a request handler needs (settings, session factory, services)
    is attached to `app.state` here; handlers reach it through the
    dependencies in `insightnotes.api.deps`. Pass explicit collaborators to
    run against a different database, model client or store.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    engine = None
    if session_factory is None:
        engine = build_engine(settings)
        session_factory = build_session_factory(engine)

    if llm_client is None and settings.anthropic_api_key:
        llm_client = AsyncAnthropic(api_key=settings.anthropic_api_key)
    if llm_client is None:
        logger.warning("ANTHROPIC_API_KEY is not set; the assistant will answer with a configuration error")

    services = ServiceContainer(
        persistence=PersistenceService(),
        profiles=ProfileService(),
        assistant=AssistantService(llm_client, settings),
        conversations=conversation_store or ConversationStore(settings.conversation_store_path),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager for startup/shutdown."""
        yield
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        description="Notes, creative writing and an AI study assistant",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.services = services

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    # Include routers
    app.include_router(auth.router)
    app.include_router(profile.router)
    app.include_router(notes.router)
    app.include_router(writings.router)
    app.include_router(assistant.router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app
