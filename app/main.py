from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.v1 import get_api_router
from app.core.config import get_settings
from app.core.db import create_engine, create_session_factory
from app.core.logging import configure_logging
from app.core.storage import ObjectStore, get_object_store
from app.ingest.tools import FFmpegMediaTools, MediaTools
from app.services.video_service import IngestContext


def create_app(*, store: ObjectStore | None = None, tools: MediaTools | None = None) -> FastAPI:
    """Build the API with its shared collaborators.

    ``store`` and ``tools`` default to the configured object store and the real
    ffmpeg binaries; tests pass substitutes.
    """
    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    configure_logging(level=log_level)
    ingest_context = IngestContext(
        settings=settings,
        store=store or get_object_store(settings),
        tools=tools or FFmpegMediaTools.from_settings(settings),
    )
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.ingest_context = ingest_context
        app.state.engine = engine
        app.state.session_factory = session_factory
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan,
        openapi_url="/openapi.json",
        docs_url="/docs",
    )

    app.include_router(get_api_router())
    return app


app = create_app()


__all__ = ["app", "create_app"]
