from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.auth import AuthContext, get_auth_context
from app.services.video_service import IngestContext, VideoService


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    session_factory = request.app.state.session_factory
    if not isinstance(session_factory, async_sessionmaker):
        raise RuntimeError("session_factory_not_configured")
    async with session_factory() as session:
        yield session


def get_ingest_context(request: Request) -> IngestContext:
    context: IngestContext = request.app.state.ingest_context
    return context


async def get_video_service(
    session: AsyncSession = Depends(get_session),
    context: IngestContext = Depends(get_ingest_context),
) -> AsyncIterator[VideoService]:
    service = VideoService(context, session)
    yield service


VideoServiceDependency = Annotated[VideoService, Depends(get_video_service)]
IngestContextDependency = Annotated[IngestContext, Depends(get_ingest_context)]
AuthDependency = Annotated[AuthContext, Depends(get_auth_context)]


__all__ = [
    "get_session",
    "get_ingest_context",
    "get_video_service",
    "VideoServiceDependency",
    "IngestContextDependency",
    "AuthDependency",
]
