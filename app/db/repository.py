from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import PersistenceError
from app.db.models import Video
from app.ingest.locator import VideoLocator


class VideoRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, *, user_id: str, title: str, description: str | None) -> Video:
        now = datetime.now(timezone.utc)
        video = Video(
            id=str(uuid4()),
            user_id=user_id,
            title=title,
            description=description,
            created_at=now,
            updated_at=now,
        )
        self.session.add(video)
        await self.session.commit()
        await self.session.refresh(video)
        return video

    async def get(self, video_id: str) -> Video | None:
        return await self.session.get(Video, video_id)

    async def list_for_user(self, user_id: str) -> list[Video]:
        stmt = select(Video).where(Video.user_id == user_id).order_by(Video.created_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def update_locator(self, video: Video, locator: VideoLocator) -> Video:
        """Point ``video`` at a published object. Only call once the object is durable."""
        video.video_url = locator.encode()
        video.updated_at = datetime.now(timezone.utc)
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise PersistenceError(str(exc), diagnostics=str(exc)) from exc
        await self.session.refresh(video)
        return video


__all__ = ["VideoRepository"]
