from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.errors import AuthError, NotFoundError, TubelyError
from app.core.logging import bind_upload_context, get_logger
from app.core.storage import ObjectStore
from app.db.models import Video
from app.db.repository import VideoRepository
from app.ingest.keys import derive_storage_key
from app.ingest.locator import VideoLocator
from app.ingest.remux import faststart_output_path
from app.ingest.staging import AsyncReadable, remove_temp_file, stage_upload
from app.ingest.tools import MediaTools
from app.ingest.validator import validate_video_media_type
from app.services.playback import signed_playback_url


@dataclass(slots=True)
class IngestContext:
    """Process-wide collaborators built once at startup and shared by every request."""

    settings: Settings
    store: ObjectStore
    tools: MediaTools


@dataclass(slots=True)
class UploadRequest:
    video_id: str
    user_id: str
    media_type: str | None
    stream: AsyncReadable
    max_bytes: int


class VideoService:
    def __init__(self, context: IngestContext, session: AsyncSession):
        self.context = context
        self.videos = VideoRepository(session)
        self.logger = get_logger(component="video_service")

    async def create_video(self, *, user_id: str, title: str, description: str | None) -> dict[str, Any]:
        video = await self.videos.create(user_id=user_id, title=title, description=description)
        self.logger.info("video_created", video_id=video.id, user_id=user_id)
        return self.snapshot(video)

    async def get_owned_video(self, *, video_id: str, user_id: str) -> Video:
        video = await self.videos.get(video_id)
        if video is None:
            raise NotFoundError(f"video {video_id} not found")
        if video.user_id != user_id:
            raise AuthError("not_video_owner")
        return video

    async def list_videos(self, *, user_id: str) -> list[dict[str, Any]]:
        videos = await self.videos.list_for_user(user_id)
        return [self.snapshot(video) for video in videos]

    async def ingest_upload(self, request: UploadRequest) -> dict[str, Any]:
        """Run the upload pipeline for one request and return the signed record.

        Stages run strictly in order: ownership, media type, staging, probe,
        key derivation, faststart remux, publish, record update. Nothing touches
        disk before the ownership and media type checks pass, the record is
        only updated after the object is published, and both temporary files
        are gone by the time this returns or raises.
        """
        bind_upload_context(video_id=request.video_id, user_id=request.user_id)
        try:
            return await self._run_pipeline(request)
        except TubelyError as exc:
            self.logger.error(
                "video_upload_failed",
                code=exc.code,
                error=str(exc),
                diagnostics=exc.diagnostics,
            )
            raise

    async def _run_pipeline(self, request: UploadRequest) -> dict[str, Any]:
        settings = self.context.settings
        tools = self.context.tools

        video = await self.get_owned_video(video_id=request.video_id, user_id=request.user_id)
        media_type = validate_video_media_type(request.media_type)

        async with stage_upload(
            request.stream,
            max_bytes=request.max_bytes,
            directory=settings.upload_tmp_dir,
        ) as staged:
            probe = await asyncio.to_thread(tools.probe, staged.path)
            self.logger.info(
                "video_probed",
                width=probe.width,
                height=probe.height,
                aspect_ratio=probe.aspect_ratio,
            )
            key = derive_storage_key(probe.aspect_ratio, media_type)

            # The remux thread cannot be interrupted; its output is removed once it finishes.
            remux_output = faststart_output_path(staged.path)
            remux_job = asyncio.ensure_future(asyncio.to_thread(tools.remux, staged.path))
            try:
                remuxed = await asyncio.shield(remux_job)
                self.logger.info("video_remuxed", size_bytes=remuxed.size_bytes)
                await asyncio.to_thread(
                    self.context.store.put_object,
                    settings.s3_bucket,
                    key,
                    remuxed.path,
                    content_type=media_type,
                )
            finally:
                if remux_job.done():
                    remove_temp_file(remux_output)
                else:
                    remux_job.add_done_callback(lambda job: _discard_late_output(job, remux_output))

        self.logger.info("video_published", bucket=settings.s3_bucket, key=key)
        video = await self.videos.update_locator(video, VideoLocator(bucket=settings.s3_bucket, key=key))
        self.logger.info("video_record_updated", updated_at=video.updated_at.isoformat())
        return self.snapshot(video)

    def snapshot(self, video: Video) -> dict[str, Any]:
        signed = signed_playback_url(
            video.video_url,
            self.context.store,
            expires_s=self.context.settings.signed_url_ttl_s,
        )
        return {
            "id": video.id,
            "user_id": video.user_id,
            "title": video.title,
            "description": video.description,
            "video_url": signed.url if signed else None,
            "video_url_expires_at": signed.expires_at if signed else None,
            "thumbnail_url": video.thumbnail_url,
            "created_at": video.created_at,
            "updated_at": video.updated_at,
        }


def _discard_late_output(job: asyncio.Future, path: Path) -> None:
    if not job.cancelled():
        # Marks a late RemuxFailure as retrieved.
        job.exception()
    remove_temp_file(path)


__all__ = ["IngestContext", "UploadRequest", "VideoService"]
