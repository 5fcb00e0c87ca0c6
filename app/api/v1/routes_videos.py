from __future__ import annotations

from typing import NoReturn

from fastapi import APIRouter, HTTPException, Request, status
from starlette.datastructures import UploadFile

from app.api import deps
from app.core.errors import TubelyError
from app.services.video_service import UploadRequest

from . import schemas


router = APIRouter(prefix="/videos", tags=["videos"])

UPLOAD_FIELD = "video"
# Room for multipart boundaries and part headers on top of the file bytes.
MULTIPART_OVERHEAD_BYTES = 64 * 1024

_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": schemas.ErrorResponse},
    status.HTTP_401_UNAUTHORIZED: {"model": schemas.ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": schemas.ErrorResponse},
    status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"model": schemas.ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": schemas.ErrorResponse},
}


def _raise_http(exc: TubelyError) -> NoReturn:
    raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc


def _check_content_length(request: Request, max_bytes: int) -> None:
    raw = request.headers.get("content-length")
    if raw is None:
        raise HTTPException(status_code=status.HTTP_411_LENGTH_REQUIRED, detail="length_required")
    try:
        declared = int(raw)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_content_length")
    if declared > max_bytes + MULTIPART_OVERHEAD_BYTES:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="upload_too_large")


@router.post("", response_model=schemas.VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    payload: schemas.VideoCreateRequest,
    service: deps.VideoServiceDependency,
    context: deps.AuthDependency,
) -> schemas.VideoResponse:
    snapshot = await service.create_video(
        user_id=context.user_id,
        title=payload.title,
        description=payload.description,
    )
    return schemas.VideoResponse(**snapshot)


@router.get("", response_model=schemas.VideoListResponse)
async def list_videos(
    service: deps.VideoServiceDependency,
    context: deps.AuthDependency,
) -> schemas.VideoListResponse:
    try:
        snapshots = await service.list_videos(user_id=context.user_id)
    except TubelyError as exc:
        _raise_http(exc)
    return schemas.VideoListResponse(videos=[schemas.VideoResponse(**item) for item in snapshots])


@router.get("/{video_id}", response_model=schemas.VideoResponse, responses=_ERROR_RESPONSES)
async def get_video(
    video_id: str,
    service: deps.VideoServiceDependency,
    context: deps.AuthDependency,
) -> schemas.VideoResponse:
    try:
        video = await service.get_owned_video(video_id=video_id, user_id=context.user_id)
        snapshot = service.snapshot(video)
    except TubelyError as exc:
        _raise_http(exc)
    return schemas.VideoResponse(**snapshot)


@router.post("/{video_id}/upload", response_model=schemas.VideoResponse, responses=_ERROR_RESPONSES)
async def upload_video(
    video_id: str,
    request: Request,
    service: deps.VideoServiceDependency,
    ingest: deps.IngestContextDependency,
    context: deps.AuthDependency,
) -> schemas.VideoResponse:
    max_bytes = ingest.settings.max_upload_size_bytes
    _check_content_length(request, max_bytes)

    # The multipart body is only parsed once the caller is known to own the video.
    try:
        await service.get_owned_video(video_id=video_id, user_id=context.user_id)
    except TubelyError as exc:
        _raise_http(exc)

    form = await request.form(max_files=1)
    try:
        upload = form.get(UPLOAD_FIELD)
        if not isinstance(upload, UploadFile):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="missing_video_field")
        try:
            snapshot = await service.ingest_upload(
                UploadRequest(
                    video_id=video_id,
                    user_id=context.user_id,
                    media_type=upload.content_type,
                    stream=upload,
                    max_bytes=max_bytes,
                )
            )
        except TubelyError as exc:
            _raise_http(exc)
    finally:
        await form.close()
    return schemas.VideoResponse(**snapshot)


__all__ = ["router"]
