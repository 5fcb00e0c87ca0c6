from __future__ import annotations

import asyncio
import os
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Protocol

from app.core.errors import StagingError, UploadTooLarge
from app.core.logging import get_logger

CHUNK_SIZE = 1024 * 1024
TEMP_PREFIX = "tubely-upload-"

logger = get_logger(component="staging")


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


@dataclass(slots=True)
class StagedAsset:
    path: Path
    size_bytes: int


@asynccontextmanager
async def stage_upload(
    stream: AsyncReadable,
    *,
    max_bytes: int,
    directory: Path | None = None,
) -> AsyncIterator[StagedAsset]:
    """Copy ``stream`` into a private temporary file and yield it.

    The file is removed when the context exits, whether the copy, the caller or
    nothing at all failed. More than ``max_bytes`` raises ``UploadTooLarge``.
    """
    try:
        handle = tempfile.NamedTemporaryFile(prefix=TEMP_PREFIX, suffix=".mp4", dir=directory, delete=False)
    except OSError as exc:
        raise StagingError(f"cannot create staging file: {exc}", diagnostics=str(exc)) from exc

    path = Path(handle.name)
    try:
        with handle:
            try:
                size = await _copy_bounded(stream, handle, max_bytes)
                await asyncio.to_thread(_sync_to_disk, handle)
            except OSError as exc:
                raise StagingError(f"cannot stage upload: {exc}", diagnostics=str(exc)) from exc
        logger.info("upload_staged", path=str(path), size_bytes=size)
        yield StagedAsset(path=path, size_bytes=size)
    finally:
        remove_temp_file(path)


async def _copy_bounded(stream: AsyncReadable, sink: BinaryIO, max_bytes: int) -> int:
    written = 0
    while True:
        chunk = await stream.read(CHUNK_SIZE)
        if not chunk:
            return written
        written += len(chunk)
        if written > max_bytes:
            raise UploadTooLarge(f"upload exceeds {max_bytes} bytes")
        await asyncio.to_thread(sink.write, chunk)


def _sync_to_disk(handle: BinaryIO) -> None:
    handle.flush()
    os.fsync(handle.fileno())


def remove_temp_file(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as cleanup_error:
        logger.warning("temp_file_cleanup_failed", path=str(path), error=str(cleanup_error))
        return
    logger.debug("temp_file_removed", path=str(path))


__all__ = ["AsyncReadable", "StagedAsset", "stage_upload", "remove_temp_file", "CHUNK_SIZE", "TEMP_PREFIX"]
