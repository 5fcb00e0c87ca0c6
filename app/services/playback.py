from __future__ import annotations

from app.core.storage import ObjectStore, PresignedURL
from app.ingest.locator import VideoLocator


def signed_playback_url(video_url: str | None, store: ObjectStore, *, expires_s: int) -> PresignedURL | None:
    """Translate a persisted locator into a short-lived GET URL.

    Records that never finished an upload have no locator and yield ``None``.
    A locator that does not decode raises ``LocatorFormatError``.
    """
    if video_url is None:
        return None
    locator = VideoLocator.decode(video_url)
    return store.presign_get(locator.bucket, locator.key, expires_s=expires_s)


__all__ = ["signed_playback_url"]
