"""Failure taxonomy for the upload pipeline.

Every error carries the HTTP status the API answers with and a short
snake_case ``code`` that is safe to return to clients. Diagnostic output from
external tools travels in ``diagnostics`` and is only ever logged.
"""

from __future__ import annotations

from typing import Optional


class TubelyError(Exception):
    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str | None = None, *, diagnostics: Optional[str] = None):
        super().__init__(message or self.code)
        self.diagnostics = diagnostics


class AuthError(TubelyError):
    status_code = 401
    code = "unauthorized"

    def __init__(self, code: str = "unauthorized", message: str | None = None):
        super().__init__(message or code)
        self.code = code


class NotFoundError(TubelyError):
    status_code = 404
    code = "video_not_found"


class UnsupportedFormat(TubelyError):
    status_code = 400
    code = "unsupported_media_type"


class StagingError(TubelyError):
    """Copying the inbound stream to local disk failed."""

    code = "upload_staging_failed"


class UploadTooLarge(StagingError):
    status_code = 413
    code = "upload_too_large"


class ProbeFailure(TubelyError):
    code = "probe_failed"


class RemuxFailure(TubelyError):
    code = "remux_failed"


class StorageError(TubelyError):
    code = "storage_put_failed"


class PersistenceError(TubelyError):
    code = "video_update_failed"


class LocatorFormatError(TubelyError):
    code = "invalid_video_locator"


__all__ = [
    "TubelyError",
    "AuthError",
    "NotFoundError",
    "UnsupportedFormat",
    "StagingError",
    "UploadTooLarge",
    "ProbeFailure",
    "RemuxFailure",
    "StorageError",
    "PersistenceError",
    "LocatorFormatError",
]
