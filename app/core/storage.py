from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from urllib.parse import urlencode

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import Settings
from .errors import StorageError
from .logging import get_logger


@dataclass(slots=True)
class PresignedURL:
    url: str
    expires_at: datetime
    method: str = "GET"


class ObjectStore(ABC):
    @abstractmethod
    def put_object(self, bucket: str, key: str, source: Path, *, content_type: str) -> str: ...

    @abstractmethod
    def presign_get(self, bucket: str, key: str, *, expires_s: int) -> PresignedURL: ...


class LocalObjectStore(ObjectStore):
    """Filesystem-backed object store suitable for development.

    Buckets are directories under ``base_path``; the content type is kept in a
    ``.content-type`` file beside each object.
    """

    def __init__(self, base_path: Path):
        self.base_path = base_path
        self.logger = get_logger(component="local_object_store")

    def _object_path(self, bucket: str, key: str) -> Path:
        root = (self.base_path / bucket).resolve()
        target = (root / key).resolve()
        if root not in target.parents:
            raise StorageError(f"key escapes bucket: {key}")
        return target

    def put_object(self, bucket: str, key: str, source: Path, *, content_type: str) -> str:
        target = self._object_path(bucket, key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
            target.with_name(target.name + ".content-type").write_text(content_type, encoding="utf-8")
        except OSError as exc:
            raise StorageError(str(exc), diagnostics=str(exc)) from exc
        self.logger.debug("object_written", bucket=bucket, key=key, path=str(target))
        return key

    def presign_get(self, bucket: str, key: str, *, expires_s: int) -> PresignedURL:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_s)
        target = self._object_path(bucket, key)
        query = urlencode({"expires": int(expires_at.timestamp())})
        return PresignedURL(url=f"{target.as_uri()}?{query}", expires_at=expires_at)


class S3ObjectStore(ObjectStore):
    """S3 (or S3-compatible) object store backed by boto3."""

    def __init__(self, settings: Settings):
        session = boto3.session.Session(
            aws_access_key_id=settings.secrets.s3_access_key_id,
            aws_secret_access_key=settings.secrets.s3_secret_access_key,
            region_name=settings.s3_region,
        )
        self.s3 = session.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            config=Config(signature_version="s3v4"),
        )
        self.logger = get_logger(component="s3_object_store")

    def put_object(self, bucket: str, key: str, source: Path, *, content_type: str) -> str:
        try:
            with source.open("rb") as body:
                self.s3.put_object(Bucket=bucket, Key=key, Body=body, ContentType=content_type)
        except (BotoCoreError, ClientError, OSError) as exc:
            raise StorageError(str(exc), diagnostics=str(exc)) from exc
        self.logger.debug("object_written", bucket=bucket, key=key)
        return key

    def presign_get(self, bucket: str, key: str, *, expires_s: int) -> PresignedURL:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_s)
        try:
            url = self.s3.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expires_s,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc), diagnostics=str(exc)) from exc
        return PresignedURL(url=url, expires_at=expires_at)


def get_object_store(settings: Settings) -> ObjectStore:
    if settings.storage_backend == "local":
        return LocalObjectStore(base_path=Path(settings.local_storage_base_path))
    if settings.storage_backend == "s3":
        return S3ObjectStore(settings)
    raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")


__all__ = [
    "ObjectStore",
    "LocalObjectStore",
    "S3ObjectStore",
    "PresignedURL",
    "get_object_store",
]
