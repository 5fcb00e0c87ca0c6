from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Secrets(BaseSettings):
    """Secrets configuration, loaded from the environment or a secrets management service."""

    model_config = SettingsConfigDict(
        env_prefix="TUBELY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    jwt_secret: str = Field(default="change-me", description="Signing secret for bearer token validation.")
    s3_access_key_id: Optional[str] = None
    s3_secret_access_key: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: "Settings") -> "Secrets":
        return cls()


class Settings(BaseSettings):
    """Centralised runtime configuration for the Tubely API."""

    model_config = SettingsConfigDict(
        env_prefix="TUBELY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Tubely API"
    environment: str = Field(default="development", description="Deployment environment label.")
    version: str = Field(default="0.1.0", description="API version for metadata and OpenAPI.")
    log_level: str = Field(default="info")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./tubely.db",
        description="SQLAlchemy compatible DSN.",
    )

    storage_backend: Literal["local", "s3"] = Field(default="local", description="Active object store implementation.")
    local_storage_base_path: Path = Field(
        default_factory=lambda: Path("objects"),
        description="Root directory emulating buckets for the local object store.",
    )
    s3_bucket: str = Field(default="tubely-videos", description="Bucket receiving published videos.")
    s3_region: str = Field(default="us-east-1")
    s3_endpoint_url: Optional[str] = Field(default=None, description="Override for S3-compatible endpoints.")

    max_upload_size_bytes: int = Field(default=1 << 30, description="Hard limit for a single video upload.")
    upload_tmp_dir: Optional[Path] = Field(default=None, description="Directory for staged uploads (system temp by default).")
    signed_url_ttl_s: int = Field(default=15 * 60, description="Validity window of signed playback URLs.")

    media_tool_timeout_s: float = Field(default=300.0, gt=0, description="Upper bound for a single ffprobe/ffmpeg run.")
    ffprobe_binary: str = Field(default="ffprobe")
    ffmpeg_binary: str = Field(default="ffmpeg")

    jwt_algorithm: str = Field(default="HS256", description="Algorithm used for JWT tokens.")
    jwt_issuer: Optional[str] = None
    jwt_audience: Optional[str] = None

    secrets: Secrets = Field(default_factory=Secrets, description="Holds sensitive configuration.")

    @property
    def environment_lower(self) -> str:
        return self.environment.lower()


@lru_cache()
def get_settings() -> Settings:
    load_dotenv(".env", override=False)

    _ENV_ALIAS_MAP = {
        "TUBELY_ENV": "TUBELY_ENVIRONMENT",
        "TUBELY_DB_URL": "TUBELY_DATABASE_URL",
    }

    for source, target in _ENV_ALIAS_MAP.items():
        value = os.getenv(source)
        if value:
            os.environ[target] = value

    settings = Settings()

    # In a real application, you would fetch secrets from a secure vault
    # instead of just loading them from the environment.
    secrets = Secrets.from_settings(settings)

    if settings.environment == "production" and secrets.jwt_secret == "change-me":
        raise ValueError("Production environment must have a non-default JWT secret.")

    settings.secrets = secrets
    return settings


__all__ = ["Secrets", "Settings", "get_settings"]
