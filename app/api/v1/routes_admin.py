from __future__ import annotations

import subprocess
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from app.api.deps import AuthDependency, IngestContextDependency
from app.ingest.process import run_media_tool

from .schemas import EnvCheckResponse


router = APIRouter(prefix="/admin", tags=["admin"])


class DevTokenRequest(BaseModel):
    user_id: str = Field(..., examples=["user-123"])
    scopes: list[str] = Field(default_factory=list)


class DevTokenResponse(BaseModel):
    token: str


def _probe_binary(binary: str) -> bool:
    try:
        proc = run_media_tool([binary, "-version"], timeout_s=10)
    except (OSError, subprocess.TimeoutExpired):
        return False
    return proc.returncode == 0


@router.get("/env-check", response_model=EnvCheckResponse, summary="Validate ffmpeg toolchain")
async def env_check(context: AuthDependency, ingest: IngestContextDependency) -> EnvCheckResponse:
    if "admin" not in context.scopes:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin_scope_required")

    settings = ingest.settings
    return EnvCheckResponse(
        ffmpeg=_probe_binary(settings.ffmpeg_binary),
        ffprobe=_probe_binary(settings.ffprobe_binary),
    )


@router.post("/dev-token", response_model=DevTokenResponse, summary="Mint development JWT")
async def mint_dev_token(payload: DevTokenRequest, ingest: IngestContextDependency) -> DevTokenResponse:
    settings = ingest.settings
    if settings.environment_lower not in {"development", "dev"}:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="dev_token_disabled")

    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + timedelta(hours=1)
    claims: dict[str, object] = {
        "sub": payload.user_id,
        "scopes": payload.scopes,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    if settings.jwt_issuer:
        claims["iss"] = settings.jwt_issuer
    if settings.jwt_audience:
        claims["aud"] = settings.jwt_audience

    token = jwt.encode(claims, settings.secrets.jwt_secret, algorithm=settings.jwt_algorithm)
    return DevTokenResponse(token=token)


__all__ = ["router"]
