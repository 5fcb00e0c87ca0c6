from __future__ import annotations

import asyncio
import os
from pathlib import Path

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine

from app.core.config import get_settings
from app.core.db import Base
from app.main import create_app

DEV_SECRET = "dev-secret"
DEV_AUDIENCE = "tubely"
DEV_ISSUER = "tubely-local"


pytestmark = pytest.mark.no_default_env


def _write_env(target_dir: Path, *, environment: str) -> Path:
    target_dir.mkdir(parents=True, exist_ok=True)
    env_text = f"""
TUBELY_ENV={environment}
TUBELY_LOG_LEVEL=debug
TUBELY_JWT_SECRET={DEV_SECRET}
TUBELY_JWT_ISSUER={DEV_ISSUER}
TUBELY_JWT_AUDIENCE={DEV_AUDIENCE}
TUBELY_STORAGE_BACKEND=local
TUBELY_DB_URL=sqlite+aiosqlite:///./tubely.db
""".strip()
    env_path = target_dir / ".env"
    env_path.write_text(env_text)
    return env_path


async def _initialise_sqlite(database_url: str) -> None:
    engine = create_async_engine(database_url, echo=False, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()


def _prepare_app(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, *, environment: str) -> TestClient:
    _write_env(tmp_path, environment=environment)
    for key in list(os.environ.keys()):
        if key.startswith("TUBELY_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    asyncio.run(_initialise_sqlite("sqlite+aiosqlite:///./tubely.db"))
    get_settings.cache_clear()
    app = create_app()
    client = TestClient(app)
    client.__enter__()
    return client


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_env_boots_without_shell_exports(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    client = _prepare_app(tmp_path, monkeypatch, environment="development")
    try:
        response = client.get("/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert get_settings().s3_bucket == "tubely-videos"
    finally:
        client.close()


def test_dev_token_endpoint_only_in_dev(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    client = _prepare_app(tmp_path, monkeypatch, environment="development")
    try:
        payload = {"scopes": ["admin"], "user_id": "user-1"}
        response = client.post("/v1/admin/dev-token", json=payload)
        assert response.status_code == 200
        token = response.json()["token"]
        decoded = jwt.decode(
            token,
            DEV_SECRET,
            algorithms=["HS256"],
            audience=DEV_AUDIENCE,
            issuer=DEV_ISSUER,
        )
        assert decoded.get("sub") == payload["user_id"]
        assert decoded["scopes"] == ["admin"]
    finally:
        client.close()

    prod_client = _prepare_app(tmp_path / "prod", monkeypatch, environment="production")
    try:
        response = prod_client.post("/v1/admin/dev-token", json={"user_id": "user-prod"})
        assert response.status_code == 403
    finally:
        prod_client.close()


def test_request_with_dev_token_succeeds(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    client = _prepare_app(tmp_path, monkeypatch, environment="development")
    try:
        token_resp = client.post("/v1/admin/dev-token", json={"user_id": "user-1"})
        assert token_resp.status_code == 200
        headers = {"Authorization": f"Bearer {token_resp.json()['token']}"}

        create_resp = client.post("/v1/videos", json={"title": "Dev clip"}, headers=headers)
        assert create_resp.status_code == 201
        listing = client.get("/v1/videos", headers=headers)
        assert listing.status_code == 200
        assert [item["title"] for item in listing.json()["videos"]] == ["Dev clip"]
    finally:
        client.close()
