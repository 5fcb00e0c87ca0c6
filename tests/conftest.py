import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

import jwt
import pytest
from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.core.db import Base, create_engine
from app.core.errors import ProbeFailure, RemuxFailure, StorageError
from app.core.storage import ObjectStore, PresignedURL
from app.ingest.geometry import ProbeResult
from app.ingest.remux import RemuxedAsset, faststart_output_path
from app.ingest.tools import MediaTools
from app.main import create_app

TEST_SECRET = "test-secret"
TEST_ISSUER = "tubely-test"
TEST_AUDIENCE = "tubely"
TEST_BUCKET = "tubely-test"


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "no_default_env: disable the default Tubely environment bootstrap fixture for tests that manage their own .env",
    )


class FakeMediaTools(MediaTools):
    """Canned probe/remux results; records the paths it was handed."""

    def __init__(self):
        self.probe_result = ProbeResult(width=1920, height=1080, aspect_ratio="16:9")
        self.probe_error: ProbeFailure | None = None
        self.remux_error: RemuxFailure | None = None
        self.probed: list[Path] = []
        self.remuxed: list[Path] = []
        self.staged_payloads: list[bytes] = []

    def probe(self, path: Path) -> ProbeResult:
        self.probed.append(path)
        self.staged_payloads.append(path.read_bytes())
        if self.probe_error:
            raise self.probe_error
        return self.probe_result

    def remux(self, path: Path) -> RemuxedAsset:
        self.remuxed.append(path)
        if self.remux_error:
            raise self.remux_error
        output = faststart_output_path(path)
        output.write_bytes(b"faststart:" + path.read_bytes())
        return RemuxedAsset(path=output, size_bytes=output.stat().st_size)


class RecordingObjectStore(ObjectStore):
    def __init__(self):
        self.objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        self.put_error: StorageError | None = None

    def put_object(self, bucket: str, key: str, source: Path, *, content_type: str) -> str:
        if self.put_error:
            raise self.put_error
        self.objects[(bucket, key)] = (source.read_bytes(), content_type)
        return key

    def presign_get(self, bucket: str, key: str, *, expires_s: int) -> PresignedURL:
        return PresignedURL(
            url=f"https://signed.example/{bucket}/{key}?X-Amz-Expires={expires_s}",
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_s),
        )


@pytest.fixture(autouse=True)
def configure_environment(request, monkeypatch, tmp_path):
    if request.node.get_closest_marker("no_default_env"):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()
        return
    db_path = tmp_path / "tubely_test.db"
    upload_dir = tmp_path / "uploads"
    upload_dir.mkdir()

    monkeypatch.setenv("TUBELY_ENV", "test")
    monkeypatch.setenv("TUBELY_LOG_LEVEL", "debug")
    monkeypatch.setenv("TUBELY_DB_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("TUBELY_STORAGE_BACKEND", "local")
    monkeypatch.setenv("TUBELY_LOCAL_STORAGE_BASE_PATH", str(tmp_path / "objects"))
    monkeypatch.setenv("TUBELY_S3_BUCKET", TEST_BUCKET)
    monkeypatch.setenv("TUBELY_UPLOAD_TMP_DIR", str(upload_dir))
    monkeypatch.setenv("TUBELY_JWT_SECRET", TEST_SECRET)
    monkeypatch.setenv("TUBELY_JWT_ISSUER", TEST_ISSUER)
    monkeypatch.setenv("TUBELY_JWT_AUDIENCE", TEST_AUDIENCE)

    get_settings.cache_clear()
    settings = get_settings()
    engine = create_engine(settings)

    async def _setup() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_setup())

    yield

    async def _teardown() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()

    asyncio.run(_teardown())
    get_settings.cache_clear()


@pytest.fixture()
def upload_dir(configure_environment, tmp_path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture()
def media_tools() -> FakeMediaTools:
    return FakeMediaTools()


@pytest.fixture()
def object_store() -> RecordingObjectStore:
    return RecordingObjectStore()


@pytest.fixture()
def client(configure_environment, media_tools, object_store):
    app = create_app(store=object_store, tools=media_tools)
    with TestClient(app) as client:
        yield client


def build_token(user_id: str | None, *, scopes: list[str] | None = None) -> str:
    payload: dict[str, object] = {"iss": TEST_ISSUER, "aud": TEST_AUDIENCE}
    if user_id:
        payload["sub"] = user_id
    if scopes:
        payload["scopes"] = scopes
    return jwt.encode(payload, TEST_SECRET, algorithm="HS256")


def auth_headers(user_id: str, *, scopes: list[str] | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token(user_id, scopes=scopes)}"}


@pytest.fixture()
def owner_headers() -> dict[str, str]:
    return auth_headers("user-owner")


@pytest.fixture()
def stranger_headers() -> dict[str, str]:
    return auth_headers("user-stranger")


@pytest.fixture()
def video_id(client, owner_headers) -> str:
    resp = client.post("/v1/videos", json={"title": "First clip"}, headers=owner_headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]
