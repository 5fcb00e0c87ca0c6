from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from app.core.errors import RemuxFailure
from app.ingest.remux import faststart_output_path, remux_faststart


@pytest.fixture()
def staged(tmp_path: Path) -> Path:
    path = tmp_path / "tubely-upload-abc.mp4"
    path.write_bytes(b"mdat-then-moov")
    return path


def _fake_ffmpeg(output_bytes: bytes | None, *, returncode: int = 0, calls: list | None = None):
    def run(command, *, timeout_s):
        if calls is not None:
            calls.append(command)
        if output_bytes is not None:
            Path(command[-1]).write_bytes(output_bytes)
        return subprocess.CompletedProcess(command, returncode, stdout="", stderr="ffmpeg log")

    return run


def test_output_sits_beside_source(staged):
    assert faststart_output_path(staged) == staged.parent / "tubely-upload-abc.faststart.mp4"


def test_remux_runs_stream_copy_with_faststart(monkeypatch, staged):
    calls: list = []
    monkeypatch.setattr("app.ingest.remux.run_media_tool", _fake_ffmpeg(b"moov-then-mdat", calls=calls))

    remuxed = remux_faststart(staged, binary="ffmpeg-test")

    assert remuxed.path == faststart_output_path(staged)
    assert remuxed.size_bytes == len(b"moov-then-mdat")
    assert staged.exists()
    command = calls[0]
    assert command[0] == "ffmpeg-test"
    assert command[command.index("-i") + 1] == str(staged)
    assert command[command.index("-c") + 1] == "copy"
    assert command[command.index("-movflags") + 1] == "faststart"
    assert command[command.index("-f") + 1] == "mp4"


def test_empty_output_is_failure_and_removed(monkeypatch, staged):
    monkeypatch.setattr("app.ingest.remux.run_media_tool", _fake_ffmpeg(b""))
    with pytest.raises(RemuxFailure):
        remux_faststart(staged)
    assert not faststart_output_path(staged).exists()


def test_nonzero_exit_removes_partial_output(monkeypatch, staged):
    monkeypatch.setattr("app.ingest.remux.run_media_tool", _fake_ffmpeg(b"partial", returncode=1))
    with pytest.raises(RemuxFailure) as excinfo:
        remux_faststart(staged)
    assert excinfo.value.diagnostics == "ffmpeg log"
    assert not faststart_output_path(staged).exists()


def test_missing_output_is_failure(monkeypatch, staged):
    monkeypatch.setattr("app.ingest.remux.run_media_tool", _fake_ffmpeg(None))
    with pytest.raises(RemuxFailure):
        remux_faststart(staged)


def test_timeout_is_failure(monkeypatch, staged):
    def run(command, *, timeout_s):
        Path(command[-1]).write_bytes(b"partial")
        raise subprocess.TimeoutExpired(command, timeout_s)

    monkeypatch.setattr("app.ingest.remux.run_media_tool", run)
    with pytest.raises(RemuxFailure):
        remux_faststart(staged, timeout_s=1)
    assert not faststart_output_path(staged).exists()


def test_missing_binary_is_failure(monkeypatch, staged):
    def run(command, *, timeout_s):
        raise FileNotFoundError(2, "No such file or directory", command[0])

    monkeypatch.setattr("app.ingest.remux.run_media_tool", run)
    with pytest.raises(RemuxFailure):
        remux_faststart(staged)
