from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from app.core.errors import RemuxFailure

from .process import diagnostics_text, run_media_tool


@dataclass(slots=True)
class RemuxedAsset:
    path: Path
    size_bytes: int


def faststart_output_path(source: Path) -> Path:
    return source.with_name(f"{source.stem}.faststart.mp4")


def remux_faststart(source: Path, *, binary: str = "ffmpeg", timeout_s: float | None = None) -> RemuxedAsset:
    """Copy the streams of ``source`` into a new MP4 with the moov atom moved to the front.

    The output is removed again before ``RemuxFailure`` is raised.
    """
    output = faststart_output_path(source)
    command = [
        binary,
        "-nostdin",
        "-y",
        "-i",
        str(source),
        "-c",
        "copy",
        "-movflags",
        "faststart",
        "-f",
        "mp4",
        str(output),
    ]
    try:
        proc = run_media_tool(command, timeout_s=timeout_s)
    except subprocess.TimeoutExpired as exc:
        output.unlink(missing_ok=True)
        raise RemuxFailure(f"ffmpeg timed out after {timeout_s}s", diagnostics=diagnostics_text(exc.stderr)) from exc
    except OSError as exc:
        output.unlink(missing_ok=True)
        raise RemuxFailure(f"unable to run ffmpeg: {exc}", diagnostics=str(exc)) from exc

    if proc.returncode != 0:
        output.unlink(missing_ok=True)
        raise RemuxFailure(f"ffmpeg faststart exited with status {proc.returncode}", diagnostics=proc.stderr)

    if not output.exists():
        raise RemuxFailure("ffmpeg produced no output file", diagnostics=proc.stderr)

    size = output.stat().st_size
    if size == 0:
        output.unlink(missing_ok=True)
        raise RemuxFailure("ffmpeg output file is empty (input may be invalid)", diagnostics=proc.stderr)

    return RemuxedAsset(path=output, size_bytes=size)


__all__ = ["RemuxedAsset", "faststart_output_path", "remux_faststart"]
