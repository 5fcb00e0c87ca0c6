from __future__ import annotations

import math
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.core.errors import ProbeFailure

from .process import diagnostics_text, run_media_tool

LANDSCAPE = "16:9"
PORTRAIT = "9:16"

# Fixed bucketing tolerance on width/height; changing it reclassifies existing uploads.
ASPECT_TOLERANCE = 0.02


class ProbeStream(BaseModel):
    """The subset of an ffprobe stream entry used for geometry."""

    model_config = ConfigDict(extra="ignore")

    index: int = 0
    codec_type: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


class ProbeOutput(BaseModel):
    """Schema for ``ffprobe -print_format json -show_streams`` output."""

    model_config = ConfigDict(extra="ignore")

    streams: List[ProbeStream] = Field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Geometry of a probed file.

    ``width``/``height`` are ``None`` and ``aspect_ratio`` is empty when ffprobe
    reported no stream with a picture size.
    """

    width: Optional[int]
    height: Optional[int]
    aspect_ratio: str


def classify_aspect_ratio(width: int, height: int) -> str:
    """Bucket a picture size into an aspect class.

    Args:
        width: Frame width in pixels.
        height: Frame height in pixels.

    Returns:
        ``"16:9"`` or ``"9:16"`` when the ratio is within ``ASPECT_TOLERANCE``
        of either, otherwise the reduced fraction ``"{w}:{h}"``.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"dimensions must be positive, got {width}x{height}")

    ratio = width / height
    if abs(ratio - 16 / 9) < ASPECT_TOLERANCE:
        return LANDSCAPE
    if abs(ratio - 9 / 16) < ASPECT_TOLERANCE:
        return PORTRAIT

    divisor = math.gcd(width, height)
    return f"{width // divisor}:{height // divisor}"


def parse_probe_output(stdout: str) -> ProbeResult:
    """Parse ffprobe JSON and classify the first stream that has a picture size.

    Args:
        stdout: Raw standard output of ffprobe.

    Returns:
        The probe result.

    Raises:
        ProbeFailure: If the output does not match the expected schema.
    """
    try:
        output = ProbeOutput.model_validate_json(stdout)
    except ValidationError as exc:
        raise ProbeFailure("ffprobe output did not match the expected schema", diagnostics=str(exc)) from exc

    for stream in output.streams:
        if stream.width and stream.height and stream.width > 0 and stream.height > 0:
            return ProbeResult(
                width=stream.width,
                height=stream.height,
                aspect_ratio=classify_aspect_ratio(stream.width, stream.height),
            )
    return ProbeResult(width=None, height=None, aspect_ratio="")


def probe_geometry(path: Path, *, binary: str = "ffprobe", timeout_s: float | None = None) -> ProbeResult:
    """Run ffprobe against ``path`` and return its geometry.

    Args:
        path: The staged media file.
        binary: The ffprobe executable.
        timeout_s: Upper bound for the ffprobe run.

    Returns:
        The probe result.

    Raises:
        ProbeFailure: If ffprobe cannot run, times out, exits non-zero or
            prints output that does not parse.
    """
    command = [
        binary,
        "-v",
        "error",
        "-print_format",
        "json",
        "-show_streams",
        str(path),
    ]
    try:
        proc = run_media_tool(command, timeout_s=timeout_s)
    except subprocess.TimeoutExpired as exc:
        raise ProbeFailure(f"ffprobe timed out after {timeout_s}s", diagnostics=diagnostics_text(exc.stderr)) from exc
    except OSError as exc:
        raise ProbeFailure(f"unable to run ffprobe: {exc}", diagnostics=str(exc)) from exc

    if proc.returncode != 0:
        raise ProbeFailure(f"ffprobe exited with status {proc.returncode}", diagnostics=proc.stderr)
    return parse_probe_output(proc.stdout)


__all__ = [
    "ASPECT_TOLERANCE",
    "LANDSCAPE",
    "PORTRAIT",
    "ProbeOutput",
    "ProbeResult",
    "ProbeStream",
    "classify_aspect_ratio",
    "parse_probe_output",
    "probe_geometry",
]
