from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from app.core.config import Settings

from .geometry import ProbeResult, probe_geometry
from .remux import RemuxedAsset, remux_faststart


class MediaTools(ABC):
    """Media analysis and container rewriting used by the upload pipeline."""

    @abstractmethod
    def probe(self, path: Path) -> ProbeResult: ...

    @abstractmethod
    def remux(self, path: Path) -> RemuxedAsset: ...


class FFmpegMediaTools(MediaTools):
    def __init__(self, *, ffprobe_binary: str = "ffprobe", ffmpeg_binary: str = "ffmpeg", timeout_s: float | None = None):
        self.ffprobe_binary = ffprobe_binary
        self.ffmpeg_binary = ffmpeg_binary
        self.timeout_s = timeout_s

    @classmethod
    def from_settings(cls, settings: Settings) -> "FFmpegMediaTools":
        return cls(
            ffprobe_binary=settings.ffprobe_binary,
            ffmpeg_binary=settings.ffmpeg_binary,
            timeout_s=settings.media_tool_timeout_s,
        )

    def probe(self, path: Path) -> ProbeResult:
        return probe_geometry(path, binary=self.ffprobe_binary, timeout_s=self.timeout_s)

    def remux(self, path: Path) -> RemuxedAsset:
        return remux_faststart(path, binary=self.ffmpeg_binary, timeout_s=self.timeout_s)


__all__ = ["MediaTools", "FFmpegMediaTools"]
