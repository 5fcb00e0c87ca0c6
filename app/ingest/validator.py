from __future__ import annotations

import re

from app.core.errors import UnsupportedFormat

SUPPORTED_VIDEO_TYPES = frozenset({"video/mp4"})

# RFC 2045 token characters.
_TOKEN = r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+"
_MEDIA_TYPE_RE = re.compile(rf"\s*({_TOKEN})/({_TOKEN})\s*")
_PARAM_RE = re.compile(rf'\s*;\s*({_TOKEN})\s*=\s*({_TOKEN}|"(?:[^"\\]|\\.)*")\s*')


def parse_media_type(value: str | None) -> tuple[str, dict[str, str]]:
    """Split a Content-Type value into its lower-cased ``type/subtype`` and parameters.

    Raises ``UnsupportedFormat`` if the value or any parameter is malformed, or if
    a parameter name repeats. A single trailing ``;`` is tolerated.
    """
    if not value:
        raise UnsupportedFormat("missing media type")
    match = _MEDIA_TYPE_RE.match(value)
    if not match:
        raise UnsupportedFormat(f"malformed media type: {value!r}")
    media_type = f"{match.group(1)}/{match.group(2)}".lower()

    params: dict[str, str] = {}
    pos = match.end()
    while pos < len(value):
        param = _PARAM_RE.match(value, pos)
        if not param:
            if value[pos:].strip() == ";":
                break
            raise UnsupportedFormat(f"malformed media type parameter: {value!r}")
        name = param.group(1).lower()
        if name in params:
            raise UnsupportedFormat(f"duplicate media type parameter {name!r}")
        raw = param.group(2)
        if raw.startswith('"'):
            raw = re.sub(r"\\(.)", r"\1", raw[1:-1])
        params[name] = raw
        pos = param.end()
    return media_type, params


def canonical_media_type(value: str | None) -> str:
    """Return the lower-cased ``type/subtype`` of a Content-Type value, parameters dropped."""
    media_type, _ = parse_media_type(value)
    return media_type


def validate_video_media_type(value: str | None) -> str:
    media_type = canonical_media_type(value)
    if media_type not in SUPPORTED_VIDEO_TYPES:
        raise UnsupportedFormat(f"unsupported media type: {media_type}")
    return media_type


def media_subtype(media_type: str) -> str:
    return canonical_media_type(media_type).split("/", 1)[1]


__all__ = [
    "SUPPORTED_VIDEO_TYPES",
    "parse_media_type",
    "canonical_media_type",
    "validate_video_media_type",
    "media_subtype",
]
