from __future__ import annotations

import secrets
from typing import Callable

from .geometry import LANDSCAPE, PORTRAIT
from .validator import media_subtype

TOKEN_BYTES = 32

ASPECT_PREFIXES = {
    LANDSCAPE: "landscape",
    PORTRAIT: "portrait",
}
DEFAULT_PREFIX = "other"


def key_prefix(aspect_ratio: str) -> str:
    return ASPECT_PREFIXES.get(aspect_ratio, DEFAULT_PREFIX)


def derive_storage_key(
    aspect_ratio: str,
    media_type: str,
    *,
    token_factory: Callable[[int], str] = secrets.token_urlsafe,
) -> str:
    """Return ``{prefix}/{token}.{ext}`` for a new object.

    The token is 256 bits from the OS CSPRNG, base64url without padding, so
    keys never collide in practice and a publish never overwrites.
    """
    token = token_factory(TOKEN_BYTES)
    return f"{key_prefix(aspect_ratio)}/{token}.{media_subtype(media_type)}"


__all__ = ["TOKEN_BYTES", "ASPECT_PREFIXES", "DEFAULT_PREFIX", "key_prefix", "derive_storage_key"]
