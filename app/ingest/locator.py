from __future__ import annotations

from dataclasses import dataclass

from app.core.errors import LocatorFormatError

DELIMITER = ","


@dataclass(frozen=True, slots=True)
class VideoLocator:
    """Where a published video lives: a bucket and a key inside it.

    Persisted as ``"{bucket},{key}"``. Neither part may be empty or contain the
    delimiter, which makes ``decode(locator.encode()) == locator`` hold.
    """

    bucket: str
    key: str

    def __post_init__(self) -> None:
        for part in (self.bucket, self.key):
            if not part or DELIMITER in part:
                raise LocatorFormatError(f"invalid locator part: {part!r}")

    def encode(self) -> str:
        return f"{self.bucket}{DELIMITER}{self.key}"

    @classmethod
    def decode(cls, value: str) -> "VideoLocator":
        parts = value.split(DELIMITER)
        if len(parts) != 2:
            raise LocatorFormatError(f"invalid video locator: {value!r}")
        return cls(bucket=parts[0], key=parts[1])


__all__ = ["VideoLocator", "DELIMITER"]
