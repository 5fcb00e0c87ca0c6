from __future__ import annotations

import subprocess
from typing import Sequence

from app.core.logging import get_logger

logger = get_logger(component="media_tools")


def run_media_tool(command: Sequence[str], *, timeout_s: float | None) -> subprocess.CompletedProcess[str]:
    """Run an external media tool with stdout and stderr captured separately.

    When ``timeout_s`` expires the child is killed and reaped before
    ``subprocess.TimeoutExpired`` propagates. A missing binary raises ``OSError``.
    """
    logger.debug("media_tool_run", command=list(command), timeout_s=timeout_s)
    return subprocess.run(
        list(command),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
        timeout=timeout_s,
        check=False,
    )


def diagnostics_text(value: str | bytes | None) -> str:
    # TimeoutExpired carries raw bytes even when text mode was requested.
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


__all__ = ["run_media_tool", "diagnostics_text"]
