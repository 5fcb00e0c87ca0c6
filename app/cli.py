from __future__ import annotations

import argparse
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console

from .core.config import get_settings
from .core.errors import ProbeFailure, RemuxFailure
from .ingest.keys import key_prefix
from .ingest.process import run_media_tool
from .ingest.tools import FFmpegMediaTools

console = Console()


def main(argv: Optional[list[str]] = None) -> None:
    """The main entry point for the CLI.

    Args:
        argv: The command-line arguments.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "check", False):
        _run_environment_check()
        return

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI.

    Returns:
        The argument parser.
    """
    parser = argparse.ArgumentParser(description="Tubely ingest developer CLI")
    parser.add_argument("--check", action="store_true", help="Validate presence of ffmpeg/ffprobe dependencies")

    subparsers = parser.add_subparsers(dest="command")

    probe_parser = subparsers.add_parser("probe", help="Probe a file and print its geometry and key prefix")
    probe_parser.add_argument("--file", required=True, help="Path to the source media file")
    probe_parser.set_defaults(func=_cmd_probe)

    faststart_parser = subparsers.add_parser("faststart", help="Rewrite a file with its index at the front")
    faststart_parser.add_argument("--file", required=True, help="Path to the source media file")
    faststart_parser.add_argument("--out", required=True, help="Destination for the rewritten file")
    faststart_parser.set_defaults(func=_cmd_faststart)
    return parser


def _tools() -> FFmpegMediaTools:
    return FFmpegMediaTools.from_settings(get_settings())


def _require_file(raw: str) -> Path:
    media_path = Path(raw).expanduser().resolve()
    if not media_path.exists():
        console.print(f"[red]File not found: {media_path}[/]")
        sys.exit(2)
    return media_path


def _cmd_probe(args: argparse.Namespace) -> None:
    """Probe a file and print its geometry.

    Args:
        args: The command-line arguments.
    """
    media_path = _require_file(args.file)
    try:
        result = _tools().probe(media_path)
    except ProbeFailure as exc:
        console.print(f"[red]ffprobe failed:[/] {exc}")
        if exc.diagnostics:
            console.print(exc.diagnostics.strip(), markup=False)
        sys.exit(3)
    console.print_json(
        data={
            "file": str(media_path),
            "width": result.width,
            "height": result.height,
            "aspect_ratio": result.aspect_ratio,
            "key_prefix": key_prefix(result.aspect_ratio),
        }
    )


def _cmd_faststart(args: argparse.Namespace) -> None:
    """Run the faststart remux and move the result to ``--out``.

    Args:
        args: The command-line arguments.
    """
    media_path = _require_file(args.file)
    destination = Path(args.out).expanduser().resolve()
    try:
        remuxed = _tools().remux(media_path)
    except RemuxFailure as exc:
        console.print(f"[red]ffmpeg failed:[/] {exc}")
        if exc.diagnostics:
            console.print(exc.diagnostics.strip(), markup=False)
        sys.exit(3)
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(remuxed.path), destination)
    console.print(f"[green]Wrote {remuxed.size_bytes} bytes to {destination}[/]")


def _run_environment_check() -> None:
    """Check for the presence of required external dependencies."""
    settings = get_settings()
    checks = {
        "ffmpeg": [settings.ffmpeg_binary, "-version"],
        "ffprobe": [settings.ffprobe_binary, "-version"],
    }
    results = {}
    for label, cmd in checks.items():
        try:
            results[label] = run_media_tool(cmd, timeout_s=10).returncode == 0
        except (OSError, subprocess.TimeoutExpired):
            results[label] = False

    console.rule("[bold]Environment Check")
    for label, ok in results.items():
        console.print(f"[bold]{label}[/]: {'✅' if ok else '❌'}")

    if not all(results.values()):
        console.print("[red]Missing dependencies detected. Install ffmpeg to run uploads.[/]")
        sys.exit(1)
    console.print("[green]Environment looks good![/]")


if __name__ == "__main__":
    main()
