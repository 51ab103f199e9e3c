"""Terminal output helpers for the CLI (ANSI colours, no external dependencies)."""

from __future__ import annotations

import os
import sys
from collections.abc import Sequence
from typing import TextIO

RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
CYAN = "\033[36m"


def _supports_color(stream: TextIO) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    if not hasattr(stream, "isatty") or not stream.isatty():
        return False
    return os.environ.get("TERM") != "dumb"


def colorize(text: str, color: str, stream: TextIO, bold: bool = False) -> str:
    if not _supports_color(stream):
        return text
    return f"{BOLD if bold else ''}{color}{text}{RESET}"


def print_check(ok: bool, message: str, stream: TextIO | None = None) -> None:
    """Print a ✓/✗ line, used by ``doctor``."""
    stream = stream or (sys.stdout if ok else sys.stderr)
    icon = colorize("✓", GREEN, stream, bold=True) if ok else colorize("✗", RED, stream, bold=True)
    print(f"{icon} {message}", file=stream)


def print_summary_box(
    title: str, items: Sequence[tuple[str, str | int]], stream: TextIO | None = None
) -> None:
    """Print a formatted summary box with key-value pairs."""
    stream = stream or sys.stdout
    width = max((len(k) for k, _ in items), default=0)

    print(colorize(f"\n{title}", CYAN, stream, bold=True), file=stream)
    print(colorize("─" * 60, DIM, stream), file=stream)
    for key, value in items:
        text = str(value)
        if isinstance(value, int) and value > 0:
            # failures stand out, everything else counts as progress
            text = colorize(text, RED if key.lower() in {"failed", "label writes failed"} else GREEN, stream, bold=True)
        print(f"  {key.ljust(width)}  {text}", file=stream)
    print(colorize("─" * 60, DIM, stream), file=stream)


def print_operation_status(operation: str, status: str, details: str = "", stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    lowered = status.lower()
    if lowered in ("completed", "ok"):
        icon, colour = "✓", GREEN
    elif lowered in ("failed", "error"):
        icon, colour = "✗", RED
    elif lowered == "dry run":
        icon, colour = "○", YELLOW
    else:
        icon, colour = "•", CYAN
    message = f"{colorize(icon, colour, stream, bold=True)} {colorize(operation, BOLD, stream)}: {colorize(status, colour, stream)}"
    if details:
        message += " " + colorize(f"({details})", DIM, stream)
    print(message, file=stream)


__all__ = ["colorize", "print_check", "print_summary_box", "print_operation_status"]
