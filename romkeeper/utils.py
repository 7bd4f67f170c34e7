"""Shared utility functions."""

from __future__ import annotations

import re

PATH_SEPARATORS = "/\\"
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def format_size(size_bytes: int) -> str:
    """Format byte count to human-readable string."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.2f} GB"


def sanitize_component(value: str) -> str:
    """Make a value safe to embed in a single path component.

    Path separators become "-" and control characters are dropped, so a
    metadata value can never introduce a directory level.
    """
    for ch in PATH_SEPARATORS:
        value = value.replace(ch, "-")
    return _CONTROL_CHARS.sub("", value)


def split_extension(filename: str) -> tuple[str, str]:
    """'game.nes' → ('game', '.nes'). A leading dot is not an extension."""
    stem, dot, ext = filename.rpartition(".")
    if not dot or not stem:
        return filename, ""
    return stem, f".{ext}"
