"""Formatting helpers for traffic figures and raw protocol bytes."""

from typing import Final

BYTES_PER_KB: Final = 1024
SIZE_UNITS: Final = ("B", "KB", "MB", "GB", "TB")


def format_bytes(bytes_: float) -> str:
    """Format a byte count with a binary unit, e.g. ``1.5 KB``.

    Args:
        bytes_: Number of bytes to format

    Returns:
        str: Formatted string with appropriate unit
    """
    value = float(bytes_)
    for unit in SIZE_UNITS[:-1]:
        if abs(value) < BYTES_PER_KB:
            return f"{value:.1f} {unit}"
        value /= BYTES_PER_KB
    return f"{value:.1f} {SIZE_UNITS[-1]}"


def format_hex(data: bytes, limit: int = 64) -> str:
    """Space separated hex of ``data``, cut after ``limit`` bytes."""
    shown = data[:limit].hex(" ")
    if len(data) > limit:
        return f"{shown} ... (+{len(data) - limit} bytes)"
    return shown
