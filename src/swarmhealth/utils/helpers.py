"""Common utility functions."""

import time


def format_bytes(bytes_value: int) -> str:
    """
    Format bytes into human-readable string.

    Args:
        bytes_value: Number of bytes

    Returns:
        Formatted string (e.g., "1.5 GB")
    """
    if bytes_value <= 0:
        return "0 B"

    BYTES_PER_UNIT = 1024
    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    unit_index = 0
    size = float(bytes_value)

    while size >= BYTES_PER_UNIT and unit_index < len(units) - 1:
        size /= BYTES_PER_UNIT
        unit_index += 1

    if unit_index == 0:
        return f"{int(size)} {units[unit_index]}"
    else:
        return f"{size:.1f} {units[unit_index]}"


def format_duration_ms(milliseconds: float | None) -> str:
    """
    Format a duration in milliseconds to a short human-readable string.

    Args:
        milliseconds: Duration in milliseconds

    Returns:
        Formatted string (e.g., "850ms", "4.2s")
    """
    if milliseconds is None or milliseconds < 0:
        return "Unknown"

    if milliseconds < 1000:
        return f"{int(milliseconds)}ms"
    return f"{milliseconds / 1000:.1f}s"


def elapsed_ms(started: float) -> int:
    """Milliseconds elapsed since a ``time.monotonic()`` reading."""
    return max(0, int((time.monotonic() - started) * 1000))


def shorten_identifier(identifier: str, length: int = 60) -> str:
    """Shorten a magnet URI for log output."""
    if len(identifier) <= length:
        return identifier
    return identifier[: length - 3] + "..."
