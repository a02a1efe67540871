"""Utility modules."""

from .helpers import elapsed_ms, format_bytes, format_duration_ms, shorten_identifier
from .logging import (
    LogCapture,
    ProbeLoggerAdapter,
    StructuredFormatter,
    get_probe_logger,
    setup_logging,
)
from .validation import MagnetInfo, is_magnet_uri, parse_magnet

__all__ = [
    # Helpers
    "elapsed_ms",
    "format_bytes",
    "format_duration_ms",
    "shorten_identifier",
    # Logging
    "setup_logging",
    "get_probe_logger",
    "StructuredFormatter",
    "ProbeLoggerAdapter",
    "LogCapture",
    # Validation
    "MagnetInfo",
    "is_magnet_uri",
    "parse_magnet",
]
