"""Logging configuration utilities and structured logging system."""

from datetime import datetime
import json
import logging
import logging.handlers
from pathlib import Path
import sys
import traceback
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

from .helpers import shorten_identifier

# Extra record attributes copied into structured log entries
STRUCTURED_FIELDS = (
    "identifier",
    "info_hash",
    "measurement_source",
    "peer_count",
    "duration_ms",
    "batch_size",
)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name in STRUCTURED_FIELDS:
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_entry, default=str)


class ProbeLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter carrying the identifier of the swarm being probed."""

    def __init__(self, logger: logging.Logger, identifier: str, info_hash: str = ""):
        self.identifier = identifier
        self.info_hash = info_hash
        super().__init__(
            logger,
            {"identifier": shorten_identifier(identifier), "info_hash": info_hash},
        )

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        """Process log message and add context."""
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs

    def log_outcome(self, kind: str, peer_count: int, duration_ms: int) -> None:
        """Log the resolution of a probe."""
        self.info(
            f"Probe resolved as {kind} with {peer_count} peers in {duration_ms}ms",
            extra={"peer_count": peer_count, "duration_ms": duration_ms},
        )


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    rich_console: bool = True,
    structured_logging: bool = False,
    max_log_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> None:
    """
    Set up logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file path for log output
        rich_console: Whether to use rich console handler
        structured_logging: Whether to use JSON structured logging for files
        max_log_size: Maximum size of log files before rotation
        backup_count: Number of backup log files to keep
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(numeric_level)

    standard_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    detailed_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Console handler
    if rich_console:
        console_handler: logging.Handler = RichHandler(
            rich_tracebacks=True,
            show_time=True,
            show_path=False,
            console=Console(stderr=True),
        )
        console_handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(standard_formatter)
    console_handler.setLevel(numeric_level)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_log_size, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(
            StructuredFormatter() if structured_logging else detailed_formatter
        )
        file_handler.setLevel(logging.DEBUG)  # File logs capture everything
        root_logger.addHandler(file_handler)

        # Separate error log file
        error_log_file = log_file.parent / f"{log_file.stem}_errors{log_file.suffix}"
        error_handler = logging.handlers.RotatingFileHandler(
            error_log_file,
            maxBytes=max_log_size,
            backupCount=backup_count,
            encoding="utf-8",
        )
        error_handler.setFormatter(
            StructuredFormatter() if structured_logging else detailed_formatter
        )
        error_handler.setLevel(logging.ERROR)
        root_logger.addHandler(error_handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_probe_logger(identifier: str, info_hash: str = "") -> ProbeLoggerAdapter:
    """
    Get a logger adapter for a single probe.

    Args:
        identifier: Torrent identifier being probed
        info_hash: Info-hash parsed from the identifier, if known

    Returns:
        Logger adapter with probe context
    """
    return ProbeLoggerAdapter(
        logging.getLogger("swarmhealth.engines.prober"), identifier, info_hash
    )


class LogCapture:
    """Context manager for capturing logs during testing."""

    def __init__(self, logger_name: str = "", level: int = logging.INFO):
        self.logger_name = logger_name
        self.level = level
        self.records: list[logging.LogRecord] = []
        self.handler: logging.Handler | None = None
        self._previous_level: int | None = None

    def __enter__(self) -> "LogCapture":
        """Start capturing logs."""
        self.handler = logging.Handler()
        self.handler.emit = self.records.append  # type: ignore[method-assign]
        self.handler.setLevel(self.level)

        logger = logging.getLogger(self.logger_name)
        self._previous_level = logger.level
        if logger.getEffectiveLevel() > self.level:
            logger.setLevel(self.level)
        logger.addHandler(self.handler)

        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Stop capturing logs."""
        if self.handler:
            logger = logging.getLogger(self.logger_name)
            logger.removeHandler(self.handler)
            if self._previous_level is not None:
                logger.setLevel(self._previous_level)

    def get_messages(self) -> list[str]:
        """Get captured log messages."""
        return [record.getMessage() for record in self.records]

    def has_message_containing(self, text: str) -> bool:
        """Check if any captured message contains the given text."""
        return any(text in record.getMessage() for record in self.records)
