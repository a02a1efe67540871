"""Tests for logging utilities."""

import json
import logging

from swarmhealth.utils.logging import (
    LogCapture,
    StructuredFormatter,
    get_probe_logger,
    setup_logging,
)


def test_probe_logger_attaches_context():
    """Test probe log records carry the identifier and info-hash."""
    with LogCapture("swarmhealth.engines.prober", logging.DEBUG) as capture:
        log = get_probe_logger("magnet:?xt=urn:btih:abc", "abc")
        log.log_outcome("success", 2, 51)

    assert capture.has_message_containing("success with 2 peers in 51ms")
    record = capture.records[0]
    assert record.identifier == "magnet:?xt=urn:btih:abc"
    assert record.info_hash == "abc"
    assert record.peer_count == 2


def test_structured_formatter_emits_json():
    """Test structured records are JSON with probe fields."""
    record = logging.LogRecord("swarmhealth", logging.INFO, __file__, 1, "probe done", None, None)
    record.identifier = "magnet:?x"
    record.duration_ms = 42

    entry = json.loads(StructuredFormatter().format(record))

    assert entry["message"] == "probe done"
    assert entry["identifier"] == "magnet:?x"
    assert entry["duration_ms"] == 42
    assert "peer_count" not in entry


def test_setup_logging_with_file(tmp_path):
    """Test file logging writes both the main and the error log."""
    log_file = tmp_path / "logs" / "swarmhealth.log"
    root = logging.getLogger()
    previous = list(root.handlers), root.level

    try:
        setup_logging(level="INFO", log_file=log_file, rich_console=False, structured_logging=True)
        logging.getLogger("swarmhealth.test").error("boom")
        for handler in root.handlers:
            handler.flush()

        assert json.loads(log_file.read_text().splitlines()[-1])["message"] == "boom"
        assert (tmp_path / "logs" / "swarmhealth_errors.log").exists()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = previous[0]
        root.setLevel(previous[1])
