from __future__ import annotations

import logging

from nlpbridge.adapter import LoggingTraceSink, RecordingTraceSink
from nlpbridge.logging import get_logger


def test_get_logger_returns_logger() -> None:
    """get_logger returns a logging.Logger instance with correct name."""
    logger = get_logger("nlpbridge.test_module")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "nlpbridge.test_module"


def test_get_logger_sets_correct_level() -> None:
    """Logger is set to INFO level by default."""
    logger = get_logger("nlpbridge.test_module")
    assert logger.level == logging.INFO


def test_get_logger_does_not_add_handlers() -> None:
    """Module-level get_logger must not add handlers."""
    logger = logging.getLogger("nlpbridge.policy_test")
    before = len(logger.handlers)
    _ = get_logger("nlpbridge.policy_test")
    assert len(logger.handlers) == before


def test_logging_trace_sink_writes_debug(caplog) -> None:
    logger = logging.getLogger("nlpbridge.trace_test")
    logger.setLevel(logging.DEBUG)
    sink = LoggingTraceSink(logger)
    with caplog.at_level(logging.DEBUG, logger="nlpbridge.trace_test"):
        sink("pattern_frozen", nnz=4, order="column")
    assert "[pattern_frozen] nnz=4 order=column" in caplog.text


def test_logging_trace_sink_quiet_above_debug(caplog) -> None:
    logger = logging.getLogger("nlpbridge.trace_quiet")
    logger.setLevel(logging.INFO)
    sink = LoggingTraceSink(logger)
    sink("new_point")
    assert "new_point" not in caplog.text


def test_recording_trace_sink() -> None:
    sink = RecordingTraceSink()
    sink("a", x=1)
    sink("b")
    sink("a", x=2)
    assert sink.names() == ["a", "b", "a"]
    assert sink.count("a") == 2
    assert sink.events[2] == ("a", {"x": 2})
