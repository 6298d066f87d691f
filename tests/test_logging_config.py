from __future__ import annotations

import logging

from traceweave.logging_config import (
    close_trace_logger,
    configure_logging,
    configure_trace_file_logger,
    configure_trace_stream_logger,
)


def test_trace_file_logger_writes_plain_messages(tmp_path):
    path = tmp_path / "logs" / "trace.log"

    logger = configure_trace_file_logger(path, name="traceweave.test.file")
    logger.debug(">>> f\n\ta: 1")
    close_trace_logger(logger)

    assert path.read_text(encoding="utf-8") == ">>> f\n\ta: 1\n"
    assert logger.handlers == []
    assert logger.propagate is True


def test_reconfiguring_replaces_the_previous_handler(tmp_path):
    first = configure_trace_file_logger(tmp_path / "a.log", name="traceweave.test.replace")
    second = configure_trace_file_logger(tmp_path / "b.log", name="traceweave.test.replace")
    try:
        assert first is second
        assert len(second.handlers) == 1
        second.debug("only here")
    finally:
        close_trace_logger(second)

    assert (tmp_path / "a.log").read_text(encoding="utf-8") == ""
    assert (tmp_path / "b.log").read_text(encoding="utf-8") == "only here\n"


def test_close_keeps_foreign_handlers():
    logger = logging.getLogger("traceweave.test.foreign")
    foreign = logging.NullHandler()
    logger.addHandler(foreign)
    configure_trace_stream_logger(name="traceweave.test.foreign")
    try:
        assert len(logger.handlers) == 2
    finally:
        close_trace_logger(logger)
        assert logger.handlers == [foreign]
        logger.removeHandler(foreign)


def test_configure_logging_sets_root_level():
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    try:
        configure_logging(True)
        assert root.level == logging.DEBUG
        configure_logging(False)
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)
