"""Logging helpers for the command line and for trace output files."""

from __future__ import annotations

import logging
from pathlib import Path

from .runtime import TRACE_LOGGER_NAME

__all__ = [
    "close_trace_logger",
    "configure_logging",
    "configure_trace_file_logger",
    "configure_trace_stream_logger",
]

_MARKER = "_traceweave_handler"


def configure_logging(verbose: bool) -> None:
    """Configure root logging handlers for the CLI."""

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)

    stream = logging.StreamHandler()
    stream.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
    root.addHandler(stream)


def _install(logger: logging.Logger, handler: logging.Handler, level: int) -> logging.Logger:
    close_trace_logger(logger)
    logger.setLevel(level)
    logger.propagate = False
    setattr(handler, _MARKER, True)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    return logger


def configure_trace_file_logger(
    path: Path,
    *,
    name: str = TRACE_LOGGER_NAME,
    level: int = logging.DEBUG,
) -> logging.Logger:
    """Send trace records to ``path``.

    Handlers installed by an earlier call are removed first so repeated runs
    replace the previous trace instead of appending to it.  The file is opened
    in text mode with UTF-8 encoding.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    return _install(logging.getLogger(name), handler, level)


def configure_trace_stream_logger(*, name: str = TRACE_LOGGER_NAME, level: int = logging.DEBUG) -> logging.Logger:
    """Send trace records to ``stderr``."""

    return _install(logging.getLogger(name), logging.StreamHandler(), level)


def close_trace_logger(logger: logging.Logger) -> None:
    """Tear down handlers installed by the ``configure_trace_*`` helpers."""

    for handler in list(logger.handlers):
        if getattr(handler, _MARKER, False):
            logger.removeHandler(handler)
            handler.close()
    logger.propagate = True
