"""Helpers called by woven code at execution time.

Woven modules import this module as ``__traceweave__`` and call
:func:`emit` twice per traced call, :func:`pause` when ``pause`` is set and
:func:`pretty` around values rendered with the default template while
``pretty`` is active.  :func:`trace` lets decorated sources import and
run unwoven.
"""

from __future__ import annotations

import inspect
import logging
import os
import pprint
import sys
from typing import Any

TRACE_LOGGER_NAME = os.environ.get("TRACEWEAVE_TRACE_LOGGER", "traceweave.trace")

LOGGER = logging.getLogger(TRACE_LOGGER_NAME)

__all__ = ["LOGGER", "PrettyValue", "TRACE_LOGGER_NAME", "emit", "pause", "pretty", "trace"]


def emit(format_string: str, *values: object) -> None:
    """Log one trace record built from a %-style ``format_string``."""

    if not LOGGER.isEnabledFor(logging.DEBUG):
        return
    LOGGER.debug(format_string % values)


def pause() -> None:
    """Block until one line of input arrives on ``stdin``."""

    sys.stdin.readline()


class PrettyValue:
    """Wrapper whose ``repr`` is the multi-line ``pprint`` rendering of ``value``."""

    __slots__ = ("value",)

    def __init__(self, value: object) -> None:
        self.value = value

    def __repr__(self) -> str:
        return pprint.pformat(self.value, width=60)

    __str__ = __repr__


def pretty(value: object) -> PrettyValue:
    return PrettyValue(value)


def trace(*args: object, **kwargs: object) -> Any:
    """Pass-through ``trace`` marker for sources that run without weaving.

    Supports the bare ``@trace`` form and keyword-only ``@trace(...)`` calls;
    the decorated function or class is returned unchanged.  Bare option names
    such as ``pause`` only exist in woven source.
    """

    if len(args) == 1 and not kwargs and (inspect.isfunction(args[0]) or inspect.isclass(args[0])):
        return args[0]

    def decorator(item: Any) -> Any:
        return item

    return decorator
