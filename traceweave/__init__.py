"""Source-to-source weaving of entry/exit tracing into Python functions."""

from __future__ import annotations

from .config import Filter, FilterKind, Prefix, RETURN_VALUE_NAME, TraceConfig
from .context import Application, Attachment, create_context
from .exceptions import ConfigError, Diagnostic, Location, TraceweaveError, WeaveError
from .options import parse_options
from .rewriter import BlockRewriter
from .runtime import trace
from .settings import WeaveSettings
from .walker import ScopeWalker
from .weaver import Weaver, weave_file, weave_source, weave_tree

__version__ = "0.1.0"

__all__ = [
    "Application",
    "Attachment",
    "BlockRewriter",
    "ConfigError",
    "Diagnostic",
    "Filter",
    "FilterKind",
    "Location",
    "Prefix",
    "RETURN_VALUE_NAME",
    "ScopeWalker",
    "TraceConfig",
    "TraceweaveError",
    "WeaveError",
    "WeaveSettings",
    "Weaver",
    "create_context",
    "parse_options",
    "trace",
    "weave_file",
    "weave_source",
    "weave_tree",
]
