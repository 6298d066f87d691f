"""Exception hierarchy and diagnostics for the weaver."""

from __future__ import annotations

import ast
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence


@dataclass(frozen=True)
class Location:
    """Source span of the construct a diagnostic points at."""

    lineno: int = 0
    col_offset: int = 0
    end_lineno: Optional[int] = None
    end_col_offset: Optional[int] = None

    @classmethod
    def of(cls, node: ast.AST | None) -> "Location":
        if node is None:
            return cls()
        return cls(
            lineno=getattr(node, "lineno", 0) or 0,
            col_offset=getattr(node, "col_offset", 0) or 0,
            end_lineno=getattr(node, "end_lineno", None),
            end_col_offset=getattr(node, "end_col_offset", None),
        )


@dataclass(frozen=True)
class Diagnostic:
    """A single validation failure reported against a source location."""

    message: str
    location: Location = Location()

    @classmethod
    def at(cls, node: ast.AST | None, message: str) -> "Diagnostic":
        return cls(message=message, location=Location.of(node))

    def format(self, filename: str = "<string>") -> str:
        # columns are reported 1-based like most compilers
        loc = self.location
        return f"{filename}:{loc.lineno}:{loc.col_offset + 1}: error: {self.message}"


class TraceweaveError(Exception):
    """Base class for all weaver related errors."""


class WeaveError(TraceweaveError):
    """Raised when one or more nodes could not be rewritten."""

    def __init__(self, diagnostics: Iterable[Diagnostic], filename: str = "<string>"):
        self.diagnostics: List[Diagnostic] = list(diagnostics)
        self.filename = filename
        super().__init__(self._summary())

    def _summary(self) -> str:
        if not self.diagnostics:
            return "weaving failed"
        return "\n".join(diag.format(self.filename) for diag in self.diagnostics)

    @property
    def messages(self) -> Sequence[str]:
        return [diag.message for diag in self.diagnostics]


class ConfigError(WeaveError):
    """Raised when a ``trace`` attachment carries malformed options."""


__all__ = [
    "ConfigError",
    "Diagnostic",
    "Location",
    "TraceweaveError",
    "WeaveError",
]
