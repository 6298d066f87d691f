"""Configuration values attached to traced functions, classes and modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Optional

RETURN_VALUE_NAME = "res"
PLACEHOLDER = "..."

DEFAULT_PAUSE = False
DEFAULT_PRETTY = False


class FilterKind(Enum):
    NONE = "none"
    ENABLE = "enable"
    DISABLE = "disable"


@dataclass(frozen=True)
class Filter:
    """Name filter deciding which parameters (or child items) are traced."""

    kind: FilterKind = FilterKind.NONE
    names: frozenset[str] = frozenset()

    @classmethod
    def enable(cls, names: Iterable[str]) -> "Filter":
        return cls(FilterKind.ENABLE, frozenset(names))

    @classmethod
    def disable(cls, names: Iterable[str]) -> "Filter":
        return cls(FilterKind.DISABLE, frozenset(names))

    def excludes(self, name: str) -> bool:
        if self.kind is FilterKind.ENABLE:
            return name not in self.names
        if self.kind is FilterKind.DISABLE:
            return name in self.names
        return False


NO_FILTER = Filter()


@dataclass(frozen=True)
class Prefix:
    """Label fragments joined in ancestor-to-descendant order.

    Rendering always starts with a fixed marker (``>>>`` on entry, ``<<<`` on
    exit) followed by a space and the concatenated fragments, so a method with
    ``prefix_enter="Foo::"`` on its class renders as ``>>> Foo::method``.
    """

    DEFAULT_ENTER = ">>>"
    DEFAULT_EXIT = "<<<"

    text: Optional[str] = None

    @classmethod
    def join(cls, fragments: Iterable[Optional[str]]) -> "Prefix":
        segments = [fragment for fragment in fragments if fragment is not None]
        return cls("".join(segments) if segments else None)

    def enter(self) -> str:
        return f"{self.DEFAULT_ENTER} {self.text or ''}"

    def exit(self) -> str:
        return f"{self.DEFAULT_EXIT} {self.text or ''}"


@dataclass(frozen=True)
class TraceConfig:
    """One parsed ``trace`` attachment."""

    prefix_enter: Optional[str] = None
    prefix_exit: Optional[str] = None
    filter: Filter = NO_FILTER
    pause: bool = DEFAULT_PAUSE
    pretty: bool = DEFAULT_PRETTY
    display_overrides: Mapping[str, str] = field(default_factory=dict, hash=False)

    def override_for(self, name: str) -> Optional[str]:
        return self.display_overrides.get(name)


__all__ = [
    "DEFAULT_PAUSE",
    "DEFAULT_PRETTY",
    "Filter",
    "FilterKind",
    "NO_FILTER",
    "PLACEHOLDER",
    "Prefix",
    "RETURN_VALUE_NAME",
    "TraceConfig",
]
