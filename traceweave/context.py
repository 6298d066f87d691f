"""Resolution of the configuration chain seen by one node."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple

from .config import Prefix, TraceConfig


class Application(Enum):
    """Whether an attachment was declared on the node itself or on an ancestor."""

    DIRECT = "direct"
    INHERITED = "inherited"


@dataclass(frozen=True)
class Attachment:
    config: TraceConfig
    application: Application = Application.DIRECT

    @property
    def is_direct(self) -> bool:
        return self.application is Application.DIRECT

    def demote(self) -> "Attachment":
        if self.is_direct:
            return Attachment(self.config, Application.INHERITED)
        return self


Chain = Tuple[Attachment, ...]


def direct(config: TraceConfig) -> Chain:
    """Chain for a node that carries ``config`` and has no traced ancestors."""

    return (Attachment(config, Application.DIRECT),)


def create_context(given: Iterable[Attachment], local: Optional[TraceConfig]) -> Chain:
    """Demote the ancestor chain and append ``local`` as the direct attachment.

    A filter or display override only acts on the level it is declared on, so
    every ancestor loses its direct status when the walk moves one level down.
    Prefixes and the ``pause``/``pretty`` flags keep accumulating.
    """

    chain = [attachment.demote() for attachment in given]
    if local is not None:
        chain.append(Attachment(local, Application.DIRECT))
    return tuple(chain)


def direct_configs(chain: Sequence[Attachment]) -> Tuple[TraceConfig, ...]:
    return tuple(attachment.config for attachment in chain if attachment.is_direct)


def excluded_by_direct_filter(chain: Sequence[Attachment], name: str) -> bool:
    return any(config.filter.excludes(name) for config in direct_configs(chain))


def display_override(chain: Sequence[Attachment], name: str) -> Optional[str]:
    for config in direct_configs(chain):
        template = config.override_for(name)
        if template is not None:
            return template
    return None


def pause_active(chain: Sequence[Attachment]) -> bool:
    return any(attachment.config.pause for attachment in chain)


def pretty_active(chain: Sequence[Attachment]) -> bool:
    return any(attachment.config.pretty for attachment in chain)


def enter_prefix(chain: Sequence[Attachment]) -> Prefix:
    return Prefix.join(attachment.config.prefix_enter for attachment in chain)


def exit_prefix(chain: Sequence[Attachment]) -> Prefix:
    return Prefix.join(attachment.config.prefix_exit for attachment in chain)


__all__ = [
    "Application",
    "Attachment",
    "Chain",
    "create_context",
    "direct",
    "direct_configs",
    "display_override",
    "enter_prefix",
    "excluded_by_direct_filter",
    "exit_prefix",
    "pause_active",
    "pretty_active",
]
