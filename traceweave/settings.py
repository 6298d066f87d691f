"""Weaver settings, loaded from a YAML file and overridable from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Mapping, Optional, Union

import yaml

from .exceptions import TraceweaveError
from .options import ATTACHMENT_NAME
from .rewriter import DEFAULT_RUNTIME_ALIAS

DEFAULT_DIRECTIVE_NAME = "__trace__"
DEFAULT_RUNTIME_MODULE = "traceweave.runtime"

_ENV_KEYS = {
    "attachment_name": "TRACEWEAVE_ATTACHMENT",
    "directive_name": "TRACEWEAVE_DIRECTIVE",
    "runtime_alias": "TRACEWEAVE_RUNTIME_ALIAS",
    "runtime_module": "TRACEWEAVE_RUNTIME_MODULE",
}


@dataclass(frozen=True)
class WeaveSettings:
    """Names the weaver looks for in source and injects into woven code."""

    attachment_name: str = ATTACHMENT_NAME
    directive_name: str = DEFAULT_DIRECTIVE_NAME
    runtime_alias: str = DEFAULT_RUNTIME_ALIAS
    runtime_module: str = DEFAULT_RUNTIME_MODULE
    inject_runtime: bool = True

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        base: Optional["WeaveSettings"] = None,
    ) -> "WeaveSettings":
        """Return ``base`` (or the defaults) with ``TRACEWEAVE_*`` variables applied."""

        env = os.environ if environ is None else environ
        settings = base or cls()
        overrides = {name: env[key] for name, key in _ENV_KEYS.items() if env.get(key)}
        return replace(settings, **overrides)

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        environ: Optional[Mapping[str, str]] = None,
    ) -> "WeaveSettings":
        """Load settings from a YAML mapping; environment variables still take precedence."""

        path = Path(path)
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, Mapping):
            raise TraceweaveError(f"{path}: expected a mapping of settings")
        known = {field.name for field in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise TraceweaveError(f"{path}: unknown settings: {', '.join(unknown)}")
        for name, value in data.items():
            expected = bool if name == "inject_runtime" else str
            if not isinstance(value, expected):
                raise TraceweaveError(f"{path}: `{name}` must be a {expected.__name__}")
        return cls.from_env(environ, base=cls(**data))


__all__ = ["DEFAULT_DIRECTIVE_NAME", "DEFAULT_RUNTIME_MODULE", "WeaveSettings"]
