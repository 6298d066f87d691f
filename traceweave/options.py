"""Parsing and validation of ``trace(...)`` attachment options.

An attachment is an unordered list of options.  Each option is one of

* a bare flag: ``pause``, ``pretty``;
* a name with a list of bare names: ``enable(a, b)``, ``disable(a, b)``;
* a name with a string value: ``prefix_enter="Foo::"``, ``prefix_exit="..."``
  or ``<parameter>="<template>"`` to override how one parameter (or the
  return value, ``res``) is displayed.  A template formats exactly one value
  with ``%s``, ``%r`` or ``%a``.

Validation never stops at the first problem.  Every malformed option, every
duplicate and the ``enable``/``disable`` conflict are reported together so a
single compile run surfaces all of them.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union, cast

from .config import Filter, NO_FILTER, TraceConfig, DEFAULT_PAUSE, DEFAULT_PRETTY
from .exceptions import ConfigError, Diagnostic, Location

ATTACHMENT_NAME = "trace"

PREFIX_ENTER = "prefix_enter"
PREFIX_EXIT = "prefix_exit"
ENABLE = "enable"
DISABLE = "disable"
PAUSE = "pause"
PRETTY = "pretty"

_ONCE_ONLY = (PREFIX_ENTER, PREFIX_EXIT, ENABLE, DISABLE, PAUSE, PRETTY)


# ---------------------------------------------------------------------------
# Raw option entries


@dataclass(frozen=True)
class ListItem:
    """Entry inside ``enable(...)``/``disable(...)``; ``name`` is ``None`` for non-identifiers."""

    name: Optional[str]
    text: str
    location: Location = Location()


@dataclass(frozen=True)
class FlagOption:
    name: str
    location: Location = Location()


@dataclass(frozen=True)
class ListOption:
    name: str
    items: Tuple[ListItem, ...] = ()
    location: Location = Location()


@dataclass(frozen=True)
class ValueOption:
    name: str
    value: object
    location: Location = Location()


@dataclass(frozen=True)
class LiteralOption:
    text: str
    location: Location = Location()


RawOption = Union[FlagOption, ListOption, ValueOption, LiteralOption]


# ---------------------------------------------------------------------------
# Validation


def _shape_error(name: str, location: Location) -> Diagnostic:
    if name in (PREFIX_ENTER, PREFIX_EXIT):
        message = f"`{name}` requires a string value"
    elif name in (ENABLE, DISABLE):
        message = f"`{name}` requires a list of names"
    elif name in (PAUSE, PRETTY):
        message = f"`{name}` must be a bare flag"
    else:
        message = "variable formatter requires a string value"
    return Diagnostic(message, location)


TEMPLATE_SHAPE_MESSAGE = "value formatter must convert exactly one value with `%s`, `%r` or `%a`"


def _converts_one_value(template: str) -> bool:
    # emit() applies the template to the traced value; any value must format
    try:
        template % (object(),)
    except (TypeError, ValueError):
        return False
    return True


def _check_option(option: RawOption) -> Tuple[Optional[Tuple[str, object]], List[Diagnostic]]:
    """Return ``(kind, value)`` for a well-shaped option, or the errors it carries."""

    if isinstance(option, LiteralOption):
        return None, [Diagnostic("literal option not allowed", option.location)]

    name = option.name
    if isinstance(option, FlagOption):
        if name in (PAUSE, PRETTY):
            return (name, True), []
        return None, [_shape_error(name, option.location)]

    if isinstance(option, ListOption):
        if name not in (ENABLE, DISABLE):
            return None, [_shape_error(name, option.location)]
        errors = [
            Diagnostic(f"`{name}` must contain names only", item.location)
            for item in option.items
            if item.name is None or not item.name.isidentifier()
        ]
        if errors:
            return None, errors
        return (name, frozenset(item.name for item in option.items)), []

    if name in (ENABLE, DISABLE, PAUSE, PRETTY):
        return None, [_shape_error(name, option.location)]
    if not isinstance(option.value, str):
        if name in (PREFIX_ENTER, PREFIX_EXIT):
            message = f"`{name}` must have a string value"
        else:
            message = "value formatter must have a string value"
        return None, [Diagnostic(message, option.location)]
    if name not in (PREFIX_ENTER, PREFIX_EXIT) and not _converts_one_value(option.value):
        return None, [Diagnostic(TEMPLATE_SHAPE_MESSAGE, option.location)]
    return (name, option.value), []


def validate_options(raw: Sequence[RawOption]) -> Tuple[Optional[TraceConfig], List[Diagnostic]]:
    """Validate ``raw`` and return the config, or ``None`` with every diagnostic found."""

    grouped: Dict[str, List[Tuple[Location, object]]] = {name: [] for name in _ONCE_ONLY}
    formats: Dict[str, str] = {}
    errors: List[Diagnostic] = []

    for option in raw:
        checked, option_errors = _check_option(option)
        if option_errors:
            errors.extend(option_errors)
            continue
        kind, value = cast(Tuple[str, object], checked)
        if kind in grouped:
            grouped[kind].append((option.location, value))
        elif kind in formats:
            errors.append(Diagnostic(f"duplicate formatting for `{kind}`", option.location))
        else:
            formats[kind] = str(value)

    for name in _ONCE_ONLY:
        occurrences = grouped[name]
        if len(occurrences) >= 2:
            errors.extend(Diagnostic(f"duplicate `{name}`", location) for location, _ in occurrences)

    if len(grouped[ENABLE]) == 1 and len(grouped[DISABLE]) == 1:
        message = "cannot have both `enable` and `disable`"
        errors.append(Diagnostic(message, grouped[ENABLE][0][0]))
        errors.append(Diagnostic(message, grouped[DISABLE][0][0]))

    if errors:
        return None, errors

    def first(name: str, default: object = None) -> object:
        occurrences = grouped[name]
        return occurrences[0][1] if occurrences else default

    if grouped[ENABLE]:
        name_filter = Filter.enable(first(ENABLE))  # type: ignore[arg-type]
    elif grouped[DISABLE]:
        name_filter = Filter.disable(first(DISABLE))  # type: ignore[arg-type]
    else:
        name_filter = NO_FILTER

    config = TraceConfig(
        prefix_enter=first(PREFIX_ENTER),  # type: ignore[arg-type]
        prefix_exit=first(PREFIX_EXIT),  # type: ignore[arg-type]
        filter=name_filter,
        pause=bool(first(PAUSE, DEFAULT_PAUSE)),
        pretty=bool(first(PRETTY, DEFAULT_PRETTY)),
        display_overrides=formats,
    )
    return config, []


def parse_options(raw: Sequence[RawOption]) -> TraceConfig:
    """Return the :class:`TraceConfig` for ``raw`` or raise :class:`ConfigError`."""

    config, errors = validate_options(raw)
    if errors:
        raise ConfigError(errors)
    return cast(TraceConfig, config)


# ---------------------------------------------------------------------------
# Decorator syntax


def _attachment_target(expr: ast.expr) -> ast.expr:
    return expr.func if isinstance(expr, ast.Call) else expr


def is_attachment(expr: ast.expr, name: str = ATTACHMENT_NAME) -> bool:
    """Return ``True`` when ``expr`` is ``trace``, ``trace(...)`` or ``pkg.trace(...)``."""

    target = _attachment_target(expr)
    if isinstance(target, ast.Name):
        return target.id == name
    if isinstance(target, ast.Attribute):
        return target.attr == name
    return False


def _list_item(node: ast.expr) -> ListItem:
    if isinstance(node, ast.Name):
        return ListItem(node.id, node.id, Location.of(node))
    return ListItem(None, ast.unparse(node), Location.of(node))


def _positional_option(node: ast.expr) -> RawOption:
    location = Location.of(node)
    if isinstance(node, ast.Name):
        return FlagOption(node.id, location)
    if isinstance(node, ast.Call) and isinstance(node.func, ast.Name):
        items = [_list_item(arg) for arg in node.args]
        for keyword in node.keywords:
            items.append(ListItem(None, ast.unparse(keyword), Location.of(keyword)))
        return ListOption(node.func.id, tuple(items), location)
    return LiteralOption(ast.unparse(node), location)


def _keyword_option(keyword: ast.keyword) -> RawOption:
    location = Location.of(keyword)
    if keyword.arg is None:
        return LiteralOption(ast.unparse(keyword), location)
    value = keyword.value
    if isinstance(value, ast.Constant):
        return ValueOption(keyword.arg, value.value, location)
    return ValueOption(keyword.arg, value, location)


def raw_options_from_decorator(expr: ast.expr) -> List[RawOption]:
    """Translate a ``trace`` decorator expression into raw option entries."""

    if not isinstance(expr, ast.Call):
        return []
    options: List[RawOption] = [_positional_option(arg) for arg in expr.args]
    options.extend(_keyword_option(keyword) for keyword in expr.keywords)
    options.sort(key=lambda option: (option.location.lineno, option.location.col_offset))
    return options


def config_from_decorator(expr: ast.expr) -> TraceConfig:
    """Parse a ``trace`` decorator expression, raising :class:`ConfigError` on failure."""

    return parse_options(raw_options_from_decorator(expr))


__all__ = [
    "ATTACHMENT_NAME",
    "TEMPLATE_SHAPE_MESSAGE",
    "FlagOption",
    "ListItem",
    "ListOption",
    "LiteralOption",
    "RawOption",
    "ValueOption",
    "config_from_decorator",
    "is_attachment",
    "parse_options",
    "raw_options_from_decorator",
    "validate_options",
]
