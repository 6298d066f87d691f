r"""Body rewriting for traced functions.

The rewriter replaces the body of a function with

.. code-block:: python

    def area(w, h):
        __traceweave__.emit('>>> area\n\tw: %r\n\th: %r', w, h)
        def _traceweave_body(w, h):
            ...  # original body
        _traceweave_result = _traceweave_body(w, h)
        __traceweave__.emit('<<< area\n\tres: %r', _traceweave_result)
        return _traceweave_result

Running the original body as a nested function keeps early ``return``
statements, loops and raised exceptions behaving exactly as before: they leave
the nested function, not the traced one.  Coroutines ``await`` the nested
body and generators delegate to it with ``yield from`` so the value they
return is still captured.
"""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from .config import FilterKind, PLACEHOLDER, RETURN_VALUE_NAME
from .context import (
    Attachment,
    direct_configs,
    display_override,
    enter_prefix,
    excluded_by_direct_filter,
    exit_prefix,
    pause_active,
    pretty_active,
)
from .exceptions import Diagnostic, WeaveError

LOGGER = logging.getLogger(__name__)

DEFAULT_RUNTIME_ALIAS = "__traceweave__"
DEFAULT_TEMPLATE = "%r"
LINE_SEPARATOR = "\n\t"

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]


# ---------------------------------------------------------------------------
# Parameter patterns


@dataclass(frozen=True)
class NamePattern:
    name: str
    node: Optional[ast.AST] = None


@dataclass(frozen=True)
class TuplePattern:
    items: Tuple["Pattern", ...]
    node: Optional[ast.AST] = None


@dataclass(frozen=True)
class OtherPattern:
    node: Optional[ast.AST] = None


Pattern = Union[NamePattern, TuplePattern, OtherPattern]


def pattern_of(node: ast.AST) -> Pattern:
    if isinstance(node, ast.arg):
        return NamePattern(node.arg, node)
    if isinstance(node, ast.Name):
        return NamePattern(node.id, node)
    if isinstance(node, (ast.Tuple, ast.List)):
        return TuplePattern(tuple(pattern_of(elt) for elt in node.elts), node)
    return OtherPattern(node)


def _ordered_parameters(args: ast.arguments) -> List[ast.arg]:
    ordered = [*args.posonlyargs, *args.args]
    if args.vararg is not None:
        ordered.append(args.vararg)
    ordered.extend(args.kwonlyargs)
    if args.kwarg is not None:
        ordered.append(args.kwarg)
    return ordered


def patterns_from_arguments(args: ast.arguments, *, receiver: bool = False) -> List[Pattern]:
    """Return parameter patterns in declaration order, dropping the receiver."""

    parameters = _ordered_parameters(args)
    positional = len(args.posonlyargs) + len(args.args)
    if receiver and positional:
        parameters = parameters[1:]
    return [pattern_of(arg) for arg in parameters]


# ---------------------------------------------------------------------------
# Leaves and format strings


@dataclass(frozen=True)
class Leaf:
    """A traced name, or the placeholder standing in for redacted names."""

    name: Optional[str]

    @property
    def is_placeholder(self) -> bool:
        return self.name is None


def collect_leaves(chain: Sequence[Attachment], patterns: Sequence[Pattern]) -> List[Leaf]:
    """Return visible leaves in declaration order followed by at most one placeholder."""

    leaves: List[Leaf] = []
    errors: List[Diagnostic] = []

    def visit(pattern: Pattern) -> None:
        if isinstance(pattern, NamePattern):
            hidden = excluded_by_direct_filter(chain, pattern.name)
            leaves.append(Leaf(None if hidden else pattern.name))
        elif isinstance(pattern, TuplePattern):
            for item in pattern.items:
                visit(item)
        else:
            errors.append(
                Diagnostic.at(pattern.node, "`trace` supports only names and tuples of names as parameters")
            )

    for pattern in patterns:
        visit(pattern)
    if errors:
        raise WeaveError(errors)

    ordered = sorted(leaves, key=lambda leaf: leaf.is_placeholder)
    collapsed: List[Leaf] = []
    for leaf in ordered:
        if leaf.is_placeholder and collapsed and collapsed[-1].is_placeholder:
            continue
        collapsed.append(leaf)
    return collapsed


@dataclass(frozen=True)
class TracedValue:
    name: str
    pretty: bool = False


@dataclass(frozen=True)
class TraceFormats:
    enter: str
    exit: str
    arguments: Tuple[TracedValue, ...]
    result: Optional[TracedValue]


def _escape(text: str) -> str:
    return text.replace("%", "%%")


def _result_redacted(chain: Sequence[Attachment]) -> bool:
    return any(
        config.filter.kind is FilterKind.DISABLE and RETURN_VALUE_NAME in config.filter.names
        for config in direct_configs(chain)
    )


def render_formats(chain: Sequence[Attachment], name: str, patterns: Sequence[Pattern]) -> TraceFormats:
    """Build the entry/exit format strings and the values each one consumes."""

    leaves = collect_leaves(chain, patterns)
    pretty = pretty_active(chain)

    lines: List[str] = []
    arguments: List[TracedValue] = []
    for leaf in leaves:
        if leaf.name is None:
            lines.append(PLACEHOLDER)
            continue
        template = display_override(chain, leaf.name)
        arguments.append(TracedValue(leaf.name, pretty and template is None))
        lines.append(f"{leaf.name}: {template or DEFAULT_TEMPLATE}")

    enter = _escape(enter_prefix(chain).enter() + name)
    if lines:
        enter += LINE_SEPARATOR + LINE_SEPARATOR.join(lines)

    exit_header = _escape(exit_prefix(chain).exit() + name)
    result: Optional[TracedValue]
    if _result_redacted(chain):
        result = None
        exit_line = f"{RETURN_VALUE_NAME}: {PLACEHOLDER}"
    else:
        template = display_override(chain, RETURN_VALUE_NAME)
        result = TracedValue(RETURN_VALUE_NAME, pretty and template is None)
        exit_line = f"{RETURN_VALUE_NAME}: {template or DEFAULT_TEMPLATE}"

    return TraceFormats(
        enter=enter,
        exit=exit_header + LINE_SEPARATOR + exit_line,
        arguments=tuple(arguments),
        result=result,
    )


# ---------------------------------------------------------------------------
# Body synthesis

_SCOPE_NODES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda, ast.ClassDef)


def _contains_yield(body: Sequence[ast.stmt]) -> bool:
    stack: List[ast.AST] = list(body)
    while stack:
        node = stack.pop()
        if isinstance(node, (ast.Yield, ast.YieldFrom)):
            return True
        if isinstance(node, _SCOPE_NODES):
            continue
        stack.extend(ast.iter_child_nodes(node))
    return False


def _split_docstring(body: Sequence[ast.stmt]) -> Tuple[List[ast.stmt], List[ast.stmt]]:
    if (
        body
        and isinstance(body[0], ast.Expr)
        and isinstance(body[0].value, ast.Constant)
        and isinstance(body[0].value.value, str)
    ):
        return [body[0]], list(body[1:])
    return [], list(body)


def _bare_arguments(args: ast.arguments) -> ast.arguments:
    def bare(arg: Optional[ast.arg]) -> Optional[ast.arg]:
        return None if arg is None else ast.arg(arg=arg.arg)

    return ast.arguments(
        posonlyargs=[bare(arg) for arg in args.posonlyargs],
        args=[bare(arg) for arg in args.args],
        vararg=bare(args.vararg),
        kwonlyargs=[bare(arg) for arg in args.kwonlyargs],
        kw_defaults=[None for _ in args.kwonlyargs],
        kwarg=bare(args.kwarg),
        defaults=[],
    )


def _forwarded_call(func: ast.expr, args: ast.arguments) -> ast.Call:
    positional: List[ast.expr] = [
        ast.Name(id=arg.arg, ctx=ast.Load()) for arg in (*args.posonlyargs, *args.args)
    ]
    if args.vararg is not None:
        positional.append(ast.Starred(value=ast.Name(id=args.vararg.arg, ctx=ast.Load()), ctx=ast.Load()))
    keywords = [ast.keyword(arg=arg.arg, value=ast.Name(id=arg.arg, ctx=ast.Load())) for arg in args.kwonlyargs]
    if args.kwarg is not None:
        keywords.append(ast.keyword(arg=None, value=ast.Name(id=args.kwarg.arg, ctx=ast.Load())))
    return ast.Call(func=func, args=positional, keywords=keywords)


class BlockRewriter:
    """Replace function bodies with traced equivalents."""

    BODY_NAME = "_traceweave_body"
    RESULT_NAME = "_traceweave_result"

    def __init__(self, runtime_alias: str = DEFAULT_RUNTIME_ALIAS) -> None:
        self.runtime_alias = runtime_alias

    # -- Public API -------------------------------------------------
    def rewrite(self, chain: Sequence[Attachment], func: FunctionNode, *, receiver: bool = False) -> None:
        """Rewrite ``func`` in place; raises :class:`WeaveError` and leaves it untouched on failure."""

        is_async = isinstance(func, ast.AsyncFunctionDef)
        is_generator = _contains_yield(func.body)
        if is_async and is_generator:
            raise WeaveError([Diagnostic.at(func, "`trace` cannot wrap an async generator")])

        formats = render_formats(chain, func.name, patterns_from_arguments(func.args, receiver=receiver))
        docstring, original = _split_docstring(func.body)

        call: ast.expr = _forwarded_call(ast.Name(id=self.BODY_NAME, ctx=ast.Load()), func.args)
        if is_async:
            call = ast.Await(value=call)
        elif is_generator:
            call = ast.YieldFrom(value=call)

        statements: List[ast.stmt] = list(docstring)
        statements.append(self._emit(formats.enter, [self._value(arg) for arg in formats.arguments]))
        if pause_active(chain):
            statements.append(self._pause())
        statements.append(self._inner_function(func, original, is_async))
        statements.append(ast.Assign(targets=[ast.Name(id=self.RESULT_NAME, ctx=ast.Store())], value=call))
        exit_values = [] if formats.result is None else [self._value(formats.result, self._result())]
        statements.append(self._emit(formats.exit, exit_values))
        if pause_active(chain):
            statements.append(self._pause())
        statements.append(ast.Return(value=self._result()))

        for statement in statements[len(docstring):]:
            ast.copy_location(statement, func)
        func.body = statements
        ast.fix_missing_locations(func)
        LOGGER.debug("rewrote %s (%d traced arguments)", func.name, len(formats.arguments))

    # -- Helpers ----------------------------------------------------
    def _runtime(self, attr: str) -> ast.expr:
        return ast.Attribute(value=ast.Name(id=self.runtime_alias, ctx=ast.Load()), attr=attr, ctx=ast.Load())

    def _result(self) -> ast.expr:
        return ast.Name(id=self.RESULT_NAME, ctx=ast.Load())

    def _value(self, value: TracedValue, expr: Optional[ast.expr] = None) -> ast.expr:
        node = expr if expr is not None else ast.Name(id=value.name, ctx=ast.Load())
        if value.pretty:
            return ast.Call(func=self._runtime("pretty"), args=[node], keywords=[])
        return node

    def _emit(self, format_string: str, values: List[ast.expr]) -> ast.stmt:
        call = ast.Call(func=self._runtime("emit"), args=[ast.Constant(value=format_string), *values], keywords=[])
        return ast.Expr(value=call)

    def _pause(self) -> ast.stmt:
        return ast.Expr(value=ast.Call(func=self._runtime("pause"), args=[], keywords=[]))

    def _inner_function(self, func: FunctionNode, body: List[ast.stmt], is_async: bool) -> ast.stmt:
        node_type = ast.AsyncFunctionDef if is_async else ast.FunctionDef
        fields = dict(
            name=self.BODY_NAME,
            args=_bare_arguments(func.args),
            body=body or [ast.Pass()],
            decorator_list=[],
            returns=None,
            type_comment=None,
        )
        if "type_params" in node_type._fields:
            fields["type_params"] = []
        return node_type(**fields)


__all__ = [
    "BlockRewriter",
    "Leaf",
    "NamePattern",
    "OtherPattern",
    "Pattern",
    "TracedValue",
    "TraceFormats",
    "TuplePattern",
    "collect_leaves",
    "pattern_of",
    "patterns_from_arguments",
    "render_formats",
]
