"""Source-level entry points: find ``trace`` attachments and weave them.

Attachments are written as decorators::

    @trace(disable(unit), prefix_enter="Shape::")
    class Shape:
        ...

or, for a whole module, as a directive statement at top level::

    __trace__ = trace(pretty, disable(main))

The directive is handled first and walks the whole module.  Every decorator
still present afterwards (on items a filter skipped, on nested functions, on
methods of classes that carry no attachment) is then woven on its own, with
no traced ancestors.
"""

from __future__ import annotations

import ast
import logging
from pathlib import Path
from typing import List, Optional, Union, cast

from .context import direct
from .exceptions import Diagnostic, WeaveError
from .options import config_from_decorator, is_attachment
from .rewriter import BlockRewriter
from .settings import WeaveSettings
from .walker import ScopeWalker

LOGGER = logging.getLogger(__name__)

__all__ = ["Weaver", "weave_file", "weave_source", "weave_tree"]


class _AttachmentSweeper(ast.NodeVisitor):
    """Weave every decorated item still carrying an attachment."""

    def __init__(self, walker: ScopeWalker) -> None:
        self.walker = walker
        self.diagnostics: List[Diagnostic] = []
        self.woven = 0
        self._in_class = False

    def _visit_item(self, node: Union[ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef]) -> None:
        if any(is_attachment(decorator, self.walker.attachment_name) for decorator in node.decorator_list):
            try:
                self.walker.weave_attached(node, in_class=self._in_class)
            except WeaveError as exc:
                self.diagnostics.extend(exc.diagnostics)
            else:
                self.woven += 1
        previous = self._in_class
        self._in_class = isinstance(node, ast.ClassDef)
        try:
            self.generic_visit(node)
        finally:
            self._in_class = previous

    visit_FunctionDef = _visit_item
    visit_AsyncFunctionDef = _visit_item
    visit_ClassDef = _visit_item


class Weaver:
    """Weave ``trace`` attachments found in a parsed module."""

    def __init__(self, settings: Optional[WeaveSettings] = None) -> None:
        self.settings = settings or WeaveSettings()
        self.walker = ScopeWalker(
            BlockRewriter(runtime_alias=self.settings.runtime_alias),
            attachment_name=self.settings.attachment_name,
        )

    def weave_tree(self, tree: ast.Module, filename: str = "<string>") -> ast.Module:
        """Rewrite ``tree`` in place and return it; raises :class:`WeaveError` with every diagnostic."""

        diagnostics: List[Diagnostic] = []
        woven = 0

        try:
            directive = self._pop_directive(tree)
        except WeaveError as exc:
            diagnostics.extend(exc.diagnostics)
            directive = None
        if directive is not None:
            try:
                self.walker.weave(direct(config_from_decorator(directive)), tree)
            except WeaveError as exc:
                diagnostics.extend(exc.diagnostics)
            else:
                woven += 1
        if diagnostics:
            raise WeaveError(diagnostics, filename=filename)

        sweeper = _AttachmentSweeper(self.walker)
        sweeper.visit(tree)
        diagnostics.extend(sweeper.diagnostics)
        woven += sweeper.woven

        if diagnostics:
            raise WeaveError(diagnostics, filename=filename)
        if woven and self.settings.inject_runtime:
            self._inject_runtime_import(tree)
        ast.fix_missing_locations(tree)
        LOGGER.debug("%s: woven %d attachment(s)", filename, woven)
        return tree

    def weave_source(self, source: str, filename: str = "<string>") -> str:
        tree = ast.parse(source, filename=filename)
        return ast.unparse(self.weave_tree(tree, filename=filename))

    # -- Helpers ----------------------------------------------------
    def _is_directive(self, stmt: ast.stmt) -> bool:
        return (
            isinstance(stmt, ast.Assign)
            and len(stmt.targets) == 1
            and isinstance(stmt.targets[0], ast.Name)
            and stmt.targets[0].id == self.settings.directive_name
            and is_attachment(stmt.value, self.settings.attachment_name)
        )

    def _pop_directive(self, tree: ast.Module) -> Optional[ast.expr]:
        positions = [index for index, stmt in enumerate(tree.body) if self._is_directive(stmt)]
        if not positions:
            return None
        if len(positions) > 1:
            raise WeaveError(
                Diagnostic.at(tree.body[index], f"duplicate `{self.settings.directive_name}` directive")
                for index in positions
            )
        statement = cast(ast.Assign, tree.body.pop(positions[0]))
        return statement.value

    def _inject_runtime_import(self, tree: ast.Module) -> None:
        index = 0
        body = tree.body
        if (
            body
            and isinstance(body[0], ast.Expr)
            and isinstance(body[0].value, ast.Constant)
            and isinstance(body[0].value.value, str)
        ):
            index = 1
        while (
            index < len(body)
            and isinstance(body[index], ast.ImportFrom)
            and body[index].module == "__future__"
        ):
            index += 1
        statement = ast.Import(
            names=[ast.alias(name=self.settings.runtime_module, asname=self.settings.runtime_alias)]
        )
        body.insert(index, statement)


def weave_tree(
    tree: ast.Module,
    filename: str = "<string>",
    settings: Optional[WeaveSettings] = None,
) -> ast.Module:
    return Weaver(settings).weave_tree(tree, filename=filename)


def weave_source(
    source: str,
    filename: str = "<string>",
    settings: Optional[WeaveSettings] = None,
) -> str:
    """Return ``source`` with every ``trace`` attachment woven in."""

    return Weaver(settings).weave_source(source, filename=filename)


def weave_file(path: Union[str, Path], settings: Optional[WeaveSettings] = None) -> str:
    path = Path(path)
    return weave_source(path.read_text(encoding="utf-8"), filename=str(path), settings=settings)
