"""Recursive application of ``trace`` attachments over modules, classes and functions."""

from __future__ import annotations

import ast
import copy
import logging
from typing import List, Optional, Sequence, Union

from .config import TraceConfig
from .context import Attachment, Chain, create_context, excluded_by_direct_filter
from .exceptions import Diagnostic, WeaveError
from .options import ATTACHMENT_NAME, config_from_decorator, is_attachment
from .rewriter import BlockRewriter

LOGGER = logging.getLogger(__name__)

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]
ItemNode = Union[ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef]

_FUNCTION_TYPES = (ast.FunctionDef, ast.AsyncFunctionDef)
_MODULE_ITEM_TYPES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)


def _commit(node: ast.AST, working: ast.AST) -> None:
    for name in node._fields:
        setattr(node, name, getattr(working, name))


def is_staticmethod(func: FunctionNode) -> bool:
    for decorator in func.decorator_list:
        target = decorator.func if isinstance(decorator, ast.Call) else decorator
        if isinstance(target, ast.Name) and target.id == "staticmethod":
            return True
        if isinstance(target, ast.Attribute) and target.attr == "staticmethod":
            return True
    return False


class ScopeWalker:
    """Drive a configuration chain through a syntax subtree.

    ``transform_item`` mutates the nodes it is given and returns the
    diagnostics it collected; siblings keep being processed after one of them
    fails.  :meth:`weave` wraps it so that a node is either rewritten as a
    whole or left exactly as it was.
    """

    def __init__(
        self,
        rewriter: Optional[BlockRewriter] = None,
        *,
        attachment_name: str = ATTACHMENT_NAME,
    ) -> None:
        self.rewriter = rewriter or BlockRewriter()
        self.attachment_name = attachment_name

    # -- Public API -------------------------------------------------
    def weave(self, chain: Sequence[Attachment], node: ast.AST, *, in_class: bool = False) -> None:
        """Transform ``node`` atomically, raising :class:`WeaveError` on any diagnostic."""

        working = copy.deepcopy(node)
        diagnostics = self.transform_item(tuple(chain), working, in_class=in_class)
        if diagnostics:
            raise WeaveError(diagnostics)
        _commit(node, working)

    def weave_attached(self, node: ItemNode, *, in_class: bool = False) -> None:
        """Weave an item carrying its own decorator, with no traced ancestors."""

        working = copy.deepcopy(node)
        local = self.extract_local_config(working)
        diagnostics = self.transform_item(create_context((), local), working, in_class=in_class)
        if diagnostics:
            raise WeaveError(diagnostics)
        _commit(node, working)

    def transform_item(
        self,
        chain: Chain,
        node: ast.AST,
        *,
        in_class: bool = False,
    ) -> List[Diagnostic]:
        if isinstance(node, _FUNCTION_TYPES):
            return self.transform_function(chain, node, receiver=in_class and not is_staticmethod(node))
        if isinstance(node, ast.ClassDef):
            return self.transform_class(chain, node)
        if isinstance(node, ast.Module):
            return self.transform_module(chain, node)
        return [Diagnostic.at(node, f"`{self.attachment_name}` is not supported for this item")]

    def transform_function(self, chain: Chain, func: FunctionNode, *, receiver: bool = False) -> List[Diagnostic]:
        try:
            self.rewriter.rewrite(chain, func, receiver=receiver)
        except WeaveError as exc:
            return list(exc.diagnostics)
        return []

    def transform_class(self, chain: Chain, cls: ast.ClassDef) -> List[Diagnostic]:
        diagnostics: List[Diagnostic] = []
        for item in cls.body:
            if not isinstance(item, _FUNCTION_TYPES):
                continue
            if excluded_by_direct_filter(chain, item.name):
                LOGGER.debug("skipping %s.%s: excluded by filter", cls.name, item.name)
                continue
            try:
                local = self.extract_local_config(item)
            except WeaveError as exc:
                diagnostics.extend(exc.diagnostics)
                continue
            context = create_context(chain, local)
            diagnostics.extend(
                self.transform_function(context, item, receiver=not is_staticmethod(item))
            )
        return diagnostics

    def transform_module(self, chain: Chain, module: ast.Module) -> List[Diagnostic]:
        diagnostics: List[Diagnostic] = []
        for item in module.body:
            if not isinstance(item, _MODULE_ITEM_TYPES):
                continue
            if excluded_by_direct_filter(chain, item.name):
                LOGGER.debug("skipping %s: excluded by filter", item.name)
                continue
            try:
                local = self.extract_local_config(item)
            except WeaveError as exc:
                diagnostics.extend(exc.diagnostics)
                continue
            diagnostics.extend(self.transform_item(create_context(chain, local), item))
        return diagnostics

    # -- Attachments ------------------------------------------------
    def extract_local_config(self, item: ItemNode) -> Optional[TraceConfig]:
        """Remove the ``trace`` decorator from ``item`` and return its parsed config."""

        positions = [
            index
            for index, decorator in enumerate(item.decorator_list)
            if is_attachment(decorator, self.attachment_name)
        ]
        if not positions:
            return None
        if len(positions) > 1:
            raise WeaveError(
                Diagnostic.at(item.decorator_list[index], f"duplicate `{self.attachment_name}` attachment")
                for index in positions
            )
        decorator = item.decorator_list.pop(positions[0])
        return config_from_decorator(decorator)


__all__ = ["ScopeWalker", "is_staticmethod"]
