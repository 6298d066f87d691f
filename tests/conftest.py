"""Test configuration ensuring the project source tree is importable."""

from __future__ import annotations

import ast
import importlib
import sys
import textwrap
from pathlib import Path
from typing import Callable, Dict, List

import pytest

ROOT = Path(__file__).resolve().parent.parent

root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)
else:
    idx = sys.path.index(root_str)
    if idx != 0:
        sys.path.insert(0, sys.path.pop(idx))

# Import the project package eagerly so subsequent imports reuse it
importlib.import_module("traceweave")

from traceweave import runtime  # noqa: E402
from traceweave.settings import WeaveSettings  # noqa: E402
from traceweave.weaver import weave_tree  # noqa: E402


class Recorder:
    """Stand-in for ``traceweave.runtime`` that keeps trace records in memory."""

    def __init__(self) -> None:
        self.records: List[str] = []
        self.pauses = 0

    def emit(self, format_string: str, *values: object) -> None:
        self.records.append(format_string % values)

    def pause(self) -> None:
        self.pauses += 1

    @staticmethod
    def pretty(value: object) -> runtime.PrettyValue:
        return runtime.pretty(value)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def woven(recorder: Recorder) -> Callable[[str], Dict[str, object]]:
    """Weave a snippet and execute it with ``recorder`` bound as the runtime."""

    def run(source: str) -> Dict[str, object]:
        tree = ast.parse(textwrap.dedent(source))
        weave_tree(tree, settings=WeaveSettings(inject_runtime=False))
        namespace: Dict[str, object] = {"__name__": "woven", "__traceweave__": recorder}
        exec(compile(tree, "<woven>", "exec"), namespace)
        return namespace

    return run
