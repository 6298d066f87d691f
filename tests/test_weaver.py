from __future__ import annotations

import ast
import logging
import textwrap

import pytest

from traceweave import runtime, trace
from traceweave.exceptions import WeaveError
from traceweave.options import TEMPLATE_SHAPE_MESSAGE
from traceweave.settings import WeaveSettings
from traceweave.weaver import Weaver, weave_file, weave_source, weave_tree


def _source(text: str) -> str:
    return textwrap.dedent(text).lstrip()


def _trace_messages(caplog):
    return [record.getMessage() for record in caplog.records if record.name == runtime.TRACE_LOGGER_NAME]


def test_woven_module_logs_through_runtime(caplog):
    caplog.set_level(logging.DEBUG, logger=runtime.TRACE_LOGGER_NAME)
    tree = weave_tree(
        ast.parse(
            _source(
                """
                @trace(prefix_enter="calc::")
                def add(a, b):
                    return a + b
                """
            )
        )
    )
    namespace = {"__name__": "woven"}

    exec(compile(tree, "<woven>", "exec"), namespace)

    assert namespace["add"](2, 3) == 5
    assert _trace_messages(caplog) == [">>> calc::add\n\ta: 2\n\tb: 3", "<<< add\n\tres: 5"]


def test_runtime_import_goes_after_docstring_and_future_imports():
    tree = weave_tree(
        ast.parse(
            _source(
                '''
                """Module docstring."""
                from __future__ import annotations

                import os

                @trace
                def f():
                    return os.sep
                '''
            )
        )
    )

    inserted = tree.body[2]
    assert isinstance(inserted, ast.Import)
    assert (inserted.names[0].name, inserted.names[0].asname) == ("traceweave.runtime", "__traceweave__")
    assert isinstance(tree.body[3], ast.Import) and tree.body[3].names[0].name == "os"


def test_source_without_attachments_is_unchanged():
    source = _source(
        """
        def f(x):
            return x
        """
    )

    assert weave_source(source) == ast.unparse(ast.parse(source))


def test_directive_is_removed_and_module_traced():
    woven = weave_source(
        _source(
            """
            __trace__ = trace(prefix_enter="mod::")

            def f():
                return 1
            """
        )
    )

    assert "__trace__" not in woven
    assert "'>>> mod::f'" in woven
    assert woven.startswith("import traceweave.runtime as __traceweave__")


def test_nested_attachments_are_woven_inside_out(woven, recorder):
    ns = woven(
        """
        @trace
        def outer(x):
            @trace
            def inner(y):
                return y * 2
            return inner(x) + 1
        """
    )

    assert ns["outer"](1) == 3
    assert recorder.records == [
        ">>> outer\n\tx: 1",
        ">>> inner\n\ty: 1",
        "<<< inner\n\tres: 2",
        "<<< outer\n\tres: 3",
    ]


def test_filtered_method_is_woven_on_its_own(woven, recorder):
    ns = woven(
        """
        @trace(disable(helper), prefix_enter="M::")
        class M:
            @trace
            def helper(self, x):
                return x

            def run(self):
                return self.helper(7)
        """
    )

    assert ns["M"]().run() == 7
    assert recorder.records == [
        ">>> M::run",
        ">>> helper\n\tx: 7",
        "<<< helper\n\tres: 7",
        "<<< run\n\tres: 7",
    ]


def test_every_failure_in_a_file_is_reported():
    source = _source(
        """
        @trace(1)
        def f():
            pass

        @trace
        def ok():
            pass

        @trace(pause(x))
        def g():
            pass
        """
    )

    with pytest.raises(WeaveError) as excinfo:
        weave_source(source, filename="mod.py")

    error = excinfo.value
    assert error.messages == ["literal option not allowed", "`pause` must be a bare flag"]
    assert [diag.location.lineno for diag in error.diagnostics] == [1, 9]
    assert error.filename == "mod.py"
    assert "mod.py:1:8: error: literal option not allowed" in str(error)


def test_broken_directive_stops_before_the_sweep():
    source = _source(
        """
        __trace__ = trace("oops")

        @trace(1)
        def f():
            pass
        """
    )

    with pytest.raises(WeaveError) as excinfo:
        weave_source(source)

    assert excinfo.value.messages == ["literal option not allowed"]


def test_duplicate_directive():
    source = _source(
        """
        __trace__ = trace
        __trace__ = trace(pause)
        """
    )

    with pytest.raises(WeaveError) as excinfo:
        weave_source(source)

    assert excinfo.value.messages == ["duplicate `__trace__` directive"] * 2


def test_other_assignments_are_not_directives():
    source = _source(
        """
        __trace__ = other(pause)
        """
    )

    assert weave_source(source) == "__trace__ = other(pause)"


def test_custom_settings_from_environment():
    settings = WeaveSettings.from_env({"TRACEWEAVE_ATTACHMENT": "traced", "TRACEWEAVE_RUNTIME_ALIAS": "_rt"})
    source = _source(
        """
        @traced
        def f():
            return 1
        """
    )

    woven = Weaver(settings).weave_source(source)

    assert "import traceweave.runtime as _rt" in woven
    assert "_rt.emit(" in woven
    assert "@traced" not in woven


def test_weave_file(tmp_path):
    path = tmp_path / "sample.py"
    path.write_text("@trace\ndef f(a):\n    return a\n", encoding="utf-8")

    woven = weave_file(path, settings=WeaveSettings(inject_runtime=False))

    assert "import traceweave" not in woven
    assert "__traceweave__.emit('>>> f\\n\\ta: %r', a)" in woven


def test_malformed_template_fails_at_weave_time():
    source = _source(
        """
        @trace(res="returning {}")
        def g(a):
            return a
        """
    )

    with pytest.raises(WeaveError) as excinfo:
        weave_source(source)

    assert excinfo.value.messages == [TEMPLATE_SHAPE_MESSAGE]


def test_templates_format_through_runtime_at_debug(caplog):
    caplog.set_level(logging.DEBUG, logger=runtime.TRACE_LOGGER_NAME)
    tree = weave_tree(
        ast.parse(
            _source(
                """
                @trace(b="<%s>", res="returning %r")
                def pick(a, b):
                    return a
                """
            )
        )
    )
    namespace = {"__name__": "woven"}
    exec(compile(tree, "<woven>", "exec"), namespace)

    assert namespace["pick"]("x", 50) == "x"
    assert _trace_messages(caplog) == [">>> pick\n\ta: 'x'\n\tb: <50>", "<<< pick\n\tres: returning 'x'"]


def test_trace_marker_lets_source_run_unwoven():
    source = _source(
        """
        from traceweave import trace

        __trace__ = trace(prefix_enter="mod::")

        @trace
        def double(x):
            return x * 2

        @trace(prefix_enter="Shape::")
        class Shape:
            def area(self):
                return 6
        """
    )
    namespace = {"__name__": "plain"}

    exec(compile(source, "<plain>", "exec"), namespace)

    assert namespace["double"](3) == 6
    assert namespace["double"].__name__ == "double"
    assert namespace["Shape"]().area() == 6


def test_trace_marker_import_survives_weaving(woven, recorder):
    ns = woven(
        """
        from traceweave import trace

        @trace
        def double(x):
            return x * 2
        """
    )

    assert ns["double"](3) == 6
    assert ns["trace"] is trace
    assert recorder.records == [">>> double\n\tx: 3", "<<< double\n\tres: 6"]
