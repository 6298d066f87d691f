from __future__ import annotations

from traceweave.config import Filter, NO_FILTER, Prefix, TraceConfig
from traceweave.context import (
    Application,
    Attachment,
    create_context,
    direct,
    direct_configs,
    display_override,
    enter_prefix,
    excluded_by_direct_filter,
    exit_prefix,
    pause_active,
    pretty_active,
)


def test_filter_excludes():
    assert not NO_FILTER.excludes("a")
    assert Filter.enable(["a"]).excludes("b")
    assert not Filter.enable(["a"]).excludes("a")
    assert Filter.disable(["a"]).excludes("a")
    assert not Filter.disable(["a"]).excludes("b")


def test_prefix_join_and_render():
    assert Prefix.join(["Foo::", None, "<static>::"]).text == "Foo::<static>::"
    assert Prefix.join([None, None]).text is None
    assert Prefix("Foo::").enter() == ">>> Foo::"
    assert Prefix().enter() == ">>> "
    assert Prefix().exit() == "<<< "


def test_create_context_demotes_ancestors():
    outer = TraceConfig(prefix_enter="A::")
    local = TraceConfig(prefix_enter="B::")

    chain = create_context(direct(outer), local)

    assert chain == (
        Attachment(outer, Application.INHERITED),
        Attachment(local, Application.DIRECT),
    )
    assert create_context(chain, None) == (
        Attachment(outer, Application.INHERITED),
        Attachment(local, Application.INHERITED),
    )


def test_create_context_without_anything():
    assert create_context((), None) == ()


def test_demote_is_idempotent():
    attachment = Attachment(TraceConfig(), Application.INHERITED)
    assert attachment.demote() is attachment
    assert not attachment.is_direct


def test_filters_and_overrides_apply_only_where_declared():
    outer = TraceConfig(filter=Filter.disable(["x"]), display_overrides={"x": "<%s>"})
    chain = create_context(direct(outer), TraceConfig())

    assert excluded_by_direct_filter(direct(outer), "x")
    assert display_override(direct(outer), "x") == "<%s>"
    assert not excluded_by_direct_filter(chain, "x")
    assert display_override(chain, "x") is None
    assert direct_configs(chain) == (TraceConfig(),)


def test_flags_and_prefixes_accumulate():
    outer = TraceConfig(prefix_enter="Foo::", prefix_exit="Foo::", pause=True)
    inner = TraceConfig(prefix_enter="bar::", pretty=True)
    chain = create_context(direct(outer), inner)

    assert pause_active(chain)
    assert pretty_active(chain)
    assert enter_prefix(chain).enter() == ">>> Foo::bar::"
    assert exit_prefix(chain).exit() == "<<< Foo::"
    assert not pause_active(direct(TraceConfig()))


def test_sibling_contexts_are_independent():
    parent = direct(TraceConfig(prefix_enter="Kit::"))
    first = TraceConfig(filter=Filter.disable(["b"]), display_overrides={"a": "first %s"})
    second = TraceConfig(filter=Filter.disable(["a"]), display_overrides={"b": "second %s"})

    one = create_context(parent, first)
    two = create_context(parent, second)

    assert parent == (Attachment(TraceConfig(prefix_enter="Kit::"), Application.DIRECT),)
    assert display_override(one, "a") == "first %s"
    assert display_override(one, "b") is None
    assert display_override(two, "a") is None
    assert display_override(two, "b") == "second %s"
    assert excluded_by_direct_filter(one, "b") and not excluded_by_direct_filter(one, "a")
    assert excluded_by_direct_filter(two, "a") and not excluded_by_direct_filter(two, "b")
