"""Command line entry point for the weaver."""

from __future__ import annotations

import argparse
import ast
import builtins
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .exceptions import TraceweaveError, WeaveError
from .logging_config import (
    close_trace_logger,
    configure_logging,
    configure_trace_file_logger,
    configure_trace_stream_logger,
)
from .settings import WeaveSettings
from .weaver import Weaver

LOGGER = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="traceweave", description="Weave entry/exit tracing into Python sources")
    parser.add_argument("--verbose", action="store_true", help="enable debug logging of weaving decisions")
    parser.add_argument("--config", type=Path, default=None, help="YAML file with weaver settings")
    sub = parser.add_subparsers(dest="command", required=True)

    weave = sub.add_parser("weave", help="print or write the woven source")
    weave.add_argument("source", type=Path, help="Python source file to weave")
    weave.add_argument("-o", "--output", type=Path, default=None, help="write the woven source here")

    run = sub.add_parser("run", help="weave a script and execute it as __main__")
    run.add_argument("--trace-log", type=Path, default=None, help="write trace records to this file")
    run.add_argument("script", type=Path, help="Python script to run")
    run.add_argument("args", nargs=argparse.REMAINDER, help="arguments passed to the script")
    return parser


def _report(exc: WeaveError) -> None:
    for diagnostic in exc.diagnostics:
        print(diagnostic.format(exc.filename), file=sys.stderr)


def _weave_command(args: argparse.Namespace, settings: WeaveSettings) -> int:
    source = args.source.read_text(encoding="utf-8")
    woven = Weaver(settings).weave_source(source, filename=str(args.source))
    if args.output is None:
        sys.stdout.write(woven + "\n")
    else:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(woven + "\n", encoding="utf-8")
        LOGGER.info("wrote %s", args.output)
    return 0


def _exit_status(code: object) -> int:
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    print(code, file=sys.stderr)
    return 1


def _run_command(args: argparse.Namespace, settings: WeaveSettings) -> int:
    path: Path = args.script
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    code = compile(Weaver(settings).weave_tree(tree, filename=str(path)), str(path), "exec")

    if args.trace_log is not None:
        trace_logger = configure_trace_file_logger(args.trace_log)
    else:
        trace_logger = configure_trace_stream_logger()

    namespace: Dict[str, object] = {
        "__name__": "__main__",
        "__file__": str(path),
        "__builtins__": builtins,
    }
    saved_argv: List[str] = sys.argv
    sys.argv = [str(path), *args.args]
    sys.path.insert(0, str(path.resolve().parent))
    try:
        exec(code, namespace)
    except SystemExit as exc:
        return _exit_status(exc.code)
    finally:
        sys.argv = saved_argv
        sys.path.pop(0)
        close_trace_logger(trace_logger)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        settings = WeaveSettings.from_file(args.config) if args.config else WeaveSettings.from_env()
        if args.command == "weave":
            return _weave_command(args, settings)
        if args.command == "run":
            return _run_command(args, settings)
    except WeaveError as exc:
        _report(exc)
        return 1
    except SyntaxError as exc:
        print(f"{exc.filename}:{exc.lineno}: error: {exc.msg}", file=sys.stderr)
        return 1
    except TraceweaveError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    parser.error("Unhandled command")
    return 2


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
