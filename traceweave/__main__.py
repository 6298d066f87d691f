"""Allow ``python -m traceweave``."""

from __future__ import annotations

from .cli import main

if __name__ == "__main__":  # pragma: no cover - thin CLI shim
    raise SystemExit(main())
