from __future__ import annotations

from quotebook.entrypoints.cli import run

raise SystemExit(run())
