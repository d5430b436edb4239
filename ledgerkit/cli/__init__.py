"""
ledgerkit.cli
=============

Typer-based command-line interface, exposed as the `ledgerkit` console
script. Typer is only imported when the CLI is actually used.

    >>> from ledgerkit.cli import run
    >>> run(["version"])
"""

from __future__ import annotations

from importlib import import_module
from typing import Any, List, Optional

__all__: List[str] = ["run", "app"]

_SUBMODULE = "ledgerkit.cli.main"


def _load() -> Any:
    return import_module(_SUBMODULE)


def __getattr__(name: str) -> Any:  # PEP 562 lazy attribute access
    if name == "app":
        return _load().app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def run(argv: Optional[list[str]] = None) -> int:
    """Execute the CLI and return the process exit code."""
    return int(_load().main(argv))
