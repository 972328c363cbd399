"""Output mode shared by all subcommands."""

from __future__ import annotations

import json
import logging
from typing import NoReturn

import typer
from rich.console import Console

# Global state shared across subcommands
_state: dict = {"json": False}


def is_json() -> bool:
    """Check if --json output mode is active."""
    return _state["json"]


def set_json(enabled: bool) -> None:
    _state["json"] = enabled


def setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(levelname)s %(message)s",
    )


def fail(message: str, *, code: int = 1, **extra) -> NoReturn:
    """Report an error in the active output mode and exit."""
    if is_json():
        print(json.dumps({"status": "error", "error": message, **extra}, indent=2))
    else:
        Console(stderr=True).print(f"[red]{message}[/red]")
    raise typer.Exit(code=code)
