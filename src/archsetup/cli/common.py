"""Shared console and exit helpers for the CLI."""

from __future__ import annotations

from typing import NoReturn

import typer
from rich.console import Console

console = Console()
err_console = Console(stderr=True)

#: Exit codes.
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def exit_error(message: str, code: int = EXIT_FAILURE, *, hint: str | None = None) -> NoReturn:
    """Print an error (and optional hint) to stderr and exit.

    Raises:
        typer.Exit: Always, with ``code``.
    """
    err_console.print(f"[bold red]Error:[/] {message}")
    if hint:
        err_console.print(f"[dim]{hint}[/]")
    raise typer.Exit(code)


__all__ = [
    "EXIT_CONFIG",
    "EXIT_FAILURE",
    "EXIT_INTERRUPTED",
    "EXIT_OK",
    "console",
    "err_console",
    "exit_error",
]
