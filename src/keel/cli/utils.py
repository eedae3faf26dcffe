"""
CLI utility helpers — shared consoles and settings loading.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from keel.core.errors import ConfigError
from keel.core.settings import Settings, load_settings

console = Console()
err_console = Console(stderr=True)


def load_or_exit(env_file: Path | None) -> Settings:
    """Load settings, or print the validation error and exit with status 1."""
    try:
        return load_settings(env_file)
    except ConfigError as exc:
        err_console.print(f"[bold red]Configuration error[/bold red]: {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
