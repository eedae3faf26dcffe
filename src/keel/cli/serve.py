"""
CLI: ``keel serve`` — start the HTTP service.
"""

from __future__ import annotations

from pathlib import Path

import typer

from keel.bootstrap import main


def serve(
    env_file: Path = typer.Option(Path(".env"), "--env-file", help="Dotenv file read after the environment"),
) -> None:
    """Start the keel HTTP service and serve until SIGINT/SIGTERM."""
    code = main(env_file)
    if code:
        raise typer.Exit(code=code)
