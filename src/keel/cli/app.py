"""
Root Typer application for the keel CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from keel import __version__
from keel.cli.config import app as config_app
from keel.cli.openapi import export_openapi
from keel.cli.serve import serve

app = Typer(
    name="keel",
    help="keel — bootstrap skeleton for an HTTP service.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"keel {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """keel CLI — run the service and inspect its configuration."""


app.command("serve")(serve)
app.command("openapi")(export_openapi)
app.add_typer(config_app, name="config", help="Configuration inspection.")
