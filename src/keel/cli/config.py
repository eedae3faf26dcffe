"""
CLI: ``keel config`` — configuration inspection.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table

from keel.cli.utils import console, load_or_exit
from keel.core.settings import Settings

app = typer.Typer(no_args_is_help=True)


def _rows(settings: Settings) -> list[tuple[str, str]]:
    rate_limit = settings.rate_limit
    return [
        ("HTTP_HOST", str(settings.host)),
        ("HTTP_PORT", str(settings.port)),
        ("APP_ENV", settings.environment.value),
        ("LOG_FORMAT", settings.log_format.value),
        ("LOG_LEVEL", settings.log_level),
        ("APP_CORS_ORIGINS", _describe_cors(settings)),
        ("APP_RATELIMIT_RPS", str(rate_limit.rps) if rate_limit else "disabled"),
        ("APP_RATELIMIT_BURST", str(rate_limit.burst) if rate_limit else "-"),
        ("APP_RATELIMIT_TRUST_PROXY", str(rate_limit.trust_proxy).lower() if rate_limit else "-"),
    ]


def _describe_cors(settings: Settings) -> str:
    if not settings.cors.origins:
        return settings.cors.mode.value
    return ", ".join(settings.cors.origins)


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
    env_file: Path = typer.Option(Path(".env"), "--env-file", help="Dotenv file read after the environment"),
) -> None:
    """Show the resolved configuration."""
    settings = load_or_exit(env_file)

    if format == "json":
        console.print_json(json.dumps(settings.to_dict()))
        return

    table = Table(title="keel settings")
    table.add_column("Variable")
    table.add_column("Value")
    for name, value in _rows(settings):
        table.add_row(name, escape(value))
    console.print(table)
    console.print(f"[bold]Listening on:[/bold] {settings.socket_address}")
