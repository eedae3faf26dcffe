"""
CLI: ``keel openapi`` — export the generated OpenAPI document.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer

from keel.api.app import create_app
from keel.cli.utils import console


def export_openapi(
    output: Path | None = typer.Option(None, "--output", "-o", help="Write to this file instead of stdout"),
) -> None:
    """Print or write the OpenAPI document served at /api-doc/openapi.json."""
    schema = create_app().openapi()
    text = json.dumps(schema, indent=2, default=str)

    if output is None:
        typer.echo(text)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text + "\n")
    console.print(f"OpenAPI schema exported to {output}")
    console.print(f"  Title: {schema.get('info', {}).get('title', 'N/A')}")
    console.print(f"  Version: {schema.get('info', {}).get('version', 'N/A')}")
    console.print(f"  Paths: {len(schema.get('paths', {}))}")
