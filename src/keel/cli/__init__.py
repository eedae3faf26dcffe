"""keel command-line interface (typer + rich)."""
