"""``python -m keel`` entry point."""

from keel.cli.app import app

app()
