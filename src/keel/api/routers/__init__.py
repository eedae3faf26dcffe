"""API routers package.

Each router module exposes ``register(registry)``; ``build_registry()``
collects all of them into the registry the app factory mounts.
"""

from __future__ import annotations

from keel.api.registry import RouteRegistry
from keel.api.routers import ops

OPENAPI_TAGS = [
    {"name": ops.TAG, "description": ops.TAG_DESCRIPTION},
]


def build_registry() -> RouteRegistry:
    """Registry holding every route the service serves."""
    registry = RouteRegistry()
    ops.register(registry)
    return registry


__all__ = ["OPENAPI_TAGS", "build_registry"]
