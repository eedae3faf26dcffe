"""
FastAPI dependency injection — the process-wide shared state.

Usage in route handlers::

    from keel.api.deps import State

    async def get_health(state: State) -> HealthResponse:
        ...

Manifesto:
    Dependency injection keeps route handlers thin.  The shared state is
    built once by the app factory, is read-only, and is handed to every
    handler through ``Depends`` rather than imported as a global.

Tags:
    keel, api, dependency-injection, shared-state

Doc-Types:
    api-reference
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request

from keel.core.settings import Settings


@dataclass(frozen=True, slots=True)
class SharedState:
    """Read-only state shared by every request handler."""

    settings: Settings


def get_state(request: Request) -> SharedState:
    """The :class:`SharedState` stored on the application by ``create_app``."""
    return request.app.state.shared


State = Annotated[SharedState, Depends(get_state)]
