"""
FastAPI application factory.

``create_app()`` wires the shared state, the request pipeline, the error
taxonomy handlers, and the route registry into a single ``FastAPI``
instance.

Manifesto:
    The app factory is the single composition root.  The pipeline, the
    routes and the lifecycle hooks are wired here so the rest of the
    codebase never touches ``FastAPI`` directly.

Tags:
    keel, api, app-factory, composition-root, FastAPI

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from keel import __version__
from keel.api.deps import SharedState
from keel.api.middleware.errors import register_error_handlers
from keel.api.middleware.pipeline import PipelineMiddleware, build_pipeline
from keel.api.registry import RouteRegistry
from keel.api.routers import OPENAPI_TAGS, build_registry
from keel.core.logging import get_logger
from keel.core.settings import Settings

OPENAPI_URL = "/api-doc/openapi.json"
DOCS_URL = "/swagger-ui/"


def create_app(
    settings: Settings | None = None,
    *,
    log: Any = None,
    registry: RouteRegistry | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : Settings | None
        Process settings.  ``None`` uses the defaults, which is what
        tests and the OpenAPI export want.
    log :
        Logger handle for the pipeline and the error taxonomy.
    registry : RouteRegistry | None
        Routes to serve.  ``None`` builds the standard registry.
    """
    settings = settings or Settings()
    log = log or get_logger("keel.api")
    registry = registry if registry is not None else build_registry()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        log.info("keel API starting", version=app.version, env=settings.environment.value)
        yield
        log.info("keel API shutting down")

    app = FastAPI(
        title="keel",
        version=__version__,
        lifespan=lifespan,
        openapi_url=OPENAPI_URL,
        docs_url=DOCS_URL,
        redoc_url=None,
        openapi_tags=OPENAPI_TAGS,
    )

    pipeline = build_pipeline(settings, log)
    app.state.shared = SharedState(settings=settings)
    app.state.pipeline = pipeline
    app.state.registry = registry

    app.add_middleware(PipelineMiddleware, pipeline=pipeline)
    register_error_handlers(app, log)
    registry.mount(app)

    return app
