"""
Route registry — the single list of documented HTTP operations.

Every route is declared once as a :class:`RouteSpec` and registered on a
:class:`RouteRegistry`.  ``mount()`` adds each spec to a FastAPI app with
its documentation metadata, so the generated OpenAPI document is derived
from exactly the routes that serve traffic and its path set always equals
``registry.paths()``.

Manifesto:
    A route that is served but not documented, or documented but not
    served, is a bug.  One registry, one source of truth; duplicates fail
    at startup, not at request time.

Tags:
    keel, api, routing, openapi, registry

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import Response

from keel.core.errors import AppError, BootstrapError


class DuplicateRouteError(BootstrapError):
    """Two routes were registered for the same method and path."""

    def __init__(self, method: str, path: str) -> None:
        self.method = method
        self.path = path
        super().__init__(f"route already registered: {method} {path}")


@dataclass(frozen=True, slots=True)
class RouteSpec:
    """One HTTP operation and its documentation metadata."""

    method: str
    path: str
    endpoint: Callable[..., Any]
    summary: str
    description: str | None = None
    tags: Sequence[str] = ()
    response_model: Any = None
    name: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.method.upper(), self.path)


class TaxonomyRoute(APIRoute):
    """``APIRoute`` whose handler never lets a foreign exception escape.

    Taxonomy errors and framework errors propagate to their exception
    handlers unchanged; anything else is re-raised as ``AppError.internal()``
    chained to the original, so it is logged with its traceback and still
    answered from inside the request pipeline.
    """

    def get_route_handler(self) -> Callable[[Request], Any]:
        handler = super().get_route_handler()

        async def taxonomy_handler(request: Request) -> Response:
            try:
                return await handler(request)
            except (AppError, StarletteHTTPException, RequestValidationError):
                raise
            except Exception as exc:
                raise AppError.internal() from exc

        return taxonomy_handler


class RouteRegistry:
    """Ordered collection of :class:`RouteSpec`, unique by (method, path)."""

    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], RouteSpec] = {}

    def register(self, spec: RouteSpec) -> RouteSpec:
        """Add *spec*.

        Raises:
            DuplicateRouteError: if the method and path are already taken.
        """
        if spec.key in self._routes:
            raise DuplicateRouteError(*spec.key)
        self._routes[spec.key] = spec
        return spec

    def route(
        self,
        method: str,
        path: str,
        *,
        summary: str,
        description: str | None = None,
        tags: Sequence[str] = (),
        response_model: Any = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of :meth:`register`."""

        def decorator(endpoint: Callable[..., Any]) -> Callable[..., Any]:
            self.register(
                RouteSpec(
                    method=method,
                    path=path,
                    endpoint=endpoint,
                    summary=summary,
                    description=description,
                    tags=tuple(tags),
                    response_model=response_model,
                    name=endpoint.__name__,
                )
            )
            return endpoint

        return decorator

    def paths(self) -> set[str]:
        return {spec.path for spec in self}

    def mount(self, app: FastAPI) -> None:
        """Add every registered route to *app*."""
        for spec in self:
            options: dict[str, Any] = {
                "methods": [spec.method.upper()],
                "summary": spec.summary,
                "description": spec.description,
                "tags": list(spec.tags),
                "name": spec.name,
                "route_class_override": TaxonomyRoute,
            }
            if spec.response_model is not None:
                options["response_model"] = spec.response_model
            app.router.add_api_route(spec.path, spec.endpoint, **options)

    def __iter__(self) -> Iterator[RouteSpec]:
        return iter(self._routes.values())

    def __len__(self) -> int:
        return len(self._routes)

    def __contains__(self, key: object) -> bool:
        return key in self._routes
