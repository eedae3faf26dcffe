"""CORS stage — cross-origin headers for the configured :class:`CorsPolicy`.

Only added to the pipeline when the policy is not ``disabled``.  The
header rules come from Starlette's ``CORSMiddleware``; the stage builds
one from the policy and drives its preflight and origin helpers from
inside the pipeline, so CORS responses still pick up the request id.

- ``any``: ``access-control-allow-origin: *`` on every response; any
  method and any requested header pass a preflight.
- ``allow_list``: the request's ``Origin`` is echoed back only on an exact
  match, and responses vary on ``Origin``.  A non-matching origin gets no
  CORS headers; the request itself still proceeds.

Preflight requests from an allowed origin are answered here, without
reaching routing.

Tags:
    keel, api, middleware, cors, browser

Doc-Types:
    api-reference
"""

from __future__ import annotations

from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from keel.api.middleware.pipeline import CallNext, Stage
from keel.api.middleware.request_id import REQUEST_ID_HEADER
from keel.core.settings import CorsMode, CorsPolicy

PREFLIGHT_MAX_AGE = 600


async def _unrouted(scope: Scope, receive: Receive, send: Send) -> None:
    raise RuntimeError("CorsStage only uses CORSMiddleware's header helpers")


def build_cors(policy: CorsPolicy) -> CORSMiddleware:
    """Translate *policy* into a configured ``CORSMiddleware``."""
    if not policy.enabled:
        raise ValueError("CorsStage requires an enabled CORS policy")
    origins = ["*"] if policy.mode is CorsMode.ANY else list(policy.origins)
    return CORSMiddleware(
        _unrouted,
        allow_origins=origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
        max_age=PREFLIGHT_MAX_AGE,
    )


def is_preflight(request: Request) -> bool:
    return (
        request.method == "OPTIONS"
        and "origin" in request.headers
        and "access-control-request-method" in request.headers
    )


class CorsStage(Stage):
    """Apply a CORS policy to responses and answer preflights."""

    name = "cors"

    def __init__(self, policy: CorsPolicy) -> None:
        self._cors = build_cors(policy)

    def _allowed(self, origin: str | None) -> bool:
        return origin is not None and self._cors.is_allowed_origin(origin)

    async def handle(self, request: Request, call_next: CallNext) -> Response:
        origin = request.headers.get("origin")
        if is_preflight(request) and self._allowed(origin):
            return self._cors.preflight_response(request_headers=request.headers)

        response = await call_next(request)

        if self._cors.allow_all_origins:
            response.headers.update(self._cors.simple_headers)
            return response

        response.headers.add_vary_header("Origin")
        if self._allowed(origin):
            response.headers.update(self._cors.simple_headers)
            response.headers["access-control-allow-origin"] = origin
        return response
