"""Tracing stage — one structured span per request.

Manifesto:
    Server-side latency should be visible without extra instrumentation.
    Every request opens a span bound to method, path and request id, and
    closes it with the matched route, the status and the latency in
    microseconds.

Header contents are never captured unless ``include_headers`` is set, and
even then only the redacted view published by the sensitive-header stage
is logged.

Tags:
    keel, api, middleware, tracing, latency, observability

Doc-Types:
    api-reference
"""

from __future__ import annotations

import time
from typing import Any

from starlette.requests import Request
from starlette.responses import Response

from keel.api.middleware.pipeline import CallNext, Stage


def route_template(request: Request) -> str:
    """The matched route's path template, or the raw path when nothing matched."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class TracingStage(Stage):
    """Log ``request_started`` / ``request_finished`` for every request."""

    name = "tracing"

    def __init__(self, log: Any, *, include_headers: bool = False) -> None:
        self._log = log
        self._include_headers = include_headers

    async def handle(self, request: Request, call_next: CallNext) -> Response:
        span = self._log.bind(
            method=request.method,
            path=request.url.path,
            request_id=getattr(request.state, "request_id", None),
        )
        if self._include_headers:
            span = span.bind(headers=getattr(request.state, "redacted_headers", {}))

        span.debug("request_started")
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            span.warning(
                "request_failed",
                route=route_template(request),
                latency_us=_elapsed_us(start),
            )
            raise

        span.info(
            "request_finished",
            route=route_template(request),
            status=response.status_code,
            latency_us=_elapsed_us(start),
        )
        return response


def _elapsed_us(start: float) -> int:
    return int((time.perf_counter() - start) * 1_000_000)
