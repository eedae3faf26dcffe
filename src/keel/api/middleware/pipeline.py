"""
Request pipeline — an ordered list of stages folded into one middleware.

Each stage implements ``handle(request, call_next) -> response``.  The
stages are kept as a plain tuple so the order can be read and tested;
:class:`PipelineMiddleware` folds them around the router on
every request, outermost first.

Order (outermost → innermost)::

    sensitive_headers → request_id → tracing → cors? → rate_limit? → router

- redaction happens before anything that could log headers;
- the request id exists before the trace span opens;
- rate limiting is the last gate, so a rejected request still gets an
  id and a trace record.

Errors raised by route handlers are turned into taxonomy responses by
the exception handlers, which run inside this middleware, so error
responses flow back out through every stage as well.  Route handlers
are wrapped by ``TaxonomyRoute`` so that even unexpected exceptions
arrive at those handlers as ``internal`` errors.

Tags:
    keel, api, middleware, pipeline, composition

Doc-Types:
    api-reference
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, ClassVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from keel.core.settings import Settings

CallNext = Callable[[Request], Awaitable[Response]]


class Stage(ABC):
    """One cross-cutting request/response transformation."""

    name: ClassVar[str]

    @abstractmethod
    async def handle(self, request: Request, call_next: CallNext) -> Response:
        """Process *request*, usually by awaiting ``call_next(request)``."""


def _chain(stage: Stage, call_next: CallNext) -> CallNext:
    async def call(request: Request) -> Response:
        return await stage.handle(request, call_next)

    return call


class Pipeline:
    """Immutable ordered sequence of stages."""

    def __init__(self, stages: Sequence[Stage]) -> None:
        self._stages = tuple(stages)

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    @property
    def names(self) -> list[str]:
        return [stage.name for stage in self._stages]

    def compose(self, endpoint: CallNext) -> CallNext:
        """Fold the stages around *endpoint*; the first stage ends up outermost."""
        handler = endpoint
        for stage in reversed(self._stages):
            handler = _chain(stage, handler)
        return handler

    def __len__(self) -> int:
        return len(self._stages)

    def __repr__(self) -> str:
        return f"Pipeline({' -> '.join(self.names)})"


class PipelineMiddleware(BaseHTTPMiddleware):
    """Run every request through a :class:`Pipeline` before routing.

    Parameters
    ----------
    app:
        The ASGI application to wrap.
    pipeline:
        The composed stages.
    """

    def __init__(self, app: object, pipeline: Pipeline) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._pipeline = pipeline

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        return await self._pipeline.compose(call_next)(request)


def build_pipeline(settings: Settings, log: Any) -> Pipeline:
    """Assemble the stages for *settings* in their fixed order."""
    from keel.api.middleware.cors import CorsStage
    from keel.api.middleware.rate_limit import RateLimitStage
    from keel.api.middleware.request_id import RequestIdStage
    from keel.api.middleware.sensitive_headers import SensitiveHeadersStage
    from keel.api.middleware.tracing import TracingStage

    stages: list[Stage] = [
        SensitiveHeadersStage(),
        RequestIdStage(),
        TracingStage(log),
    ]
    if settings.cors.enabled:
        stages.append(CorsStage(settings.cors))
    if settings.rate_limit is not None:
        stages.append(RateLimitStage(settings.rate_limit, log))
    return Pipeline(stages)
