"""Request-ID stage — every request and response carries ``x-request-id``.

Manifesto:
    Every request gets an id so logs, traces, and error reports can be
    correlated across services.  A caller-supplied id is propagated
    unchanged; a missing or blank one is replaced by a UUID4.

The id is written into the request headers seen downstream, stored on
``request.state.request_id``, bound to the structlog context for the
lifetime of the request, and set on the response, error responses
included.

Tags:
    keel, api, middleware, request-id, tracing, correlation

Doc-Types:
    api-reference
"""

from __future__ import annotations

import uuid

import structlog
from starlette.requests import Request
from starlette.responses import Response

from keel.api.middleware.pipeline import CallNext, Stage

REQUEST_ID_HEADER = "x-request-id"


class RequestIdStage(Stage):
    """Propagate or generate the request id."""

    name = "request_id"

    def __init__(self, header: str = REQUEST_ID_HEADER) -> None:
        self._header = header.lower()

    async def handle(self, request: Request, call_next: CallNext) -> Response:
        request_id = request.headers.get(self._header, "")
        # A blank inbound id is replaced rather than propagated unchanged.
        if not request_id.strip():
            request_id = str(uuid.uuid4())
            # Drop any blank value so downstream sees exactly one id.
            request.scope["headers"] = [
                (name, value)
                for name, value in request.scope["headers"]
                if name.lower() != self._header.encode("latin-1")
            ] + [(self._header.encode("latin-1"), request_id.encode("latin-1"))]
        request.state.request_id = request_id

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)

        response.headers[self._header] = request_id
        return response
