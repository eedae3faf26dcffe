"""Sensitive-header stage — keeps credentials out of anything that logs headers.

Manifesto:
    Credentials travel in headers.  Marking them sensitive at the outermost
    stage means no later stage can accidentally put a bearer token or a
    session cookie into a log line.

The handler still receives the original headers; only the redacted view
published on ``request.state.redacted_headers`` is meant for logging.

Tags:
    keel, api, middleware, redaction, security

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from starlette.requests import Request
from starlette.responses import Response

from keel.api.middleware.pipeline import CallNext, Stage

SENSITIVE_HEADERS: frozenset[str] = frozenset({"authorization", "cookie", "set-cookie"})
REDACTED = "[redacted]"


def redact_headers(
    headers: Mapping[str, str] | Iterable[tuple[str, str]],
    sensitive: frozenset[str] = SENSITIVE_HEADERS,
) -> dict[str, str]:
    """Return a copy of *headers* with sensitive values replaced."""
    items = headers.items() if isinstance(headers, Mapping) else headers
    return {
        name.lower(): (REDACTED if name.lower() in sensitive else value)
        for name, value in items
    }


class SensitiveHeadersStage(Stage):
    """Publish a redacted view of the request headers for downstream logging."""

    name = "sensitive_headers"

    def __init__(self, sensitive: Iterable[str] = SENSITIVE_HEADERS) -> None:
        self._sensitive = frozenset(header.lower() for header in sensitive)

    @property
    def sensitive(self) -> frozenset[str]:
        return self._sensitive

    async def handle(self, request: Request, call_next: CallNext) -> Response:
        request.state.redacted_headers = redact_headers(request.headers.items(), self._sensitive)
        return await call_next(request)
