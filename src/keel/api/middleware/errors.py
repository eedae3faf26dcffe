"""
Error mapping — turns every request-time failure into the taxonomy's JSON body.

``error_response()`` is the single place an :class:`~keel.core.errors.AppError`
becomes an HTTP response.  The exception handlers registered by
``register_error_handlers()`` classify framework errors (unknown route,
method not allowed, request validation, anything unexpected) into the
same taxonomy, so callers only ever see ``{code, message, error_id?}``.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from keel.core.errors import AppError, ErrorKind

# ── HTTP status → taxonomy ───────────────────────────────────────────────

HTTP_STATUS_TO_KIND: dict[int, ErrorKind] = {
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
}


def classify_http_exception(exc: StarletteHTTPException) -> AppError:
    """Map a framework ``HTTPException`` onto the closed taxonomy.

    401/403/404 map to their kinds, 409 to ``conflict``, any other 4xx to
    ``bad_request`` carrying the framework's detail, and 5xx to ``internal``.
    """
    if exc.status_code >= 500:
        return AppError.internal()
    if exc.status_code == 409:
        return AppError.conflict(str(exc.detail))
    kind = HTTP_STATUS_TO_KIND.get(exc.status_code)
    if kind is not None:
        return AppError(kind)
    return AppError.bad_request(str(exc.detail))


def classify_validation_error(exc: RequestValidationError) -> AppError:
    problems = [
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', 'invalid')}"
        for error in exc.errors()
    ]
    return AppError.bad_request("Invalid request: " + "; ".join(problems))


def error_response(
    error: AppError,
    log: Any,
    *,
    exc: BaseException | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build the JSON response for *error*.

    ``internal`` errors emit exactly one error-level record carrying the
    correlation id before the response is built; no other kind logs.
    """
    if error.is_internal:
        cause = exc if exc is not None else error.__cause__
        if cause is not None:
            log.error("internal_error", error_id=str(error.error_id), exc_info=cause)
        else:
            log.error("internal_error", error_id=str(error.error_id))

    return JSONResponse(
        status_code=error.status_code,
        content=error.to_response().to_body(),
        headers=headers,
    )


def register_error_handlers(app: FastAPI, log: Any) -> None:
    """Register the taxonomy handlers on *app*."""

    async def app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
        return error_response(exc, log)

    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_response(classify_http_exception(exc), log, exc=exc, headers=exc.headers)

    async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(classify_validation_error(exc), log)

    async def unhandled_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
        return error_response(AppError.internal(), log, exc=exc)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
