"""
Error taxonomy for keel services.

Two families of errors live here:

- **Startup errors** (``BootstrapError`` and its subclasses ``ConfigError``
  and ``BindError``) are raised before the listener accepts a single
  connection.  They are always fatal and never retried.
- **Request errors** (``AppError``) form a closed set of classified
  failures.  Each kind has an HTTP status, a stable machine-readable
  code and a public-safe message.

Manifesto:
    A handler never decides how an error looks on the wire.  It picks a
    kind; the taxonomy owns status, code and message.  Only ``internal``
    failures are server-caused, so only they are logged, and only they
    carry a correlation id the caller can quote back to an operator.

Architecture:
    ::

        ErrorKind ──► _CLASSIFICATION[kind] ──► (status, public message)
            │
        AppError(kind, message?, error_id?)
            │
            └── to_response() ──► ErrorResponse {code, message, error_id?}

Examples:
    >>> err = AppError.bad_request("nope")
    >>> err.status_code, err.code
    (400, 'bad_request')
    >>> err.to_response().message
    'nope'
    >>> AppError.internal().to_response().error_id is not None
    True

Tags:
    keel, errors, taxonomy, http-status, correlation-id

Doc-Types:
    api-reference
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field

# =============================================================================
# STARTUP ERRORS
# =============================================================================


class BootstrapError(Exception):
    """Base class for failures that abort startup."""


class ConfigError(BootstrapError):
    """A setting could not be parsed or failed validation.

    ``key`` is the environment variable name, so the message always tells
    the operator which setting to fix.
    """

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"{key} {reason}")


class BindError(BootstrapError):
    """The listener could not be bound (address in use, permission, ...)."""

    def __init__(self, address: str, cause: OSError):
        self.address = address
        self.cause = cause
        super().__init__(f"failed to bind {address}: {cause.strerror or cause}")
        self.__cause__ = cause


# =============================================================================
# REQUEST ERRORS
# =============================================================================


class ErrorKind(str, Enum):
    """Closed set of request failure kinds.

    The value doubles as the stable wire ``code``.
    """

    BAD_REQUEST = "bad_request"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    INTERNAL = "internal"


@dataclass(frozen=True, slots=True)
class _Classification:
    status: int
    # None means the caller-supplied message is surfaced verbatim
    public_message: str | None


_CLASSIFICATION: dict[ErrorKind, _Classification] = {
    ErrorKind.BAD_REQUEST: _Classification(400, None),
    ErrorKind.NOT_FOUND: _Classification(404, "Not found"),
    ErrorKind.UNAUTHORIZED: _Classification(401, "Unauthorized"),
    ErrorKind.FORBIDDEN: _Classification(403, "Forbidden"),
    ErrorKind.CONFLICT: _Classification(409, None),
    ErrorKind.INTERNAL: _Classification(500, "Internal server error"),
}


class ErrorResponse(BaseModel):
    """Wire body for every error response.

    ``error_id`` is only set for ``internal`` errors and is left out of the
    JSON body otherwise.
    """

    code: str = Field(description="Stable machine-readable error code (e.g. 'not_found')")
    message: str = Field(description="Public-safe human-readable message")
    error_id: str | None = Field(
        default=None,
        description="Correlation id for internal errors; quote it when reporting a problem",
    )

    def to_body(self) -> dict[str, str]:
        """JSON-ready dict without unset optional fields."""
        return self.model_dump(exclude_none=True)


class AppError(Exception):
    """A classified request failure.

    Build instances through the named constructors rather than
    ``AppError(kind, ...)`` directly::

        raise AppError.bad_request("limit must be positive")
        raise AppError.not_found()
        raise AppError.internal() from exc

    The correlation id of an ``internal`` error is generated once, when the
    error is created, so converting the same instance twice yields the same
    body.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str | None = None,
        *,
        error_id: uuid.UUID | None = None,
    ):
        classification = _CLASSIFICATION[kind]
        if classification.public_message is None and message is None:
            raise ValueError(f"{kind.value} errors require a message")
        if kind is ErrorKind.INTERNAL:
            error_id = error_id or uuid.uuid4()
        elif error_id is not None:
            raise ValueError("only internal errors carry an error_id")

        self.kind = kind
        self.message = message
        self.error_id = error_id
        super().__init__(self._describe())

    # ── Named constructors ───────────────────────────────────────────────

    @classmethod
    def bad_request(cls, message: str) -> AppError:
        return cls(ErrorKind.BAD_REQUEST, message)

    @classmethod
    def not_found(cls) -> AppError:
        return cls(ErrorKind.NOT_FOUND)

    @classmethod
    def unauthorized(cls) -> AppError:
        return cls(ErrorKind.UNAUTHORIZED)

    @classmethod
    def forbidden(cls) -> AppError:
        return cls(ErrorKind.FORBIDDEN)

    @classmethod
    def conflict(cls, message: str) -> AppError:
        return cls(ErrorKind.CONFLICT, message)

    @classmethod
    def internal(cls) -> AppError:
        return cls(ErrorKind.INTERNAL)

    # ── Classification ───────────────────────────────────────────────────

    @property
    def status_code(self) -> int:
        return _CLASSIFICATION[self.kind].status

    @property
    def code(self) -> str:
        return self.kind.value

    @property
    def public_message(self) -> str:
        fixed = _CLASSIFICATION[self.kind].public_message
        return fixed if fixed is not None else self.message  # type: ignore[return-value]

    @property
    def is_internal(self) -> bool:
        return self.kind is ErrorKind.INTERNAL

    def to_response(self) -> ErrorResponse:
        """Convert to the wire body.  Pure; never raises."""
        return ErrorResponse(
            code=self.code,
            message=self.public_message,
            error_id=str(self.error_id) if self.error_id is not None else None,
        )

    def _describe(self) -> str:
        if self.kind is ErrorKind.INTERNAL:
            return f"Internal error (id={self.error_id})"
        if self.message is not None and _CLASSIFICATION[self.kind].public_message is None:
            return f"{self.kind.value.replace('_', ' ').capitalize()}: {self.message}"
        return self.public_message

    def __repr__(self) -> str:
        return f"AppError({self.kind.value!r}, message={self.message!r}, error_id={self.error_id!r})"


def classified_kinds() -> frozenset[ErrorKind]:
    """Kinds that have a status/message mapping (used by exhaustiveness checks)."""
    return frozenset(_CLASSIFICATION)


__all__ = [
    "AppError",
    "BindError",
    "BootstrapError",
    "ConfigError",
    "ErrorKind",
    "ErrorResponse",
    "classified_kinds",
]
