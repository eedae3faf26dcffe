"""API schemas package.

Manifesto:
    Pydantic schemas define the API contract.  Centralising them here
    keeps route handlers decoupled from serialisation details.

Tags:
    keel, api, schemas, pydantic, contract

Doc-Types:
    api-reference
"""

from keel.api.schemas.ops import HealthResponse
from keel.core.errors import ErrorResponse

__all__ = [
    "ErrorResponse",
    "HealthResponse",
]
