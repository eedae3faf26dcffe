"""
Ops router — operational endpoints for load balancers and orchestrators.

Endpoints:
    GET /health    Liveness probe with the deployment environment

Tags:
    keel, api, ops, health, liveness

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from keel.api.deps import State
from keel.api.registry import RouteRegistry, RouteSpec
from keel.api.schemas.ops import HealthResponse

TAG = "ops"
TAG_DESCRIPTION = "Operational endpoints"


async def get_health(state: State) -> HealthResponse:
    """Report that the service is up and which environment it runs in."""
    return HealthResponse(ok=True, env=state.settings.environment)


def register(registry: RouteRegistry) -> None:
    registry.register(
        RouteSpec(
            method="GET",
            path="/health",
            endpoint=get_health,
            summary="Health check",
            tags=(TAG,),
            response_model=HealthResponse,
            name="health",
        )
    )
