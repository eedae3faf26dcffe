"""Schemas for the operational endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from keel.core.settings import AppEnv


class HealthResponse(BaseModel):
    """Liveness probe body."""

    ok: bool = Field(description="Always true while the process is serving requests")
    env: AppEnv = Field(description="Deployment environment: 'development' | 'production'")
