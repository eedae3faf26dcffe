"""API middleware package.

Manifesto:
    Cross-cutting concerns (redaction, request ids, tracing, CORS,
    rate-limiting, error mapping) belong in the pipeline so route
    handlers stay focused on their one job.

Tags:
    keel, api, middleware, cross-cutting, pipeline

Doc-Types:
    api-reference
"""

from keel.api.middleware.pipeline import (
    CallNext,
    Pipeline,
    PipelineMiddleware,
    Stage,
    build_pipeline,
)

__all__ = [
    "CallNext",
    "Pipeline",
    "PipelineMiddleware",
    "Stage",
    "build_pipeline",
]
