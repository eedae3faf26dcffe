"""
HTTP layer for keel.

Provides a FastAPI application factory that wires the request pipeline,
the error taxonomy and the route registry.  This package handles only
HTTP transport concerns: redaction, correlation, tracing, CORS,
admission control and error mapping.

Quick start::

    from keel.api import create_app

    app = create_app()  # ready for uvicorn

Tags:
    keel, api, REST, FastAPI, transport-layer

Doc-Types:
    api-reference
"""

from keel.api.app import create_app

__all__ = ["create_app"]
