"""
keel - HTTP service skeleton.

Validated settings, a fixed request pipeline, a closed error taxonomy
and OpenAPI documentation generated from the registered routes.

Quick start::

    from keel.api import create_app
    from keel.core.settings import load_settings

    app = create_app(load_settings())
"""

__version__ = "0.1.0"
