"""keel core -- framework-agnostic primitives.

Manifesto:
    Nothing in ``keel.core`` knows about HTTP routing.  Settings, the
    error taxonomy, logging setup and token buckets are plain Python and
    can be tested without an ASGI app.

Architecture::

    settings.py     Settings, CorsPolicy, RateLimitPolicy, load_settings()
    errors.py       BootstrapError family + AppError taxonomy, ErrorResponse
    logging.py      configure_logging() / get_logger() (structlog)
    rate_limit.py   TokenBucketLimiter, KeyedRateLimiter
"""

from keel.core.errors import (
    AppError,
    BindError,
    BootstrapError,
    ConfigError,
    ErrorKind,
    ErrorResponse,
)
from keel.core.settings import (
    AppEnv,
    CorsMode,
    CorsPolicy,
    LogFormat,
    RateLimitPolicy,
    Settings,
    load_settings,
)

__all__ = [
    "AppEnv",
    "AppError",
    "BindError",
    "BootstrapError",
    "ConfigError",
    "CorsMode",
    "CorsPolicy",
    "ErrorKind",
    "ErrorResponse",
    "LogFormat",
    "RateLimitPolicy",
    "Settings",
    "load_settings",
]
