"""
Structured logging for keel services.

``configure_logging()`` is process-lifecycle setup: the bootstrap entry
point calls it exactly once, after settings are loaded and before the
listener is bound.  Everything else obtains a logger with
``get_logger()`` and receives it as a parameter, so components never
reach for a hidden singleton.

Manifesto:
    Same log shape everywhere.  JSON in production for log aggregation,
    colored console output in development.  Request-scoped fields
    (request_id) are bound through contextvars and appear on every record
    emitted while the request is in flight.

Architecture:
    ::

        configure_logging(level, json_format, service)
            │
            ▼
        structlog processor chain              stdlib records (uvicorn)
          1. merge_contextvars (request_id)      foreign_pre_chain = 1-4
          2. TimeStamper(iso)                          │
          3. add_log_level / add_logger_name           │
          4. _add_service_metadata                     │
          5. StackInfoRenderer / set_exc_info          │
          6. wrap_for_formatter                        │
            │                                          │
            └──────────► root handler ◄────────────────┘
                         ProcessorFormatter
                           format_exc_info (json)
                           JSONRenderer | ConsoleRenderer

Examples:
    >>> from keel.core.logging import configure_logging, get_logger
    >>> configure_logging(level="info", json_format=True, service="keel")
    >>> log = get_logger("keel.api")
    >>> log.info("listening", address="127.0.0.1:3000")

Tags:
    logging, structlog, observability, json-logging, keel

Doc-Types:
    - API Reference
    - Observability Guide
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from keel.core.settings import LogFormat, Settings

_SERVICE_NAME = "keel"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service", _SERVICE_NAME)
    return event_dict


def configure_logging(
    level: str = "info",
    json_format: bool = False,
    service: str = "keel",
) -> None:
    """Configure structlog and stdlib logging for the process.

    structlog records and foreign stdlib records (uvicorn, asyncio) share
    one root handler whose ``ProcessorFormatter`` renders both, so a
    production stream is JSON line for line.

    Args:
        level: Log level name (debug, info, warning, error, critical).
        json_format: True for JSON lines, False for console output.
        service: Service name added to every record.
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service
    numeric_level = getattr(logging, level.upper())

    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_service_metadata,
    ]

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    tail: list[Processor]
    if json_format:
        tail = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        tail = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *tail],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(numeric_level)


def configure_from_settings(settings: Settings, service: str = "keel") -> None:
    """Apply :func:`configure_logging` with the level and format from *settings*."""
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_format is LogFormat.JSON,
        service=service,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger.

    Args:
        name: Logger name (usually ``__name__``).
    """
    return structlog.get_logger(name)


__all__ = [
    "configure_from_settings",
    "configure_logging",
    "get_logger",
]
