"""
Service bootstrap — settings, logging, listener, serve, drain.

``main()`` is the process entry point behind ``keel serve``::

    load_settings()  ──► configure_from_settings()  (exactly once)
          │
          ▼
    run(settings)
      ├── create_app(settings)      shared state, pipeline, routes
      ├── bind_listener(settings)   BindError on failure, never retried
      └── uvicorn serves on the socket until SIGINT/SIGTERM, then stops
          accepting, drains in-flight requests and returns

Configuration and bind failures are logged at error level and turn into
exit status 1; a signal-initiated shutdown returns 0.

Tags:
    keel, bootstrap, uvicorn, lifecycle, graceful-shutdown

Doc-Types:
    api-reference
"""

from __future__ import annotations

import contextlib
import signal
import socket
import threading
from collections.abc import Generator
from pathlib import Path
from typing import Any

import uvicorn

from keel.api.app import create_app
from keel.core.errors import BindError, BootstrapError, ConfigError
from keel.core.logging import configure_from_settings, configure_logging, get_logger
from keel.core.settings import Settings, load_settings

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class DrainingServer(uvicorn.Server):
    """uvicorn server that treats SIGINT/SIGTERM as a normal, graceful stop.

    The stock server re-raises the captured signal once it has shut down,
    which would turn every deploy into a non-zero exit.
    """

    @contextlib.contextmanager
    def capture_signals(self) -> Generator[None, None, None]:
        if threading.current_thread() is not threading.main_thread():
            yield
            return
        previous = {sig: signal.signal(sig, self.handle_exit) for sig in SHUTDOWN_SIGNALS}
        try:
            yield
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)


def bind_listener(settings: Settings) -> socket.socket:
    """Bind a TCP socket at ``settings.host:settings.port``.

    Raises:
        BindError: if the address cannot be bound (in use, not local,
            permission denied).
    """
    family = socket.AF_INET6 if settings.host.version == 6 else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((str(settings.host), settings.port))
        sock.listen()
    except OSError as exc:
        sock.close()
        raise BindError(settings.socket_address, exc) from exc
    return sock


def bound_address(sock: socket.socket) -> str:
    host, port = sock.getsockname()[:2]
    if sock.family == socket.AF_INET6:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def run(settings: Settings, *, log: Any = None) -> None:
    """Serve until a shutdown signal arrives.

    Raises:
        BindError: the listener could not be bound.
        BootstrapError: the server failed to start.
    """
    log = log or get_logger("keel")
    app = create_app(settings, log=log)
    sock = bind_listener(settings)

    config = uvicorn.Config(
        app,
        log_config=None,
        log_level=settings.log_level,
        access_log=False,
        lifespan="on",
    )
    server = DrainingServer(config)

    log.info("listening", address=bound_address(sock), env=settings.environment.value)
    try:
        server.run(sockets=[sock])
    finally:
        sock.close()

    if not server.started:
        raise BootstrapError("server failed to start")
    log.info("shutdown complete")


def main(env_file: str | Path | None = ".env") -> int:
    """Load settings, configure logging once, and run.  Returns the exit status."""
    try:
        settings = load_settings(env_file)
    except ConfigError as exc:
        configure_logging()
        get_logger("keel").error("invalid configuration", key=exc.key, error=str(exc))
        return 1

    configure_from_settings(settings)
    log = get_logger("keel")
    try:
        run(settings, log=log)
    except BootstrapError as exc:
        log.error("startup failed", error=str(exc))
        return 1
    return 0


__all__ = ["DrainingServer", "bind_listener", "main", "run"]
