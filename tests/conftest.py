"""
Shared pytest fixtures for keel tests.

This module provides:
- structlog and stdlib logging isolation between tests
- a clean process environment (no stray HTTP_* / APP_* / LOG_* variables)
- default settings and a ``TestClient`` over a freshly built app
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog
from fastapi.testclient import TestClient

from keel.api.app import create_app
from keel.core.settings import Settings

ENV_KEYS = (
    "HTTP_HOST",
    "HTTP_PORT",
    "APP_ENV",
    "LOG_FORMAT",
    "LOG_LEVEL",
    "APP_CORS_ORIGINS",
    "APP_RATELIMIT_RPS",
    "APP_RATELIMIT_BURST",
    "APP_RATELIMIT_TRUST_PROXY",
)


@pytest.fixture(autouse=True)
def _isolate_logging() -> Generator[None, None, None]:
    """Undo any structlog / stdlib logging configuration a test applied."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> pytest.MonkeyPatch:
    """Remove every keel variable and run from an empty directory (no ``.env``)."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def client(settings: Settings) -> Generator[TestClient, None, None]:
    with TestClient(create_app(settings)) as test_client:
        yield test_client
