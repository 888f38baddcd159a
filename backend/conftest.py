"""Root conftest: test environment, structlog routing and per-test isolation."""

import os
from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv

from shared.logging import configure_structlog

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

# Same processor chain as production, minus handlers, so caplog sees every event.
configure_structlog()

_SETTINGS_ENV_PREFIX = "BATTLE_"


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch):
    """Keep a developer's BATTLE_* variables out of settings defaults."""
    for name in list(os.environ):
        if name.startswith(_SETTINGS_ENV_PREFIX):
            monkeypatch.delenv(name)


@pytest.fixture(autouse=True)
def _clear_log_context():
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
