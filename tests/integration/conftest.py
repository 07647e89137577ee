"""Shared fixtures for live integration tests.

The run context is module-scoped: configuration is loaded once, and the
IDs of entities created by early tests are handed to later ones through it.
A missing or incomplete credentials file closes the skip gate, and every
test then skips with the reason instead of failing.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from metrics_router.harness import RunContext

CONFIG_FILE_ENV = "METRICS_ROUTER_CONFIG"
DEFAULT_CONFIG_FILE = Path(__file__).resolve().parents[2] / "metrics_router_v3.env"


def config_path() -> Path:
    """Return the credentials file to use for this run."""
    explicit = os.environ.get(CONFIG_FILE_ENV, "")
    return Path(explicit) if explicit else DEFAULT_CONFIG_FILE


@pytest.fixture(scope="module")
def run_context() -> RunContext:
    """Configuration, client and linked IDs shared by one module's tests."""
    return RunContext.prepare(config_path())
