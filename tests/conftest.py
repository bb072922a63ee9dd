"""Pytest configuration for test isolation.

The package reads its settings from ``LEDGER_VIEWS_*`` environment variables,
and the CLI also loads a ``.env`` from the current working directory. A
developer's shell or a stray ``.env`` would otherwise leak into tests (e.g. a
real API URL or a long poll interval), so every test starts from a clean
environment inside its own temporary working directory.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest

_ENV_VARS = (
    "LEDGER_VIEWS_API_URL",
    "LEDGER_VIEWS_API_TOKEN",
    "LEDGER_VIEWS_POLL_INTERVAL",
    "LEDGER_VIEWS_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    # load_dotenv writes os.environ directly, outside monkeypatch bookkeeping.
    for name in _ENV_VARS:
        os.environ.pop(name, None)
