"""Pytest configuration for test isolation.

Puts ``packages/`` and ``libs/db/src`` on ``sys.path`` so the source tree is
importable without installation, gives every test its own SQLite workspace
database, and undoes the package logger setup performed by CLI invocations
(``CliRunner`` swaps ``sys.stderr`` per call, so a handler bound to a previous
stream must not outlive the test that created it).
"""

# ruff: noqa: E402, I001
from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
for _p in (_ROOT / "packages", _ROOT / "libs" / "db" / "src", _ROOT):
    if str(_p) not in sys.path:
        sys.path.insert(0, str(_p))

from db.client import dispose_engines
from transaction_classifier import logging_setup


@pytest.fixture(autouse=True)
def database_url(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[str]:
    """Point ``DATABASE_URL`` at a per-test SQLite file and run from ``tmp_path``.

    Changing directory also keeps a developer's ``.env`` from leaking in
    through the CLI's dotenv loading.
    """

    url = f"sqlite+pysqlite:///{os.fspath(tmp_path / 'workspace.db')}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.delenv(logging_setup.LOG_LEVEL_ENV, raising=False)
    monkeypatch.delenv("TXN_CLASSIFIER_RULE_TIME_LIMIT", raising=False)
    monkeypatch.chdir(tmp_path)
    yield url
    dispose_engines()


@pytest.fixture(autouse=True)
def _reset_package_logging() -> Iterator[None]:
    yield
    logger = logging.getLogger(logging_setup.PKG_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    logging_setup._handler = None
