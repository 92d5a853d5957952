"""Shared fixtures: isolated data dir, controllable clock, fresh process state."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest

from tests.helpers import FakeClock
from veritas_audit.core.audit import AuditLog, set_default_audit_log
from veritas_audit.core.constants import CONFIG_ENV, DATA_DIR_ENV


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    d = tmp_path / "data"
    monkeypatch.setenv(DATA_DIR_ENV, str(d))
    monkeypatch.delenv(CONFIG_ENV, raising=False)
    for name in ("VERITAS_LOG_LEVEL", "VERITAS_AUDIT_CHAIN_ACROSS_MONTHS", "VERITAS_AUDIT_FSYNC"):
        monkeypatch.delenv(name, raising=False)
    return d


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def audit_log(data_dir: Path) -> AuditLog:
    """AuditLog resolving its base dir from the environment on every call."""
    return AuditLog()


@pytest.fixture
def clocked_log(data_dir: Path, clock: FakeClock) -> AuditLog:
    return AuditLog(data_dir, clock=clock)


@pytest.fixture(autouse=True)
def _isolate_process_state():
    yield
    set_default_audit_log(None)
    pkg_logger = logging.getLogger("veritas_audit")
    for handler in list(pkg_logger.handlers):
        pkg_logger.removeHandler(handler)
    pkg_logger.setLevel(logging.NOTSET)
