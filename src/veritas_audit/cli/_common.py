"""Shared CLI state: effective config and the AuditLog built from it."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Coroutine
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

from rich.console import Console

from veritas_audit.core.audit import AuditLog
from veritas_audit.core.config import VeritasConfig, config_file_path, load_config_or_default
from veritas_audit.core.constants import ExitCode
from veritas_audit.core.exceptions import ConfigError

T = TypeVar("T")


@dataclass
class CliState:
    base_dir: Path | None = None  # --data-dir, pinned for this invocation
    config: VeritasConfig = field(default_factory=VeritasConfig)
    _log: AuditLog | None = field(default=None, init=False, repr=False)

    def audit_log(self) -> AuditLog:
        if self._log is None:
            self._log = AuditLog(base_dir=self.base_dir, config=self.config)
        return self._log

    def config_path(self) -> Path:
        return config_file_path(self.base_dir)


def load_cli_config(err_console: Console, base_dir: Path | None = None) -> VeritasConfig:
    """Load the effective config, exiting with CONFIG_ERROR if it is invalid."""
    try:
        return load_config_or_default(config_file_path(base_dir))
    except ConfigError as exc:
        err_console.print(f"[red]Config error:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)


def run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)
