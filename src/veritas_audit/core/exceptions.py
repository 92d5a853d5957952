"""Veritas Audit exception hierarchy."""

from __future__ import annotations

from pathlib import Path


class VeritasError(Exception):
    """Base exception for all Veritas Audit errors."""


class ConfigError(VeritasError):
    """Raised when the configuration is invalid or cannot be read."""


class ConfigNotFoundError(ConfigError):
    """Raised when the configuration file does not exist."""


class AuditError(VeritasError):
    """Base exception for audit log failures."""


class InvalidAuditEventError(AuditError, ValueError):
    """Raised when an append request is rejected before touching the chain."""


class AuditWriteError(AuditError):
    """Raised when an entry cannot be written. The chain is not advanced."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"Cannot write audit entry to {path}: {message}")
        self.path = path


class ChainSeedError(AuditError):
    """
    Raised when the chain cannot be seeded from the tail of a log file.

    Fatal for the writer: appends keep failing until the file is repaired,
    instead of silently starting a fresh chain on top of a corrupt one.
    """

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"Cannot seed audit chain from {path}: {message}")
        self.path = path


class AuditReadError(AuditError):
    """Raised when a log line cannot be read back as an audit entry."""

    def __init__(self, path: Path, line_number: int, message: str) -> None:
        super().__init__(f"{path}:{line_number}: {message}")
        self.path = path
        self.line_number = line_number
