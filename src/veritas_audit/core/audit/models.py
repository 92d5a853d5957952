"""Audit log data model: request, persisted entry, and verification result."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from veritas_audit.core.constants import ENTRY_FIELDS


class ChainStatus(str, Enum):
    UNSEEDED = "unseeded"
    READY = "ready"


class AuditEvent(BaseModel):
    """What a caller asks to be recorded. Timestamp and integrity are added on write."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    action: str = Field(min_length=1)  # e.g. "auth.login", "settings.update"
    actor: str = Field(min_length=1)  # user id, api key hash, or "system"
    resource: str | None = None
    details: dict[str, Any] | None = None

    @field_validator("details")
    @classmethod
    def details_must_be_json(cls, v: dict[str, Any] | None) -> dict[str, Any] | None:
        if v is None:
            return v
        try:
            json.dumps(v, allow_nan=False)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"details must be JSON-serializable: {exc}") from exc
        return v


@dataclass(frozen=True)
class AuditEntry:
    """One persisted line of the audit log. Never mutated once written."""

    timestamp: str
    action: str
    actor: str
    integrity: str
    resource: str | None = None
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Fields in wire order; absent optionals are omitted, not null."""
        out: dict[str, Any] = {}
        for name in ENTRY_FIELDS:
            value = getattr(self, name)
            if value is None:
                continue
            out[name] = value
        return out

    def to_line(self) -> str:
        """Canonical serialized form, the exact bytes the next entry hashes."""
        from veritas_audit.core.audit.canonical import dumps_canonical

        return dumps_canonical(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditEntry:
        return cls(
            timestamp=str(data.get("timestamp", "")),
            action=str(data.get("action", "")),
            actor=str(data.get("actor", "")),
            integrity=str(data.get("integrity", "")),
            resource=data.get("resource"),
            details=data.get("details"),
        )

    @classmethod
    def from_line(cls, line: str) -> AuditEntry:
        data = json.loads(line)
        if not isinstance(data, dict):
            raise ValueError("audit line is not a JSON object")
        return cls.from_dict(data)


@dataclass
class VerifyResult:
    """Outcome of verifying one log file."""

    valid: bool
    entries: int
    first_broken: int | None = None
    path: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"valid": self.valid, "entries": self.entries}
        if self.first_broken is not None:
            out["firstBroken"] = self.first_broken
        if self.path is not None:
            out["path"] = str(self.path)
        return out


@dataclass
class ChainReport:
    """Outcome of verifying every monthly file as one continuous chain."""

    files: list[VerifyResult] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return all(r.valid for r in self.files)

    @property
    def entries(self) -> int:
        return sum(r.entries for r in self.files)

    @property
    def first_broken_file(self) -> VerifyResult | None:
        for r in self.files:
            if not r.valid:
                return r
        return None

    def to_dict(self) -> dict[str, Any]:
        broken = self.first_broken_file
        return {
            "valid": self.valid,
            "entries": self.entries,
            "firstBrokenFile": str(broken.path) if broken is not None else None,
            "files": [r.to_dict() for r in self.files],
        }
