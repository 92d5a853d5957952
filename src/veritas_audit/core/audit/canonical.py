"""
Canonical line encoding for audit entries.

The hash chain is computed over the exact bytes of each serialized line, so
the encoding is pinned here rather than left to whatever a JSON library
happens to emit:

  - fields in ``ENTRY_FIELDS`` order: timestamp, action, actor, resource,
    details, integrity
  - ``resource`` / ``details`` omitted entirely when absent (never ``null``)
  - keys inside ``details`` sorted recursively
  - compact separators, no whitespace, non-ASCII kept as UTF-8
  - strict JSON only: NaN and Infinity are rejected, never written
  - the trailing newline is NOT part of the hashed bytes
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from typing import Any

from veritas_audit.core.audit.models import AuditEntry, AuditEvent


def sha256_hex(line: str | bytes) -> str:
    """SHA-256 of a serialized line (UTF-8, no terminator), lowercase hex."""
    if isinstance(line, str):
        line = line.encode("utf-8")
    return hashlib.sha256(line).hexdigest()


def split_lines(data: bytes) -> list[bytes]:
    """Non-blank lines of a log file, raw bytes, file order, terminators removed."""
    return [line for line in data.split(b"\n") if line.strip()]


def format_timestamp(when: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    when = when.astimezone(timezone.utc)
    return when.strftime("%Y-%m-%dT%H:%M:%S.") + f"{when.microsecond // 1000:03d}Z"


def _sorted_details(details: dict[str, Any]) -> dict[str, Any]:
    # A JSON round trip with sorted keys gives a plain, recursively ordered copy
    return json.loads(json.dumps(details, sort_keys=True, allow_nan=False))


def dumps_canonical(data: dict[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"), allow_nan=False)


def build_entry(event: AuditEvent, last_hash: str, now: datetime) -> AuditEntry:
    return AuditEntry(
        timestamp=format_timestamp(now),
        action=event.action,
        actor=event.actor,
        resource=event.resource,
        details=_sorted_details(event.details) if event.details is not None else None,
        integrity=last_hash,
    )


def build_line(event: AuditEvent, last_hash: str, now: datetime) -> tuple[AuditEntry, str]:
    """Build the entry for *event* and its canonical line."""
    entry = build_entry(event, last_hash, now)
    return entry, entry.to_line()
