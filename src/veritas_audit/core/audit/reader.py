"""
Recent-entries reader.

Returns the newest entries first. When the active month holds fewer than
``limit`` entries, earlier monthly files are read as well, newest month first.

Readers do not take the writer lock. A read that races a month rollover may
see either side of it; no snapshot consistency is promised.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from veritas_audit.core.audit.canonical import split_lines
from veritas_audit.core.audit.models import AuditEntry
from veritas_audit.core.audit.paths import current_log_path, earlier_log_files
from veritas_audit.core.audit.verify import read_log_bytes
from veritas_audit.core.exceptions import AuditReadError

logger = logging.getLogger(__name__)


def _parse_newest_first(
    path: Path, lines: list[bytes], wanted: int, strict: bool
) -> list[AuditEntry]:
    out: list[AuditEntry] = []
    for index in range(len(lines) - 1, -1, -1):
        if len(out) >= wanted:
            break
        try:
            out.append(AuditEntry.from_line(lines[index].decode("utf-8")))
        except ValueError as exc:
            if strict:
                raise AuditReadError(path, index + 1, f"not an audit entry ({exc})") from exc
            logger.warning("Skipping unreadable audit line %s:%d", path, index + 1)
    return out


async def read_recent(
    base_dir: Path | None = None,
    limit: int = 100,
    now: datetime | None = None,
    strict: bool = True,
) -> list[AuditEntry]:
    """Return up to *limit* entries, newest first. Missing files read as empty."""
    if limit <= 0:
        return []

    current = current_log_path(base_dir, now)
    entries: list[AuditEntry] = []
    for path in [current, *earlier_log_files(current)]:
        data = await read_log_bytes(path)
        if not data:
            continue
        entries.extend(
            _parse_newest_first(path, split_lines(data), limit - len(entries), strict)
        )
        if len(entries) >= limit:
            break
    return entries
