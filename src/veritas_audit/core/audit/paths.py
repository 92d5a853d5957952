"""
Path resolver for monthly audit log files.

Layout::

    <data_dir>/audit/audit-2026-01.log
    <data_dir>/audit/audit-2026-02.log

The base directory and the month are recomputed on every call; nothing is
cached, so a month rollover or a ``VERITAS_DATA_DIR`` change applies to the
very next write.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path

from veritas_audit.core.config import resolve_data_dir
from veritas_audit.core.constants import AUDIT_FILE_PREFIX, AUDIT_FILE_SUFFIX, AUDIT_SUBDIR

_LOG_NAME_RE = re.compile(
    rf"^{re.escape(AUDIT_FILE_PREFIX)}(\d{{4}})-(\d{{2}}){re.escape(AUDIT_FILE_SUFFIX)}$"
)


def audit_dir(base_dir: Path) -> Path:
    return Path(base_dir) / AUDIT_SUBDIR


def log_filename(when: datetime) -> str:
    return f"{AUDIT_FILE_PREFIX}{when.year:04d}-{when.month:02d}{AUDIT_FILE_SUFFIX}"


def log_path_for(base_dir: Path, when: datetime) -> Path:
    return audit_dir(base_dir) / log_filename(when)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def current_log_path(base_dir: Path | None = None, now: datetime | None = None) -> Path:
    """
    Return the active log file for *now*, resolving the base dir at call time.

    The year and month are taken in UTC, the same clock as entry timestamps,
    so every entry lands in the file named after its own timestamp. Near a
    month boundary this can differ from the local wall-clock month.
    """
    base = Path(base_dir) if base_dir is not None else resolve_data_dir()
    when = now or utc_now()
    if when.tzinfo is not None:
        when = when.astimezone(timezone.utc)
    return log_path_for(base, when)


def month_key(path: Path) -> tuple[int, int] | None:
    """(year, month) for a monthly log file name, or None for anything else."""
    m = _LOG_NAME_RE.match(path.name)
    if m is None:
        return None
    return int(m.group(1)), int(m.group(2))


def list_log_files(base_dir: Path | None = None) -> list[Path]:
    """All monthly log files under *base_dir*, oldest first."""
    base = Path(base_dir) if base_dir is not None else resolve_data_dir()
    directory = audit_dir(base)
    if not directory.is_dir():
        return []
    found = []
    for p in directory.iterdir():
        key = month_key(p)
        if key is not None and p.is_file():
            found.append((key, p))
    return [p for _, p in sorted(found)]


def earlier_log_files(path: Path) -> list[Path]:
    """Monthly files older than *path* in the same directory, newest first."""
    key = month_key(path)
    if key is None or not path.parent.is_dir():
        return []
    older = []
    for p in path.parent.iterdir():
        k = month_key(p)
        if k is not None and k < key and p.is_file():
            older.append((k, p))
    return [p for _, p in sorted(older, reverse=True)]


def previous_log_file(path: Path) -> Path | None:
    """The nearest monthly file older than *path* in the same directory."""
    older = earlier_log_files(path)
    return older[0] if older else None
