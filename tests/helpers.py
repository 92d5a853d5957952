"""Test helpers: controllable clock and raw log file manipulation."""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


class FakeClock:
    """Callable clock the tests can move across month boundaries."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, year: int, month: int, day: int = 15, hour: int = 12) -> None:
        self.now = datetime(year, month, day, hour, 0, 0, tzinfo=timezone.utc)


def sha256(line: str) -> str:
    return hashlib.sha256(line.encode("utf-8")).hexdigest()


def read_lines(path: Path) -> list[str]:
    return [line for line in path.read_text(encoding="utf-8").split("\n") if line.strip()]


def write_lines(path: Path, lines: list[str]) -> None:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def tamper(path: Path, index: int, **changes: Any) -> None:
    """Rewrite entry *index* with *changes*, keeping every other line byte-identical."""
    lines = read_lines(path)
    entry = json.loads(lines[index])
    entry.update(changes)
    lines[index] = json.dumps(entry, separators=(",", ":"))
    write_lines(path, lines)
