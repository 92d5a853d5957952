"""Log writer — append one canonical line to a monthly file."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import aiofiles

from veritas_audit.core.exceptions import AuditWriteError


async def append_line(path: Path, line: str, fsync: bool = False) -> None:
    """
    Append ``line + "\\n"`` to *path*, creating parent directories and the
    file as needed.

    The line is written with a single write call on an O_APPEND handle.
    Raises :class:`AuditWriteError` on any I/O failure.
    """
    if "\n" in line:
        raise AuditWriteError(path, "line contains a newline")
    try:
        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
        async with aiofiles.open(path, "a", encoding="utf-8", newline="\n") as fh:
            await fh.write(line + "\n")
            await fh.flush()
            if fsync:
                await asyncio.to_thread(os.fsync, fh.fileno())
    except OSError as exc:
        raise AuditWriteError(path, str(exc)) from exc
