"""
Verifier — recompute the hash chain of a log file offline.

Detection semantics:
  - Line 0 must carry the anchor (``""`` for the first file of a chain).
  - Line i > 0 must carry ``sha256(raw bytes of line i-1)``.
  - Editing the content of entry k in place (without touching its own
    ``integrity``) surfaces at index k + 1, where the successor's stored
    hash no longer matches.
  - Editing the LAST entry of a file is not detectable from that file
    alone: nothing after it references its bytes. When months are chained,
    :func:`verify_chain` catches it through the next month's first entry;
    the newest entry of the newest file stays unprotected. This is inherent
    to a backward-only chain.

Unparsable lines do not stop the scan, so ``entries`` is always the total
number of non-blank lines.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import aiofiles

from veritas_audit.core.audit.canonical import sha256_hex, split_lines
from veritas_audit.core.audit.chain import read_tail_hash
from veritas_audit.core.audit.models import ChainReport, VerifyResult
from veritas_audit.core.audit.paths import earlier_log_files, list_log_files
from veritas_audit.core.constants import GENESIS_HASH
from veritas_audit.core.exceptions import ChainSeedError

logger = logging.getLogger(__name__)

# Anchor used when the predecessor file has a corrupt tail: never matches a
# stored integrity, so line 0 of the successor is reported broken.
UNVERIFIABLE_ANCHOR = "unverifiable"


def verify_lines(lines: list[bytes], anchor: str = GENESIS_HASH) -> tuple[int, int | None]:
    """Return ``(entries, first_broken)`` for raw log lines in file order."""
    first_broken: int | None = None
    expected = anchor
    for i, raw in enumerate(lines):
        try:
            entry = json.loads(raw)
        except ValueError:
            entry = None
        if not isinstance(entry, dict) or entry.get("integrity") != expected:
            if first_broken is None:
                first_broken = i
        expected = sha256_hex(raw)
    return len(lines), first_broken


async def read_log_bytes(path: Path) -> bytes | None:
    """Whole file contents, or None if it does not exist."""
    try:
        async with aiofiles.open(path, "rb") as fh:
            return await fh.read()
    except FileNotFoundError:
        return None


async def verify_log_file(path: Path | str, anchor: str = GENESIS_HASH) -> VerifyResult:
    """
    Verify one log file, checking line 0 against *anchor*.

    The default anchor treats *path* as the start of its own chain. For a
    month that continues an earlier one, pass :func:`anchor_for` or use
    :meth:`AuditLog.verify`. A missing or empty file is valid with zero entries. Other I/O errors
    propagate to the caller.
    """
    path = Path(path)
    data = await read_log_bytes(path)
    if data is None:
        return VerifyResult(valid=True, entries=0, path=path)

    entries, first_broken = verify_lines(split_lines(data), anchor=anchor)
    if first_broken is not None:
        logger.warning("Audit chain broken in %s at entry %d of %d", path, first_broken, entries)
    return VerifyResult(
        valid=first_broken is None, entries=entries, first_broken=first_broken, path=path
    )


async def anchor_for(path: Path) -> str:
    """
    Expected integrity of the first entry of *path* when months are chained:
    the hash of the last line of the nearest earlier non-empty monthly file.
    """
    for prev in earlier_log_files(path):
        try:
            tail = await read_tail_hash(prev)
        except ChainSeedError:
            return UNVERIFIABLE_ANCHOR
        if tail is not None:
            return tail
    return GENESIS_HASH


async def verify_chain(base_dir: Path, chain_across_months: bool = True) -> ChainReport:
    """Verify every monthly file under *base_dir*, oldest first."""
    report = ChainReport()
    anchor = GENESIS_HASH
    for path in list_log_files(base_dir):
        data = await read_log_bytes(path)
        lines = split_lines(data) if data else []
        if not chain_across_months:
            anchor = GENESIS_HASH
        entries, first_broken = verify_lines(lines, anchor=anchor)
        if first_broken is not None:
            logger.warning(
                "Audit chain broken in %s at entry %d of %d", path, first_broken, entries
            )
        report.files.append(
            VerifyResult(
                valid=first_broken is None,
                entries=entries,
                first_broken=first_broken,
                path=path,
            )
        )
        if lines:
            anchor = sha256_hex(lines[-1])
    return report
