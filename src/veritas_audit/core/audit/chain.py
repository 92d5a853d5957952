"""
Chain state — the hash of the last written line, seeded from disk.

A fresh ``ChainState`` (process start, or after :meth:`ChainState.reset`)
is UNSEEDED. The first :meth:`get_last_hash` reads the last non-blank line
of the active log file and hashes it; an absent or empty file seeds the
genesis value ``""``.

With ``chain_across_months`` enabled, an absent or empty current file falls
back to the tail of the most recent earlier monthly file, so the first entry
of a new month links to the last entry of the previous one.

Seeding from a last line that is not a JSON object raises
:class:`ChainSeedError`. The state stays UNSEEDED and every later attempt
fails the same way until the file is repaired.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import aiofiles

from veritas_audit.core.audit.canonical import sha256_hex
from veritas_audit.core.audit.models import ChainStatus
from veritas_audit.core.audit.paths import earlier_log_files
from veritas_audit.core.constants import GENESIS_HASH, TAIL_READ_BLOCK_BYTES
from veritas_audit.core.exceptions import ChainSeedError

logger = logging.getLogger(__name__)


async def read_last_line(path: Path) -> bytes | None:
    """
    Return the last non-blank line of *path* (raw bytes, no terminator).

    Reads backwards in blocks so seeding does not load a whole month of
    entries. Returns None when the file is absent or holds only blank lines.
    """
    try:
        async with aiofiles.open(path, "rb") as fh:
            await fh.seek(0, 2)
            pos = await fh.tell()
            buf = b""
            while True:
                parts = buf.split(b"\n")
                # parts[0] may be cut mid-line until the start of the file is reached
                complete = parts if pos == 0 else parts[1:]
                for line in reversed(complete):
                    if line.strip():
                        return line
                if pos == 0:
                    return None
                step = min(TAIL_READ_BLOCK_BYTES, pos)
                pos -= step
                await fh.seek(pos)
                buf = await fh.read(step) + buf
    except FileNotFoundError:
        return None


async def read_tail_hash(path: Path) -> str | None:
    """Hash of the last line of *path*, or None when it has no entries."""
    last = await read_last_line(path)
    if last is None:
        return None
    _require_entry(path, last)
    return sha256_hex(last)


def _require_entry(path: Path, line: bytes) -> None:
    try:
        data = json.loads(line)
    except ValueError as exc:
        raise ChainSeedError(path, f"last line is not valid JSON ({exc})") from exc
    if not isinstance(data, dict):
        raise ChainSeedError(path, "last line is not a JSON object")


class ChainState:
    """
    Last-hash cache for one writer.

    Lifecycle::

        chain = ChainState()
        h = await chain.get_last_hash(path)   # UNSEEDED -> READY
        ... write line ...
        chain.advance(line)
        chain.reset()                          # READY -> UNSEEDED (restart)

    Not safe for concurrent use on its own; the caller serializes access.
    """

    def __init__(self, chain_across_months: bool = True) -> None:
        self.chain_across_months = chain_across_months
        self._last_hash: str | None = None
        self._seeded_for: Path | None = None

    @property
    def status(self) -> ChainStatus:
        return ChainStatus.READY if self._last_hash is not None else ChainStatus.UNSEEDED

    @property
    def last_hash(self) -> str | None:
        """Cached hash, or None while UNSEEDED."""
        return self._last_hash

    @property
    def seeded_for(self) -> Path | None:
        return self._seeded_for

    async def get_last_hash(self, path: Path) -> str:
        """Return the hash the next entry written to *path* must carry."""
        if self._last_hash is not None and self._seeded_for == path:
            return self._last_hash
        self._last_hash = None
        self._last_hash = await self._seed(path)
        self._seeded_for = path
        return self._last_hash

    async def _seed(self, path: Path) -> str:
        try:
            tail = await read_tail_hash(path)
        except ChainSeedError:
            logger.error("Refusing to extend audit chain: unreadable tail in %s", path)
            raise
        if tail is not None:
            logger.debug("Audit chain seeded from %s", path)
            return tail
        if self.chain_across_months:
            for prev in earlier_log_files(path):
                try:
                    tail = await read_tail_hash(prev)
                except ChainSeedError:
                    logger.error("Refusing to extend audit chain: unreadable tail in %s", prev)
                    raise
                if tail is not None:
                    logger.debug("Audit chain for %s continues from %s", path, prev)
                    return tail
        logger.debug("Audit chain for %s starts at genesis", path)
        return GENESIS_HASH

    def advance(self, line: str | bytes) -> str:
        """Record *line* as the newest entry; only call after it is on disk."""
        self._last_hash = sha256_hex(line)
        return self._last_hash

    def reset(self) -> None:
        """Drop the cache. The next access reseeds from disk."""
        self._last_hash = None
        self._seeded_for = None
        logger.debug("Audit chain state reset")
