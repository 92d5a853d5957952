"""
AuditLog — the append serializer and public facade of the audit subsystem.

Every append runs the sequence

    read last hash -> build entry -> write line -> advance last hash

as one critical section. Sections are admitted in FIFO order by an
``asyncio.Lock`` and the lock stays held across the awaited file I/O, so no
two concurrent appends can chain from the same last hash.

Once admitted, an append is not cancellable: the section runs as its own
task that releases the lock when it finishes. A caller that is cancelled
while awaiting it stops waiting, but the write still completes and still
advances the chain. A caller cancelled while still queued never writes.

One ``AuditLog`` serves one process. Multi-process writers to the same
directory are not supported.

Usage::

    log = AuditLog(base_dir=Path("/var/lib/veritas"))
    entry = await log.append(action="auth.login", actor="admin", resource="session")
    result = await log.verify()
    recent = await log.read_recent(20)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from veritas_audit.core.audit.canonical import build_line
from veritas_audit.core.audit.chain import ChainState
from veritas_audit.core.audit.models import (
    AuditEntry,
    AuditEvent,
    ChainReport,
    ChainStatus,
    VerifyResult,
)
from veritas_audit.core.audit.paths import current_log_path, utc_now
from veritas_audit.core.audit.reader import read_recent
from veritas_audit.core.audit.verify import anchor_for, verify_chain, verify_log_file
from veritas_audit.core.audit.writer import append_line
from veritas_audit.core.config import AuditConfig, VeritasConfig, resolve_data_dir
from veritas_audit.core.constants import GENESIS_HASH
from veritas_audit.core.exceptions import InvalidAuditEventError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def coerce_event(event: AuditEvent | Mapping[str, Any] | None = None, **fields: Any) -> AuditEvent:
    """Accept an AuditEvent, a mapping, or keyword fields."""
    if isinstance(event, AuditEvent):
        if fields:
            raise InvalidAuditEventError("Pass either an AuditEvent or keyword fields, not both")
        return event
    data: dict[str, Any] = dict(event or {})
    data.update(fields)
    try:
        return AuditEvent.model_validate(data)
    except ValidationError as exc:
        raise InvalidAuditEventError(f"Invalid audit event: {exc}") from exc


class AuditLog:
    """Hash-chained, append-only audit log rooted at a base directory."""

    def __init__(
        self,
        base_dir: Path | str | None = None,
        *,
        config: VeritasConfig | None = None,
        chain: ChainState | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._base_dir = Path(base_dir) if base_dir is not None else None
        self._config = config
        audit_cfg = config.audit if config is not None else AuditConfig()
        self._fsync = audit_cfg.fsync
        self.recent_limit = audit_cfg.recent_limit
        self.chain = chain or ChainState(chain_across_months=audit_cfg.chain_across_months)
        self._clock: Clock = clock or utc_now
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def base_dir(self) -> Path:
        """Base directory, re-resolved on every access unless pinned."""
        if self._base_dir is not None:
            return self._base_dir
        return resolve_data_dir(self._config)

    def current_path(self) -> Path:
        """Active log file for the current month."""
        return current_log_path(self.base_dir, self._clock())

    @property
    def status(self) -> ChainStatus:
        return self.chain.status

    # ------------------------------------------------------------------
    # Append serializer
    # ------------------------------------------------------------------

    def _get_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def append(
        self, event: AuditEvent | Mapping[str, Any] | None = None, **fields: Any
    ) -> AuditEntry:
        """
        Append one entry and return it with ``timestamp`` and ``integrity`` filled in.

        Raises :class:`InvalidAuditEventError` for bad input (nothing is
        queued), :class:`ChainSeedError` when the chain cannot be seeded, and
        :class:`AuditWriteError` on I/O failure. A failed append drops the
        cached hash, so the next one reseeds from whatever reached the file:
        a complete line is chained from, a torn one raises ChainSeedError.
        """
        audit_event = coerce_event(event, **fields)
        lock = self._get_lock()
        await lock.acquire()
        try:
            task = asyncio.ensure_future(self._append_locked(lock, audit_event))
        except BaseException:
            lock.release()
            raise
        task.add_done_callback(self._retrieve_exception)
        return await asyncio.shield(task)

    async def _append_locked(self, lock: asyncio.Lock, event: AuditEvent) -> AuditEntry:
        try:
            now = self._clock()
            path = current_log_path(self.base_dir, now)
            last_hash = await self.chain.get_last_hash(path)
            entry, line = build_line(event, last_hash, now)
            await append_line(path, line, fsync=self._fsync)
            self.chain.advance(line)
            return entry
        except Exception:
            logger.error("Audit append failed (action=%s actor=%s)", event.action, event.actor)
            # the line may be on disk in full or in part; reseed from the file
            self.chain.reset()
            raise
        finally:
            lock.release()

    @staticmethod
    def _retrieve_exception(task: asyncio.Future[AuditEntry]) -> None:
        # Already logged in _append_locked; keeps an abandoned failure quiet
        if not task.cancelled():
            task.exception()

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    async def verify(self, path: Path | str | None = None) -> VerifyResult:
        """
        Verify one monthly file (the current one by default).

        When months are chained, line 0 is checked against the tail of the
        previous monthly file instead of the genesis value.
        """
        target = Path(path) if path is not None else self.current_path()
        anchor = GENESIS_HASH
        if self.chain.chain_across_months:
            anchor = await anchor_for(target)
        return await verify_log_file(target, anchor=anchor)

    async def verify_all(self) -> ChainReport:
        """Verify every monthly file as one chain, oldest first."""
        return await verify_chain(
            self.base_dir, chain_across_months=self.chain.chain_across_months
        )

    async def read_recent(self, limit: int | None = None, strict: bool = True) -> list[AuditEntry]:
        """Newest entries first, reaching into earlier months if needed."""
        return await read_recent(
            self.base_dir,
            limit=self.recent_limit if limit is None else limit,
            now=self._clock(),
            strict=strict,
        )

    def reset(self) -> None:
        """Forget the cached chain head, as after a process restart."""
        self.chain.reset()


# ---------------------------------------------------------------------------
# Process-wide default instance
# ---------------------------------------------------------------------------

_default: AuditLog | None = None


def get_default_audit_log() -> AuditLog:
    """The process-wide AuditLog, resolving its base directory at call time."""
    global _default
    if _default is None:
        _default = AuditLog()
    return _default


def set_default_audit_log(log: AuditLog | None) -> None:
    global _default
    _default = log


async def append_audit_entry(
    event: AuditEvent | Mapping[str, Any] | None = None, **fields: Any
) -> AuditEntry:
    return await get_default_audit_log().append(event, **fields)


async def verify_audit_log(path: Path | str | None = None) -> VerifyResult:
    """Verify *path* (default: the current month) with the default instance's month chaining."""
    return await get_default_audit_log().verify(path)


async def read_recent_audit_entries(limit: int | None = None) -> list[AuditEntry]:
    return await get_default_audit_log().read_recent(limit)


def get_current_audit_log_path() -> Path:
    return get_default_audit_log().current_path()


def reset_chain_state() -> None:
    """Reset the default instance's chain cache. Testing / restart simulation hook."""
    get_default_audit_log().reset()
