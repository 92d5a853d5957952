"""Unit tests for AuditLog — append serializer, chain recovery, and public operations."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

import veritas_audit.core.audit.log as log_module
import veritas_audit.core.audit.writer as writer_module
from tests.helpers import FakeClock, read_lines, sha256, tamper
from veritas_audit.core.audit import (
    AuditEvent,
    AuditLog,
    ChainStatus,
    append_audit_entry,
    get_current_audit_log_path,
    read_recent_audit_entries,
    reset_chain_state,
    set_default_audit_log,
    verify_audit_log,
    verify_log_file,
)
from veritas_audit.core.config import AuditConfig, VeritasConfig
from veritas_audit.core.exceptions import (
    AuditWriteError,
    ChainSeedError,
    InvalidAuditEventError,
)

# ---------------------------------------------------------------------------
# Entry creation
# ---------------------------------------------------------------------------


class TestAppend:
    @pytest.mark.asyncio
    async def test_writes_one_valid_json_line(self, audit_log: AuditLog) -> None:
        await audit_log.append(
            action="auth.login",
            actor="admin",
            resource="session",
            details={"ip": "127.0.0.1"},
        )
        lines = read_lines(audit_log.current_path())
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["action"] == "auth.login"
        assert entry["actor"] == "admin"
        assert entry["resource"] == "session"
        assert entry["details"] == {"ip": "127.0.0.1"}
        assert entry["timestamp"]
        assert entry["integrity"] == ""

    @pytest.mark.asyncio
    async def test_returns_written_entry(self, audit_log: AuditLog) -> None:
        entry = await audit_log.append(action="test", actor="system")
        line = read_lines(audit_log.current_path())[0]
        assert json.loads(line) == entry.to_dict()

    @pytest.mark.asyncio
    async def test_timestamp_is_iso8601_utc(self, audit_log: AuditLog) -> None:
        entry = await audit_log.append(action="test", actor="system")
        assert entry.timestamp.endswith("Z")
        parsed = datetime.fromisoformat(entry.timestamp.replace("Z", "+00:00"))
        assert parsed.tzinfo is not None
        assert abs((datetime.now(timezone.utc) - parsed).total_seconds()) < 60

    @pytest.mark.asyncio
    async def test_optional_fields_omitted(self, audit_log: AuditLog) -> None:
        await audit_log.append(action="test", actor="system")
        raw = read_lines(audit_log.current_path())[0]
        entry = json.loads(raw)
        assert "resource" not in entry
        assert "details" not in entry
        assert list(entry) == ["timestamp", "action", "actor", "integrity"]

    @pytest.mark.asyncio
    async def test_accepts_event_model_and_mapping(self, audit_log: AuditLog) -> None:
        await audit_log.append(AuditEvent(action="a", actor="system"))
        await audit_log.append({"action": "b", "actor": "system"})
        actions = [json.loads(l)["action"] for l in read_lines(audit_log.current_path())]
        assert actions == ["a", "b"]

    @pytest.mark.asyncio
    async def test_invalid_event_rejected_without_touching_file(self, audit_log: AuditLog) -> None:
        with pytest.raises(InvalidAuditEventError):
            await audit_log.append(action="", actor="system")
        with pytest.raises(InvalidAuditEventError):
            await audit_log.append(action="x", actor="system", details={"bad": object()})
        with pytest.raises(InvalidAuditEventError):
            await audit_log.append(action="x", actor="system", unknown="field")
        assert not audit_log.current_path().exists()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "details",
        [
            {"v": float("nan")},
            {"v": float("inf")},
            {"nested": {"v": float("-inf")}},
            {"items": [1.0, float("nan")]},
        ],
    )
    async def test_non_json_numbers_rejected(self, audit_log: AuditLog, details: dict) -> None:
        with pytest.raises(InvalidAuditEventError, match="JSON"):
            await audit_log.append(action="a", actor="system", details=details)
        assert not audit_log.current_path().exists()

    @pytest.mark.asyncio
    async def test_creates_directories_lazily(self, audit_log: AuditLog, data_dir: Path) -> None:
        assert not data_dir.exists()
        await audit_log.append(action="a", actor="system")
        assert audit_log.current_path().is_file()


# ---------------------------------------------------------------------------
# Hash chain
# ---------------------------------------------------------------------------


class TestHashChain:
    @pytest.mark.asyncio
    async def test_entry_n_references_sha256_of_line_n_minus_1(self, audit_log: AuditLog) -> None:
        await audit_log.append(action="first", actor="system")
        await audit_log.append(action="second", actor="system")
        await audit_log.append(action="third", actor="system")

        lines = read_lines(audit_log.current_path())
        assert len(lines) == 3
        assert json.loads(lines[0])["integrity"] == ""
        assert json.loads(lines[1])["integrity"] == sha256(lines[0])
        assert json.loads(lines[2])["integrity"] == sha256(lines[1])

    @pytest.mark.asyncio
    async def test_sequential_appends_verify(self, audit_log: AuditLog) -> None:
        for i in range(7):
            await audit_log.append(action=f"step.{i}", actor="system")
        result = await verify_audit_log(audit_log.current_path())
        assert result.valid is True
        assert result.entries == 7
        assert result.first_broken is None

    @pytest.mark.asyncio
    async def test_status_transitions(self, audit_log: AuditLog) -> None:
        assert audit_log.status == ChainStatus.UNSEEDED
        await audit_log.append(action="a", actor="system")
        assert audit_log.status == ChainStatus.READY
        audit_log.reset()
        assert audit_log.status == ChainStatus.UNSEEDED


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class TestConcurrentWrites:
    @pytest.mark.asyncio
    async def test_fifty_concurrent_appends_form_one_chain(self, audit_log: AuditLog) -> None:
        count = 50
        await asyncio.gather(
            *(
                audit_log.append(action=f"concurrent.{i}", actor="system", resource=f"item-{i}")
                for i in range(count)
            )
        )
        lines = read_lines(audit_log.current_path())
        assert len(lines) == count

        result = await audit_log.verify()
        assert result.valid is True
        assert result.entries == count

    @pytest.mark.asyncio
    async def test_writes_land_in_submission_order(self, audit_log: AuditLog) -> None:
        await asyncio.gather(*(audit_log.append(action=f"n.{i}", actor="s") for i in range(20)))
        actions = [json.loads(l)["action"] for l in read_lines(audit_log.current_path())]
        assert actions == [f"n.{i}" for i in range(20)]

    @pytest.mark.asyncio
    async def test_no_two_entries_share_an_integrity(self, audit_log: AuditLog) -> None:
        entries = await asyncio.gather(
            *(audit_log.append(action="x", actor="s") for _ in range(25))
        )
        assert len({e.integrity for e in entries}) == 25


# ---------------------------------------------------------------------------
# Failure handling
# ---------------------------------------------------------------------------


class TestWriteFailure:
    @pytest.mark.asyncio
    async def test_io_failure_surfaces_and_does_not_advance_chain(
        self, audit_log: AuditLog, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        await audit_log.append(action="ok.1", actor="system")

        def disk_full(*args, **kwargs):
            raise OSError(28, "No space left on device")

        with monkeypatch.context() as m:
            m.setattr(writer_module, "aiofiles", SimpleNamespace(open=disk_full))
            with pytest.raises(AuditWriteError, match="No space left"):
                await audit_log.append(action="lost", actor="system")
        assert audit_log.status == ChainStatus.UNSEEDED

        entry = await audit_log.append(action="ok.2", actor="system")

        lines = read_lines(audit_log.current_path())
        assert [json.loads(l)["action"] for l in lines] == ["ok.1", "ok.2"]
        assert entry.integrity == sha256(lines[0])
        assert (await audit_log.verify()).valid is True

    @pytest.mark.asyncio
    async def test_failed_append_releases_serializer(
        self, audit_log: AuditLog, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        calls = {"n": 0}
        real_append_line = log_module.append_line

        async def flaky(path, line, fsync=False):
            calls["n"] += 1
            if calls["n"] == 1:
                raise AuditWriteError(path, "transient")
            await real_append_line(path, line, fsync=fsync)

        monkeypatch.setattr(log_module, "append_line", flaky)
        results = await asyncio.gather(
            audit_log.append(action="a", actor="s"),
            audit_log.append(action="b", actor="s"),
            return_exceptions=True,
        )
        assert isinstance(results[0], AuditWriteError)
        assert results[1].action == "b"
        assert results[1].integrity == ""
        assert (await audit_log.verify()).valid is True

    @pytest.mark.asyncio
    async def test_fsync_failure_after_line_landed(
        self, data_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        log = AuditLog(config=VeritasConfig(audit=AuditConfig(fsync=True)))
        await log.append(action="a0", actor="system")

        def eio(fd):
            raise OSError(5, "Input/output error")

        with monkeypatch.context() as m:
            m.setattr(writer_module, "os", SimpleNamespace(fsync=eio))
            with pytest.raises(AuditWriteError, match="Input/output error"):
                await log.append(action="a1", actor="system")

        entry = await log.append(action="a2", actor="system")

        lines = read_lines(log.current_path())
        assert [json.loads(l)["action"] for l in lines] == ["a0", "a1", "a2"]
        assert entry.integrity == sha256(lines[1])
        result = await log.verify()
        assert result.valid is True
        assert result.entries == 3

    @pytest.mark.asyncio
    async def test_torn_write_blocks_further_appends(
        self, audit_log: AuditLog, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        await audit_log.append(action="ok", actor="system")

        async def torn(path, line, fsync=False):
            with path.open("a", encoding="utf-8") as fh:
                fh.write(line[: len(line) // 2])
            raise AuditWriteError(path, "short write")

        with monkeypatch.context() as m:
            m.setattr(log_module, "append_line", torn)
            with pytest.raises(AuditWriteError):
                await audit_log.append(action="torn", actor="system")

        path = audit_log.current_path()
        before = path.read_bytes()
        with pytest.raises(ChainSeedError):
            await audit_log.append(action="after", actor="system")
        assert path.read_bytes() == before


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_after_admission_still_writes(
        self, audit_log: AuditLog, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        gate = asyncio.Event()
        real_append_line = log_module.append_line

        async def gated(path, line, fsync=False):
            await gate.wait()
            await real_append_line(path, line, fsync=fsync)

        monkeypatch.setattr(log_module, "append_line", gated)
        first = asyncio.create_task(audit_log.append(action="in-flight", actor="s"))
        await asyncio.sleep(0.05)
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        gate.set()
        await audit_log.append(action="after", actor="s")

        lines = read_lines(audit_log.current_path())
        assert [json.loads(l)["action"] for l in lines] == ["in-flight", "after"]
        assert json.loads(lines[1])["integrity"] == sha256(lines[0])

    @pytest.mark.asyncio
    async def test_cancel_while_queued_never_writes(
        self, audit_log: AuditLog, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        gate = asyncio.Event()
        real_append_line = log_module.append_line

        async def gated(path, line, fsync=False):
            await gate.wait()
            await real_append_line(path, line, fsync=fsync)

        monkeypatch.setattr(log_module, "append_line", gated)
        holder = asyncio.create_task(audit_log.append(action="holder", actor="s"))
        await asyncio.sleep(0.05)
        queued = asyncio.create_task(audit_log.append(action="queued", actor="s"))
        await asyncio.sleep(0.05)
        queued.cancel()
        gate.set()
        await holder
        with pytest.raises(asyncio.CancelledError):
            await queued

        lines = read_lines(audit_log.current_path())
        assert [json.loads(l)["action"] for l in lines] == ["holder"]


# ---------------------------------------------------------------------------
# Restart recovery
# ---------------------------------------------------------------------------


class TestRestartRecovery:
    @pytest.mark.asyncio
    async def test_chain_resumes_after_reset(self, audit_log: AuditLog) -> None:
        await audit_log.append(action="before-restart-1", actor="system")
        await audit_log.append(action="before-restart-2", actor="system")

        audit_log.reset()
        await audit_log.append(action="after-restart", actor="system")

        result = await audit_log.verify()
        assert result.valid is True
        assert result.entries == 3

    @pytest.mark.asyncio
    async def test_new_instance_seeds_from_disk(self, data_dir: Path) -> None:
        first = AuditLog()
        await first.append(action="a", actor="system")
        await first.append(action="b", actor="system")

        second = AuditLog()
        entry = await second.append(action="c", actor="system")
        lines = read_lines(second.current_path())
        assert entry.integrity == sha256(lines[1])

    @pytest.mark.asyncio
    async def test_unparsable_tail_blocks_writes(self, audit_log: AuditLog) -> None:
        await audit_log.append(action="a", actor="system")
        path = audit_log.current_path()
        with path.open("a", encoding="utf-8") as fh:
            fh.write("NOT VALID JSON\n")
        before = path.read_bytes()

        audit_log.reset()
        with pytest.raises(ChainSeedError):
            await audit_log.append(action="b", actor="system")
        # still refused on the next attempt, nothing written
        with pytest.raises(ChainSeedError):
            await audit_log.append(action="c", actor="system")
        assert audit_log.status == ChainStatus.UNSEEDED
        assert path.read_bytes() == before

    @pytest.mark.asyncio
    async def test_writes_resume_once_tail_repaired(self, audit_log: AuditLog) -> None:
        await audit_log.append(action="a", actor="system")
        path = audit_log.current_path()
        good = path.read_text(encoding="utf-8")
        path.write_text(good + "{broken\n", encoding="utf-8")

        audit_log.reset()
        with pytest.raises(ChainSeedError):
            await audit_log.append(action="b", actor="system")

        path.write_text(good, encoding="utf-8")
        await audit_log.append(action="b", actor="system")
        result = await audit_log.verify()
        assert result.valid is True
        assert result.entries == 2


# ---------------------------------------------------------------------------
# Verification through the log
# ---------------------------------------------------------------------------


class TestVerifyThroughLog:
    @pytest.mark.asyncio
    async def test_middle_tamper_detected_at_successor(self, audit_log: AuditLog) -> None:
        for action in ("a", "b", "c"):
            await audit_log.append(action=action, actor="system")
        tamper(audit_log.current_path(), 1, action="TAMPERED")

        result = await audit_log.verify()
        assert result.valid is False
        assert result.entries == 3
        assert result.first_broken == 2

    @pytest.mark.asyncio
    async def test_malformed_appended_line(self, audit_log: AuditLog) -> None:
        await audit_log.append(action="a", actor="system")
        with audit_log.current_path().open("a", encoding="utf-8") as fh:
            fh.write("NOT VALID JSON\n")

        result = await audit_log.verify()
        assert result.valid is False
        assert result.entries == 2
        assert result.first_broken == 1


# ---------------------------------------------------------------------------
# Module-level operations
# ---------------------------------------------------------------------------


class TestModuleOperations:
    @pytest.mark.asyncio
    async def test_default_instance_round_trip(self, data_dir: Path) -> None:
        await append_audit_entry(action="first", actor="system")
        await append_audit_entry({"action": "second", "actor": "system"})

        path = get_current_audit_log_path()
        assert str(path).startswith(str(data_dir))

        recent = await read_recent_audit_entries(10)
        assert [e.action for e in recent] == ["second", "first"]

        reset_chain_state()
        await append_audit_entry(action="third", actor="system")
        result = await verify_audit_log(path)
        assert result.valid is True
        assert result.entries == 3

    def test_current_path_contains_year_and_month(self, data_dir: Path) -> None:
        now = datetime.now(timezone.utc)
        path = get_current_audit_log_path()
        assert path.name == f"audit-{now.year}-{now.month:02d}.log"
        assert path.parent == data_dir / "audit"

    @pytest.mark.asyncio
    async def test_verify_continued_month_with_default_instance(
        self, data_dir: Path, clock: FakeClock
    ) -> None:
        set_default_audit_log(AuditLog(clock=clock))
        clock.set(2025, 12)
        await append_audit_entry(action="dec", actor="system")
        clock.set(2026, 1)
        await append_audit_entry(action="jan", actor="system")

        path = get_current_audit_log_path()
        result = await verify_audit_log(path)
        assert result.valid is True
        assert result.entries == 1
        assert (await verify_audit_log()).valid is True

        # checked as the start of its own chain, line 0 carries the December hash
        standalone = await verify_log_file(path)
        assert standalone.first_broken == 0
