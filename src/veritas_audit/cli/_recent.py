"""veritas-audit recent — newest entries first."""

from __future__ import annotations

import json
import sys

from rich.console import Console
from rich.table import Table

from veritas_audit.cli._common import CliState, run
from veritas_audit.core.constants import MAX_RECENT_LIMIT, ExitCode
from veritas_audit.core.exceptions import AuditReadError


def cmd_recent(
    state: CliState, limit: int | None, strict: bool, as_json: bool, console: Console
) -> None:
    log = state.audit_log()
    if limit is not None:
        limit = max(1, min(limit, MAX_RECENT_LIMIT))

    try:
        entries = run(log.read_recent(limit, strict=strict))
    except AuditReadError as exc:
        console.print(f"[red]Unreadable audit line:[/red] {exc}")
        console.print("Re-run with [cyan]--skip-invalid[/cyan] to skip it.")
        sys.exit(ExitCode.ERROR)

    if as_json:
        rows = [e.to_dict() for e in entries]
        print(json.dumps({"entries": rows, "count": len(rows)}, indent=2, ensure_ascii=False))
        return

    if not entries:
        console.print("No audit entries yet.")
        return

    table = Table(title=f"Recent audit entries ({len(entries)})")
    table.add_column("Timestamp", style="dim", no_wrap=True)
    table.add_column("Action", style="cyan")
    table.add_column("Actor")
    table.add_column("Resource")
    table.add_column("Details", overflow="fold")
    for e in entries:
        table.add_row(
            e.timestamp,
            e.action,
            e.actor,
            e.resource or "—",
            json.dumps(e.details, ensure_ascii=False) if e.details else "",
        )
    console.print(table)
