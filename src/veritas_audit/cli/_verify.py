"""veritas-audit verify — recompute the hash chain offline."""

from __future__ import annotations

import json
import sys
from pathlib import Path

from rich.console import Console

from veritas_audit.cli._common import CliState, run
from veritas_audit.core.audit import ChainReport, VerifyResult, verify_log_file
from veritas_audit.core.constants import ExitCode


def _print_result(result: VerifyResult, console: Console) -> None:
    icon = "[green]PASS[/green]" if result.valid else "[red]FAIL[/red]"
    detail = f"{result.entries} entries"
    if result.first_broken is not None:
        detail += f", first broken at index {result.first_broken}"
    console.print(f"  {icon}  {result.path}: {detail}")


def cmd_verify(
    state: CliState,
    path: str | None,
    verify_all: bool,
    standalone: bool,
    as_json: bool,
    console: Console,
) -> None:
    log = state.audit_log()

    if verify_all:
        report: ChainReport = run(log.verify_all())
        if as_json:
            print(json.dumps(report.to_dict(), indent=2))
        else:
            console.print("[bold]Audit chain (all months)[/bold]\n")
            if not report.files:
                console.print("  No audit log files found.")
            for result in report.files:
                _print_result(result, console)
            console.print()
            if report.valid:
                console.print(f"[green]Chain intact[/green] ({report.entries} entries).")
            else:
                console.print("[red]Chain broken.[/red]")
        if not report.valid:
            sys.exit(ExitCode.INTEGRITY_FAILURE)
        return

    if standalone:
        target = Path(path) if path else log.current_path()
        result = run(verify_log_file(target))
    else:
        result = run(log.verify(path))

    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        console.print("[bold]Audit chain[/bold]\n")
        _print_result(result, console)
        if result.valid and result.entries:
            console.print(
                "\n[dim]Note: edits to the newest entry are not detectable until "
                "another entry follows it.[/dim]"
            )
    if not result.valid:
        sys.exit(ExitCode.INTEGRITY_FAILURE)
