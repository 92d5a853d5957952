"""veritas-audit append — write one entry to the current month."""

from __future__ import annotations

import json
import sys
from typing import Any

from rich.console import Console

from veritas_audit.cli._common import CliState, run
from veritas_audit.core.constants import ExitCode
from veritas_audit.core.exceptions import AuditError, ChainSeedError, InvalidAuditEventError


def parse_details(pairs: tuple[str, ...], details_json: str) -> dict[str, Any] | None:
    """Merge ``--details-json`` with repeated ``--detail KEY=VALUE`` (pairs win)."""
    details: dict[str, Any] = {}
    if details_json:
        try:
            loaded = json.loads(details_json)
        except ValueError as exc:
            raise InvalidAuditEventError(f"--details-json is not valid JSON: {exc}") from exc
        if not isinstance(loaded, dict):
            raise InvalidAuditEventError("--details-json must be a JSON object")
        details.update(loaded)
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise InvalidAuditEventError(f"--detail expects KEY=VALUE, got {pair!r}")
        details[key] = value
    return details or None


def cmd_append(
    state: CliState,
    action: str,
    actor: str,
    resource: str | None,
    details: tuple[str, ...],
    details_json: str,
    as_json: bool,
    console: Console,
) -> None:
    log = state.audit_log()
    try:
        entry = run(
            log.append(
                action=action,
                actor=actor,
                resource=resource,
                details=parse_details(details, details_json),
            )
        )
    except InvalidAuditEventError as exc:
        console.print(f"[red]Invalid entry:[/red] {exc}")
        sys.exit(ExitCode.ERROR)
    except ChainSeedError as exc:
        console.print(f"[red]Audit chain is blocked:[/red] {exc}")
        console.print("Repair the last line of the file, then run [cyan]veritas-audit verify[/cyan].")
        sys.exit(ExitCode.INTEGRITY_FAILURE)
    except AuditError as exc:
        console.print(f"[red]Append failed:[/red] {exc}")
        sys.exit(ExitCode.ERROR)

    if as_json:
        print(json.dumps(entry.to_dict(), ensure_ascii=False))
    else:
        console.print(f"[green]Appended[/green] {entry.action} by {entry.actor} at {entry.timestamp}")
        console.print(f"  integrity: {entry.integrity or '(genesis)'}")
