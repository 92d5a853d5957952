"""
Veritas Audit CLI entry point.

Commands:
  veritas-audit append ACTION     — append one entry to the current month
  veritas-audit verify [PATH]     — verify the hash chain (current month)
  veritas-audit verify --all      — verify every month as one chain
  veritas-audit recent            — show the newest entries
  veritas-audit path              — print the active log file path
  veritas-audit config show       — display effective configuration
  veritas-audit config validate   — validate the config file
  veritas-audit config init       — write a default config file
  veritas-audit version           — show version information
"""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console

from veritas_audit import __version__
from veritas_audit.cli._common import CliState
from veritas_audit.cli._config_cmd import config_group
from veritas_audit.core.constants import DATA_DIR_ENV

console = Console()
err_console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "--version", "-V", message="veritas-audit %(version)s")
@click.option(
    "--data-dir",
    default="",
    help=f"Base directory for persisted state (overrides ${DATA_DIR_ENV})",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Diagnostic log level (stderr)",
)
@click.pass_context
def cli(ctx: click.Context, data_dir: str, log_level: str | None) -> None:
    """Veritas Audit — tamper-evident, hash-chained audit log."""
    from veritas_audit.cli._common import load_cli_config
    from veritas_audit.core.logging import configure_logging

    base = Path(data_dir).expanduser() if data_dir else None
    if ctx.invoked_subcommand == "config":
        # config subcommands must work on a broken file
        from veritas_audit.core.config import VeritasConfig

        cfg = VeritasConfig()
    else:
        cfg = load_cli_config(err_console, base_dir=base)
    configure_logging(level=log_level or cfg.logging.level, fmt=cfg.logging.format)
    ctx.obj = CliState(base_dir=base, config=cfg)


# ---------------------------------------------------------------------------
# append
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("action")
@click.option("--actor", default="system", show_default=True, help="Who performed the action")
@click.option("--resource", default=None, help="Affected object (task id, setting name, ...)")
@click.option(
    "--detail",
    "details",
    multiple=True,
    metavar="KEY=VALUE",
    help="Extra context; repeatable",
)
@click.option("--details-json", default="", help="Extra context as a JSON object")
@click.option("--json", "as_json", is_flag=True, default=False)
@click.pass_obj
def append(
    state: CliState,
    action: str,
    actor: str,
    resource: str | None,
    details: tuple[str, ...],
    details_json: str,
    as_json: bool,
) -> None:
    """Append one entry to the current month's audit log."""
    from veritas_audit.cli._append import cmd_append

    cmd_append(
        state=state,
        action=action,
        actor=actor,
        resource=resource,
        details=details,
        details_json=details_json,
        as_json=as_json,
        console=console,
    )


# ---------------------------------------------------------------------------
# verify
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("path", required=False, type=click.Path(dir_okay=False))
@click.option("--all", "verify_all", is_flag=True, default=False, help="Verify every month")
@click.option(
    "--standalone",
    is_flag=True,
    default=False,
    help="Treat PATH as the start of a chain (first entry must carry an empty integrity)",
)
@click.option("--json", "as_json", is_flag=True, default=False)
@click.pass_obj
def verify(
    state: CliState, path: str | None, verify_all: bool, standalone: bool, as_json: bool
) -> None:
    """Verify the hash chain. Exits 6 when the chain is broken."""
    from veritas_audit.cli._verify import cmd_verify

    cmd_verify(
        state=state,
        path=path,
        verify_all=verify_all,
        standalone=standalone,
        as_json=as_json,
        console=console,
    )


# ---------------------------------------------------------------------------
# recent
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--limit", type=int, default=None, help="Number of entries (default from config)")
@click.option(
    "--skip-invalid", is_flag=True, default=False, help="Skip unparsable lines instead of failing"
)
@click.option("--json", "as_json", is_flag=True, default=False)
@click.pass_obj
def recent(state: CliState, limit: int | None, skip_invalid: bool, as_json: bool) -> None:
    """Show the newest audit entries, newest first."""
    from veritas_audit.cli._recent import cmd_recent

    cmd_recent(state=state, limit=limit, strict=not skip_invalid, as_json=as_json, console=console)


# ---------------------------------------------------------------------------
# path
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--json", "as_json", is_flag=True, default=False)
@click.pass_obj
def path(state: CliState, as_json: bool) -> None:
    """Print the active audit log file path."""
    current = state.audit_log().current_path()
    if as_json:
        import json

        click.echo(
            json.dumps({"path": str(current), "exists": current.exists()}, indent=2)
        )
    else:
        click.echo(str(current))


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------

cli.add_command(config_group)


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--json", "as_json", is_flag=True, default=False)
def version(as_json: bool) -> None:
    """Show version information."""
    import platform
    import sys as _sys

    if as_json:
        import json

        click.echo(
            json.dumps(
                {
                    "veritas_audit": __version__,
                    "python": _sys.version.split()[0],
                    "platform": _sys.platform,
                    "arch": platform.machine(),
                },
                indent=2,
            )
        )
    else:
        console.print(f"veritas-audit {__version__}")
        console.print(f"Python {_sys.version.split()[0]}")
        console.print(f"Platform: {_sys.platform} {platform.machine()}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
