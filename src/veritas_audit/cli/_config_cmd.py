"""CLI commands: veritas-audit config show | validate | init."""

from __future__ import annotations

import json
import sys

import click
from rich.console import Console

from veritas_audit.core.constants import ExitCode

console = Console()


@click.group("config")
def config_group() -> None:
    """View, validate, and initialise configuration."""


@config_group.command("show")
@click.option("--json", "as_json", is_flag=True, default=False, help="Output as JSON")
@click.pass_obj
def config_show(state, as_json):
    """Display the effective configuration (file + environment)."""
    from veritas_audit.core.config import load_config_or_default
    from veritas_audit.core.exceptions import ConfigError

    try:
        cfg = load_config_or_default(state.config_path())
    except ConfigError as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)

    data = cfg.model_dump()
    data["_config_path"] = str(state.config_path())
    data["_data_dir"] = str(state.base_dir or cfg.data_dir)

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    console.print(f"[bold]Config file:[/bold] {data['_config_path']}")
    console.print(f"[bold]Data dir:[/bold]    {data['_data_dir']}\n")
    for section in ("storage", "audit", "logging"):
        console.print(f"[cyan]\\[{section}][/cyan]")
        for key, value in data[section].items():
            console.print(f"  {key} = {value!r}")
        console.print()


@config_group.command("validate")
@click.pass_obj
def config_validate(state):
    """Validate the config file against the schema."""
    from veritas_audit.core.config import load_config
    from veritas_audit.core.exceptions import ConfigError

    cfg_path = state.config_path()
    if not cfg_path.exists():
        console.print(f"[red]Config not found:[/red] {cfg_path}")
        sys.exit(ExitCode.CONFIG_ERROR)

    try:
        load_config(cfg_path)
    except ConfigError as exc:
        console.print(f"[red]Config validation failed:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)
    console.print(f"[green]Config is valid:[/green] {cfg_path}")


@config_group.command("init")
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing file")
@click.pass_obj
def config_init(state, force):
    """Write a config file with default values."""
    from veritas_audit.core.config import VeritasConfig, save_config
    from veritas_audit.core.exceptions import ConfigError

    cfg_path = state.config_path()
    if cfg_path.exists() and not force:
        console.print(f"[yellow]Config already exists:[/yellow] {cfg_path}")
        console.print("Use [cyan]--force[/cyan] to overwrite.")
        sys.exit(ExitCode.CONFIG_ERROR)

    data = VeritasConfig().model_dump()
    if state.base_dir is not None:
        data["storage"]["data_dir"] = str(state.base_dir)
    try:
        written = save_config(data, cfg_path)
    except ConfigError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(ExitCode.CONFIG_ERROR)
    console.print(f"[green]Config written:[/green] {written}")
