"""Configuration management CLI commands.

- config list: Show current effective configuration
- config path: Show configuration file paths
- config get: Get a configuration value
- config set: Set a configuration value
- config init: Write a starter configuration file
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click
import yaml
from pydantic import BaseModel, ValidationError
from rich.syntax import Syntax
from rich.table import Table

from inklink.cli.console import get_console
from inklink.config import ConfigManager, InklinkConfig
from inklink.constants import CONFIG_FILENAME


def _load_manager(ctx: click.Context) -> ConfigManager:
    manager = ConfigManager()
    manager.load(config_path=(ctx.obj or {}).get("config_path"))
    return manager


def _parse_value(value: str) -> Any:
    """Parse a CLI value as bool, int, float or string."""
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    if value.lower() in ("null", "none"):
        return None
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


@click.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command("list")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["json", "yaml", "table"], case_sensitive=False),
    default="json",
    help="Output format (json, yaml, or table).",
)
@click.pass_context
def config_list(ctx: click.Context, output_format: str) -> None:
    """Show current effective configuration."""
    console = get_console()
    config_dict = _load_manager(ctx).config.model_dump(mode="json", exclude_none=True)

    if output_format == "json":
        config_json = json.dumps(config_dict, indent=2, ensure_ascii=False)
        console.print(Syntax(config_json, "json", theme="monokai", line_numbers=False))
    elif output_format == "yaml":
        config_yaml = yaml.dump(
            config_dict,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
        )
        console.print(Syntax(config_yaml, "yaml", theme="monokai", line_numbers=False))
    else:
        table = Table(title="inklink configuration", show_header=True)
        table.add_column("Section", style="cyan")
        table.add_column("Key", style="green")
        table.add_column("Value", style="white")

        for section, values in config_dict.items():
            for key, value in values.items():
                table.add_row(section, key, str(value))

        console.print(table)


@config.command("path")
@click.pass_context
def config_path_cmd(ctx: click.Context) -> None:
    """Show configuration file paths."""
    console = get_console()
    manager = _load_manager(ctx)

    console.print("[bold]Configuration sources[/bold] (highest priority first)")
    console.print("  1. --config option")
    console.print("  2. INKLINK_CONFIG environment variable")
    console.print(f"  3. ./{CONFIG_FILENAME}")
    console.print(f"  4. {manager.DEFAULT_USER_CONFIG_DIR / 'config.json'}")
    console.print("  5. Built-in defaults")
    console.print()

    if manager.config_path:
        console.print(f"[green]Currently using:[/green] {manager.config_path}")
    else:
        console.print("[yellow]Using default configuration (no config file found)[/yellow]")


@config.command("get")
@click.argument("key")
@click.pass_context
def config_get(ctx: click.Context, key: str) -> None:
    """Get a configuration value."""
    console = get_console()
    manager = _load_manager(ctx)

    if not manager.has_key(key):
        console.print(f"[yellow]Key not found:[/yellow] {key}")
        raise SystemExit(1)

    value = manager.get(key)
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", exclude_none=True)

    if isinstance(value, dict):
        output = json.dumps(value, indent=2, ensure_ascii=False)
        console.print(Syntax(output, "json", theme="monokai", line_numbers=False))
    else:
        console.print(str(value))


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Set a configuration value."""
    console = get_console()
    manager = _load_manager(ctx)

    if not manager.has_key(key) or isinstance(manager.get(key), BaseModel):
        console.print(f"[red]Unknown setting:[/red] {key}")
        raise SystemExit(1)

    parsed_value = _parse_value(value)
    old_config_dict = manager.config.model_dump()

    manager.set(key, parsed_value)
    try:
        InklinkConfig.model_validate(manager.config.model_dump())
    except ValidationError as ve:
        manager._config = InklinkConfig.model_validate(old_config_dict)
        console.print(f"[red]Invalid value for '{key}':[/red]")
        for err in ve.errors():
            loc = ".".join(str(x) for x in err["loc"])
            console.print(f"[red]  {loc}: {err['msg']}[/red]")
        raise SystemExit(1)

    saved = manager.save()
    console.print(f"[green]Set {key} = {parsed_value}[/green] [dim]({saved})[/dim]")


@config.command("init")
@click.option(
    "--path",
    "-p",
    "target",
    type=click.Path(path_type=Path),
    default=None,
    help=f"Where to write the file (default: ./{CONFIG_FILENAME}).",
)
@click.option("--force", is_flag=True, help="Overwrite an existing file.")
def config_init(target: Path | None, force: bool) -> None:
    """Write a starter configuration file."""
    console = get_console()
    target = target or Path.cwd() / CONFIG_FILENAME
    if target.is_dir():
        target = target / CONFIG_FILENAME

    if target.exists() and not force:
        console.print(f"[yellow]{target} already exists (use --force to overwrite)[/yellow]")
        raise SystemExit(1)

    saved = ConfigManager().save(target, minimal=True)
    console.print(f"[green]Created {saved}[/green]")


__all__ = ["config"]
