"""Configuration commands."""

from __future__ import annotations

import sys
from dataclasses import fields

import click

from azrestore.config_manager import ConfigManager, RestoreConfig
from azrestore.exceptions import ConfigError

__all__ = ["config_group"]

CONFIG_KEYS = [f.name for f in fields(RestoreConfig)]


@click.group(name="config")
def config_group() -> None:
    """View or change azrestore defaults.

    \b
    Config file: ~/.azrestore/config.toml

    \b
    EXAMPLES:
        $ azrestore config show
        $ azrestore config set default_resource_group my-rg
        $ azrestore config set disk_suffix -- -rp
    """
    pass


@config_group.command(name="show")
@click.pass_context
def config_show(ctx: click.Context):
    """Show the current configuration."""
    config_path = (ctx.obj or {}).get("config_path")
    try:
        config = ConfigManager.load_config(config_path)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Config file: {ConfigManager.get_config_path(config_path)}")
    for key in CONFIG_KEYS:
        value = getattr(config, key)
        click.echo(f"  {key}: {value if value is not None else '(not set)'}")


@config_group.command(name="set")
@click.argument("key", type=click.Choice(CONFIG_KEYS))
@click.argument("value", type=str)
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str):
    """Set a configuration value."""
    config_path = (ctx.obj or {}).get("config_path")
    try:
        ConfigManager.update_config(config_path, **{key: value})
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ {key} = {value}")
