"""Shared helpers for azrestore commands."""

import sys
from dataclasses import dataclass

import click

from azrestore.azure_auth import AzureAuthenticator
from azrestore.azure_session import AzureSession
from azrestore.config_manager import ConfigManager, RestoreConfig
from azrestore.exceptions import ConfigError

subscription_option = click.option(
    "--subscription", "-s", help="Subscription ID (default: config, then az default)", type=str
)
resource_group_option = click.option(
    "--resource-group", "--rg", "resource_group", help="Resource group", type=str
)


@dataclass
class CommandSettings:
    """Settings resolved from CLI options and the config file."""

    config: RestoreConfig
    subscription: str | None
    resource_group: str


def load_settings(
    ctx: click.Context, subscription: str | None, resource_group: str | None
) -> CommandSettings:
    """Merge CLI values over config defaults; exit 1 if the resource group is missing."""
    config_path = (ctx.obj or {}).get("config_path")
    try:
        config = ConfigManager.load_config(config_path)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    rg = resource_group or config.default_resource_group
    if not rg:
        click.echo(
            "Error: No resource group specified. "
            "Use --rg or set default_resource_group in config.",
            err=True,
        )
        sys.exit(1)

    return CommandSettings(
        config=config,
        subscription=subscription or config.default_subscription,
        resource_group=rg,
    )


def open_session(settings: CommandSettings, read_only: bool = False) -> AzureSession:
    """Authenticate through az and return a session for the subscription."""
    authenticator = AzureAuthenticator(settings.subscription)
    return authenticator.create_session(
        read_only=read_only, timeout=settings.config.command_timeout
    )


__all__ = [
    "CommandSettings",
    "load_settings",
    "open_session",
    "resource_group_option",
    "subscription_option",
]
