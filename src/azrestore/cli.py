"""CLI entry point for azrestore.

Commands:
    azrestore periodic enable|disable|status   # Periodic restore points toggle
    azrestore restore VM                        # Restore a VM's disks from a restore point
    azrestore list VM                           # List restore points for a VM
    azrestore config show|set                   # Manage defaults
"""

import logging

import click

from azrestore import __version__
from azrestore.commands import config_group, list_command, periodic_group, restore_command


@click.group(context_settings={"help_option_names": ["--help", "-h"]})
@click.option("--verbose", "-v", is_flag=True, help="Show detailed execution information")
@click.option("--config", "config_path", type=click.Path(), help="Config file path")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: str | None) -> None:
    """azrestore - Azure VM restore point automation.

    Toggles periodic restore points on Azure VMs and restores a VM's disks
    from a restore point. Uses your Azure CLI login (run 'az login' first).

    \b
    COMMANDS:
        periodic      Enable, disable or show periodic restore points
        restore       Restore a VM's disks from a restore point
        list          List restore point collections and restore points
        config        View or change defaults

    \b
    CONFIGURATION:
        Config file: ~/.azrestore/config.toml
        Set defaults: default_subscription, default_resource_group,
                      default_region, disk_suffix, command_timeout

    For help on any command: azrestore <command> --help
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(periodic_group)
main.add_command(restore_command)
main.add_command(list_command)
main.add_command(config_group)


if __name__ == "__main__":
    main()
