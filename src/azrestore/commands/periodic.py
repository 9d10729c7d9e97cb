"""Periodic restore points commands.

This module provides commands for enabling, disabling and inspecting the
periodic restore points feature on a VM.
"""

from __future__ import annotations

import json
import sys

import click

from azrestore.commands._common import (
    load_settings,
    open_session,
    resource_group_option,
    subscription_option,
)
from azrestore.exceptions import AzRestoreError, PreflightValidationError
from azrestore.periodic_restore_points import (
    SUPPORTED_REGIONS,
    PeriodicRestorePointToggle,
    validate_region,
)

__all__ = ["periodic_group"]

region_option = click.option(
    "--region",
    type=str,
    help=f"VM region, one of: {', '.join(SUPPORTED_REGIONS)} (default: config)",
)


@click.group(name="periodic")
def periodic_group() -> None:
    """Manage periodic restore points on a VM.

    \b
    EXAMPLES:
        # Enable (runs pre-flight checks first)
        $ azrestore periodic enable my-vm --rg my-rg --region eastasia

        # Disable
        $ azrestore periodic disable my-vm --rg my-rg --region eastasia

        # Show current setting
        $ azrestore periodic status my-vm --rg my-rg
    """
    pass


def _toggle(
    ctx: click.Context,
    vm_name: str,
    subscription: str | None,
    resource_group: str | None,
    region: str | None,
    enabled: bool,
    skip_validation: bool = False,
) -> None:
    settings = load_settings(ctx, subscription, resource_group)
    region = region or settings.config.default_region
    if not region:
        click.echo("Error: No region specified. Use --region or set default_region.", err=True)
        sys.exit(1)

    try:
        validate_region(region)
        session = open_session(settings)
        toggle = PeriodicRestorePointToggle(session)
        result = toggle.set_enabled(
            settings.resource_group, vm_name, region, enabled, validate=not skip_validation
        )
    except PreflightValidationError as e:
        click.echo(f"Error: VM '{vm_name}' cannot use periodic restore points:", err=True)
        for failure in e.failures:
            click.echo(f"  - {failure}", err=True)
        sys.exit(1)
    except AzRestoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    state = "enabled" if enabled else "disabled"
    if result.changed:
        click.echo(f"✓ Periodic restore points {state} for {vm_name}")
    else:
        click.echo(f"✓ Periodic restore points already {state} for {vm_name}")
    click.echo(json.dumps(result.response, indent=2))


@periodic_group.command(name="enable")
@click.argument("vm_name", type=str)
@subscription_option
@resource_group_option
@region_option
@click.option("--skip-validation", is_flag=True, help="Skip pre-flight configuration checks")
@click.pass_context
def periodic_enable(
    ctx: click.Context,
    vm_name: str,
    subscription: str | None,
    resource_group: str | None,
    region: str | None,
    skip_validation: bool,
):
    """Enable periodic restore points for a VM.

    Checks first that the VM size supports Premium storage, the OS disk is not
    ephemeral, no disk uses write accelerator, shared disks, Ultra or Premium
    SSD v2, and that the VM is not part of a scale set. All failed checks are
    reported together.
    """
    _toggle(ctx, vm_name, subscription, resource_group, region, True, skip_validation)


@periodic_group.command(name="disable")
@click.argument("vm_name", type=str)
@subscription_option
@resource_group_option
@region_option
@click.pass_context
def periodic_disable(
    ctx: click.Context,
    vm_name: str,
    subscription: str | None,
    resource_group: str | None,
    region: str | None,
):
    """Disable periodic restore points for a VM.

    Existing restore points are not deleted.
    """
    _toggle(ctx, vm_name, subscription, resource_group, region, False)


@periodic_group.command(name="status")
@click.argument("vm_name", type=str)
@subscription_option
@resource_group_option
@click.pass_context
def periodic_status(
    ctx: click.Context, vm_name: str, subscription: str | None, resource_group: str | None
):
    """Show whether periodic restore points are enabled for a VM."""
    settings = load_settings(ctx, subscription, resource_group)
    try:
        session = open_session(settings, read_only=True)
        enabled = PeriodicRestorePointToggle(session).get_status(settings.resource_group, vm_name)
    except AzRestoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if enabled is None:
        click.echo(f"Periodic restore points not configured for {vm_name}")
    else:
        click.echo(f"Periodic restore points for {vm_name}: {'Enabled' if enabled else 'Disabled'}")
