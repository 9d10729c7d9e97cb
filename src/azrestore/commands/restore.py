"""VM restore command.

Restores every disk of a VM from a restore point: new disks are created from
the restore point and swapped into the VM. Original disks are never deleted.
"""

from __future__ import annotations

import sys

import click
from rich.console import Console
from rich.table import Table

from azrestore.commands._common import (
    load_settings,
    open_session,
    resource_group_option,
    subscription_option,
)
from azrestore.exceptions import AzRestoreError
from azrestore.restore_orchestrator import RestoreOptions, RestoreOrchestrator, RestoreReport

__all__ = ["restore_command"]


def _plan_table(report: RestoreReport) -> Table:
    table = Table(title=f"Restored disks for {report.vm_name}")
    table.add_column("New disk", style="cyan")
    table.add_column("From")
    table.add_column("Tier")
    table.add_column("LUN", justify="right")
    table.add_column("Caching")
    table.add_column("Zone")
    for disk in report.planned_disks:
        tier = f"{disk.storage_tier} (default)" if disk.tier_fallback else disk.storage_tier
        table.add_row(
            disk.name,
            disk.source_name,
            tier,
            "OS" if disk.is_os_disk else str(disk.lun),
            disk.caching,
            disk.zone or "-",
        )
    return table


def print_report(report: RestoreReport, console: Console | None = None) -> None:
    """Print a restore report to the terminal."""
    console = console or Console()

    if report.restore_point_name:
        created = (
            report.restore_point_created.isoformat() if report.restore_point_created else "?"
        )
        click.echo(
            f"Restore point: {report.collection_name}/{report.restore_point_name} ({created})"
        )

    if report.planned_disks:
        console.print(_plan_table(report))

    for warning in report.warnings:
        click.echo(f"Warning: {warning}", err=True)

    if not report.succeeded:
        click.echo(f"\nError: step '{report.failed_step}' failed: {report.error}", err=True)
        if report.remediation:
            click.echo("\nManual recovery:", err=True)
            for line in report.remediation:
                click.echo(f"  {line}", err=True)
        return

    if report.dry_run:
        click.echo("\nDry run: no changes were made.")
        return

    click.echo(f"\n✓ VM '{report.vm_name}' restored from '{report.restore_point_name}'")
    click.echo(f"  New disks: {', '.join(report.created_disks)}")
    click.echo(f"  Original disks (detached, not deleted): {', '.join(report.original_disks)}")
    if report.keep_original_disks:
        click.echo("  Original disks retained.")
    elif report.cleanup_commands:
        click.echo("\nOnce you have verified the VM, delete the original disks:")
        for cmd in report.cleanup_commands:
            click.echo(f"  {cmd}")


@click.command(name="restore")
@click.argument("vm_name", type=str)
@subscription_option
@resource_group_option
@click.option("--collection", "collection_name", help="Restore point collection (default: auto)")
@click.option("--restore-point", "restore_point_name", help="Restore point (default: newest)")
@click.option("--suffix", help="Suffix for restored disk names (default: -restored)")
@click.option("--keep-original-disks", is_flag=True, help="Keep original disks, no cleanup hint")
@click.option("--dry-run", is_flag=True, help="Show what would be done without changing anything")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def restore_command(
    ctx: click.Context,
    vm_name: str,
    subscription: str | None,
    resource_group: str | None,
    collection_name: str | None,
    restore_point_name: str | None,
    suffix: str | None,
    keep_original_disks: bool,
    dry_run: bool,
    yes: bool,
):
    """Restore a VM's disks from a restore point.

    WARNING: This deallocates the VM, detaches its data disks and replaces
    its OS disk with disks created from the restore point. The original disks
    are kept and can be deleted by hand afterwards.

    \b
    EXAMPLES:
        # Preview a restore from the newest restore point
        $ azrestore restore my-vm --rg my-rg --dry-run

        # Restore from a specific restore point
        $ azrestore restore my-vm --rg my-rg --collection my-rpc --restore-point rp-2025-01-01

        # Restore without confirmation
        $ azrestore restore my-vm --rg my-rg --yes
    """
    settings = load_settings(ctx, subscription, resource_group)
    options = RestoreOptions(
        vm_name=vm_name,
        resource_group=settings.resource_group,
        collection_name=collection_name,
        restore_point_name=restore_point_name,
        suffix=suffix if suffix is not None else settings.config.disk_suffix,
        keep_original_disks=keep_original_disks,
        dry_run=dry_run,
    )

    if not dry_run and not yes:
        click.echo(f"\nWARNING: This will restore VM '{vm_name}' from a restore point")
        click.echo("This operation will:")
        click.echo("  1. Create new disks from the restore point")
        click.echo("  2. Deallocate the VM")
        click.echo("  3. Detach all current data disks")
        click.echo("  4. Attach the restored data disks and swap the OS disk")
        click.echo("  5. Start the VM")
        if not click.confirm("\nContinue?", default=False):
            click.echo("Cancelled.")
            return

    try:
        session = open_session(settings, read_only=dry_run)
        report = RestoreOrchestrator(session, options).run()
    except AzRestoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    print_report(report)
    if not report.succeeded:
        sys.exit(1)
