"""Restore point listing command."""

from __future__ import annotations

import sys
from datetime import UTC

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
from azrestore.models import RestorePointCollection
from azrestore.restore_point_selector import RestorePointSelector

__all__ = ["list_command"]


def _collections_for_vm(
    selector: RestorePointSelector, resource_group: str, vm_name: str, collection_name: str | None
) -> list[RestorePointCollection]:
    if collection_name:
        return [selector.get_collection(resource_group, collection_name)]
    return [
        selector.get_collection(resource_group, c.name)
        for c in selector.list_collections(resource_group)
        if c.source_vm_name is None or c.source_vm_name.lower() == vm_name.lower()
    ]


@click.command(name="list")
@click.argument("vm_name", type=str)
@subscription_option
@resource_group_option
@click.option("--collection", "collection_name", help="Only this collection")
@click.pass_context
def list_command(
    ctx: click.Context,
    vm_name: str,
    subscription: str | None,
    resource_group: str | None,
    collection_name: str | None,
):
    """List restore point collections and restore points for a VM.

    The newest restore point of each collection is marked with '*'. Disks
    are listed when Azure returns the restore point's source metadata.

    \b
    EXAMPLES:
        $ azrestore list my-vm --rg my-rg
        $ azrestore list my-vm --rg my-rg --collection my-rpc
    """
    settings = load_settings(ctx, subscription, resource_group)
    try:
        session = open_session(settings, read_only=True)
        selector = RestorePointSelector(session)
        collections = _collections_for_vm(
            selector, settings.resource_group, vm_name, collection_name
        )
    except AzRestoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not collections:
        click.echo(f"\nNo restore point collections found for VM: {vm_name}")
        return

    table = Table(title=f"Restore points for {vm_name}")
    table.add_column("Collection", style="cyan")
    table.add_column("Restore point")
    table.add_column("Created (UTC)")
    table.add_column("Disks")

    total = 0
    for collection in collections:
        latest = collection.latest_restore_point()
        ordered = sorted(collection.restore_points, key=lambda rp: (rp.created, rp.name))
        if not ordered:
            table.add_row(collection.name, "(empty)", "-", "-")
        for rp in reversed(ordered):
            marker = " *" if rp is latest else ""
            table.add_row(
                collection.name,
                f"{rp.name}{marker}",
                rp.created.astimezone(UTC).strftime("%Y-%m-%d %H:%M"),
                ", ".join(entry.name for entry in rp.manifest) or "-",
            )
            total += 1

    Console().print(table)
    click.echo(f"\nTotal: {total} restore points in {len(collections)} collections")
