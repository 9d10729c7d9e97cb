"""Disk recreation from restore points.

Creates one new managed disk per restore point manifest entry. Each new disk:
- is named <original name><suffix>
- keeps the storage tier of the currently attached disk with the same name
- is placed in the VM's location and availability zone

Planning is separate from creation so a dry run produces the same plan.
Creation is not atomic: the first failure aborts the batch and disks created
so far are left in place for manual cleanup.
"""

import logging

from azrestore.azure_session import AzureSession
from azrestore.exceptions import (
    AzRestoreError,
    DiskCreationFailedError,
    DiskNameConflictError,
    TierLookupFailedError,
)
from azrestore.models import RestoredDisk, RestorePoint, VirtualMachine
from azrestore.vm_inspector import VMInspector

logger = logging.getLogger(__name__)

DEFAULT_SUFFIX = "-restored"
FALLBACK_TIER = "Standard_LRS"


class DiskRecreator:
    """Plan and create disks from a restore point."""

    def __init__(self, session: AzureSession, inspector: VMInspector | None = None):
        self.session = session
        self.inspector = inspector or VMInspector(session)
        self.warnings: list[str] = []

    def plan(
        self, vm: VirtualMachine, restore_point: RestorePoint, suffix: str = DEFAULT_SUFFIX
    ) -> list[RestoredDisk]:
        """Work out name, tier and placement of every disk to create.

        Args:
            vm: Target VM, with attached disk tiers resolved
            restore_point: Restore point with a validated manifest
            suffix: Appended to each original disk name

        Returns:
            Planned disks, OS disk first

        Raises:
            TierLookupFailedError: If the OS disk tier cannot be resolved
        """
        if not suffix:
            raise AzRestoreError("Disk name suffix must not be empty")

        restore_point.validate_manifest()
        os_entry = restore_point.manifest[0]

        if vm.os_disk.name != os_entry.name or not vm.os_disk.storage_tier:
            raise TierLookupFailedError(
                f"Cannot determine tier for OS disk '{os_entry.name}': VM '{vm.name}' "
                f"currently uses OS disk '{vm.os_disk.name}'"
            )

        planned = [
            RestoredDisk(
                name=f"{os_entry.name}{suffix}",
                source_name=os_entry.name,
                source_id=os_entry.source_id,
                storage_tier=vm.os_disk.storage_tier,
                is_os_disk=True,
                zone=vm.zone,
            )
        ]

        current_tiers = {disk.name: disk.storage_tier for disk in vm.data_disks}
        for entry in restore_point.data_disks:
            tier = current_tiers.get(entry.name)
            fallback = tier is None
            if fallback:
                warning = (
                    f"No attached data disk named '{entry.name}'; "
                    f"defaulting its restored copy to {FALLBACK_TIER}"
                )
                logger.warning(warning)
                self.warnings.append(warning)
                tier = FALLBACK_TIER

            planned.append(
                RestoredDisk(
                    name=f"{entry.name}{suffix}",
                    source_name=entry.name,
                    source_id=entry.source_id,
                    storage_tier=tier,
                    zone=vm.zone,
                    lun=entry.lun,
                    caching=entry.caching,
                    write_accelerator_enabled=entry.write_accelerator_enabled,
                    tier_fallback=fallback,
                )
            )

        return planned

    def check_name_conflicts(self, planned: list[RestoredDisk], resource_group: str) -> None:
        """Fail if any planned disk name is already taken.

        Raises:
            DiskNameConflictError: If one or more names exist
        """
        taken = [d.name for d in planned if self.inspector.get_disk(d.name, resource_group)]
        if taken:
            raise DiskNameConflictError(
                f"Disk(s) already exist in '{resource_group}': {', '.join(taken)}. "
                "Delete them or choose another --suffix."
            )

    def create_all(
        self, planned: list[RestoredDisk], resource_group: str, location: str
    ) -> list[RestoredDisk]:
        """Create every planned disk, in order.

        Args:
            planned: Output of plan()
            resource_group: Resource group for the new disks
            location: Azure region for the new disks

        Returns:
            The planned disks with disk_id set

        Raises:
            DiskCreationFailedError: On the first failed creation
        """
        created: list[str] = []
        for disk in planned:
            logger.info(f"Creating disk {disk.name} ({disk.storage_tier}) from {disk.source_name}")
            cmd = [
                "disk",
                "create",
                "--resource-group",
                resource_group,
                "--name",
                disk.name,
                "--location",
                location,
                "--sku",
                disk.storage_tier,
                "--source",
                disk.source_id,
            ]
            if disk.zone:
                cmd.extend(["--zone", disk.zone])

            try:
                data = self.session.mutate(cmd, resource=("Disk restore point", disk.source_name))
            except AzRestoreError as e:
                logger.error(f"Disk creation failed for {disk.name}: {e}")
                raise DiskCreationFailedError(
                    f"Failed to create disk '{disk.name}': {e}", created=created
                ) from e

            disk.disk_id = (data or {}).get("id") or self._disk_id(resource_group, disk.name)
            created.append(disk.name)

        return planned

    def _disk_id(self, resource_group: str, disk_name: str) -> str:
        return (
            f"/subscriptions/{self.session.subscription_id}/resourceGroups/{resource_group}/"
            f"providers/Microsoft.Compute/disks/{disk_name}"
        )


__all__ = ["DEFAULT_SUFFIX", "FALLBACK_TIER", "DiskRecreator"]
