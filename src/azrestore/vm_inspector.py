"""VM inspection module.

Reads a VM and the managed disks attached to it. Disk tiers and sharing
settings are read from each disk resource rather than the VM model, because
the VM only echoes what was requested at attach time.

Security:
- Input validation
- No shell=True
"""

import logging
import re
from typing import Any

from azrestore.azure_session import AzureSession
from azrestore.exceptions import AzRestoreError, NotFoundError
from azrestore.models import AttachedDisk, VirtualMachine

logger = logging.getLogger(__name__)

# Azure naming validation patterns
VM_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]{1,64}$")
RG_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_\-\.\(\)]{1,90}$")


def validate_vm_name(vm_name: str) -> None:
    """Validate VM name against Azure naming rules.

    Raises:
        AzRestoreError: If VM name is invalid
    """
    if not vm_name or not VM_NAME_PATTERN.match(vm_name):
        raise AzRestoreError(
            f"Invalid VM name: {vm_name}. "
            "Must be 1-64 alphanumeric/hyphen/underscore/period characters"
        )


def validate_resource_group(rg_name: str) -> None:
    """Validate resource group name against Azure naming rules.

    Raises:
        AzRestoreError: If resource group name is invalid
    """
    if not rg_name or not RG_NAME_PATTERN.match(rg_name):
        raise AzRestoreError(f"Invalid resource group name: {rg_name}")


class VMInspector:
    """Read VM and disk state through an AzureSession."""

    def __init__(self, session: AzureSession):
        self.session = session

    def get_vm(self, vm_name: str, resource_group: str) -> VirtualMachine:
        """Get a VM with the tier of every attached disk resolved.

        Args:
            vm_name: Name of the VM
            resource_group: Resource group name

        Returns:
            VirtualMachine

        Raises:
            NotFoundError: If the VM does not exist
            AzureCliError: If a query fails
        """
        validate_vm_name(vm_name)
        validate_resource_group(resource_group)

        logger.info(f"Getting details for VM: {vm_name}")
        data = self.session.query(
            ["vm", "show", "--resource-group", resource_group, "--name", vm_name, "--show-details"],
            resource=("VM", vm_name),
        )
        try:
            vm = VirtualMachine.from_az_json(data, self.session.subscription_id, resource_group)
        except (KeyError, TypeError) as e:
            raise AzRestoreError(f"Invalid Azure response for VM '{vm_name}': {e}") from e

        for disk in vm.disks:
            self._resolve_disk(disk)

        logger.debug(f"VM {vm.name}: size={vm.size} zone={vm.zone} tiers={vm.disk_tiers()}")
        return vm

    def get_disk(self, disk_name: str, resource_group: str) -> dict[str, Any] | None:
        """Get a managed disk by name, or None if it does not exist."""
        try:
            return self.session.query(
                ["disk", "show", "--resource-group", resource_group, "--name", disk_name],
                resource=("Disk", disk_name),
            )
        except NotFoundError:
            return None

    def _resolve_disk(self, disk: AttachedDisk) -> None:
        if not disk.disk_id:
            # Unmanaged or ephemeral disks have no disk resource to read
            return
        data = self.session.query(
            ["disk", "show", "--ids", disk.disk_id], resource=("Disk", disk.name)
        )
        if not data:
            return
        disk.storage_tier = (data.get("sku") or {}).get("name") or disk.storage_tier
        disk.max_shares = data.get("maxShares")


__all__ = ["VMInspector", "validate_resource_group", "validate_vm_name"]
