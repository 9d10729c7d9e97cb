"""Periodic restore points feature toggle.

Sets `properties.resiliencyProfile.periodicRestorePoints.isEnabled` on a VM
with a single PATCH against the Compute resource provider. The PATCH is
idempotent: enabling an enabled VM succeeds and leaves it enabled.

Before enabling, a pre-flight pass checks the VM configuration. Every check
runs and all failures are reported together, so the operator sees the whole
remediation list at once.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from azrestore.azure_session import AzureSession
from azrestore.exceptions import AzRestoreError, PreflightValidationError
from azrestore.models import VirtualMachine
from azrestore.vm_inspector import VMInspector, validate_resource_group, validate_vm_name

logger = logging.getLogger(__name__)

API_VERSION = "2024-11-01"
MANAGEMENT_ENDPOINT = "https://management.azure.com"

# Regions where periodic restore points can be enabled
SUPPORTED_REGIONS = (
    "centraluseuap",
    "eastus2euap",
    "eastasia",
    "westcentralus",
)

UNSUPPORTED_DISK_TIERS = ("UltraSSD_LRS", "PremiumV2_LRS")


def validate_region(region: str) -> str:
    """Normalize a region and check it is on the allow-list.

    Raises:
        AzRestoreError: If the region is not supported
    """
    normalized = (region or "").strip().lower().replace(" ", "")
    if normalized not in SUPPORTED_REGIONS:
        raise AzRestoreError(
            f"Region '{region}' does not support periodic restore points. "
            f"Supported regions: {', '.join(SUPPORTED_REGIONS)}"
        )
    return normalized


@dataclass
class ToggleResult:
    """Result of a toggle call."""

    vm_name: str
    enabled: bool
    previously_enabled: bool | None
    response: dict[str, Any] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return self.previously_enabled != self.enabled


class PreflightValidator:
    """Check a VM can have periodic restore points enabled."""

    def __init__(self, session: AzureSession):
        self.session = session

    def validate(self, vm: VirtualMachine, region: str) -> list[str]:
        """Run every check and collect the failures.

        Args:
            vm: VM with attached disk tiers and sharing resolved
            region: Normalized target region

        Returns:
            Failure messages (empty when the VM passes)
        """
        failures: list[str] = []

        if vm.location.lower() != region:
            failures.append(f"VM is in '{vm.location}', not in requested region '{region}'")

        if not self.supports_premium_storage(vm.size, vm.location):
            failures.append(f"VM size {vm.size} does not support Premium storage")

        if vm.os_disk.ephemeral:
            failures.append(f"OS disk '{vm.os_disk.name}' is an ephemeral OS disk")

        for disk in vm.disks:
            if disk.write_accelerator_enabled:
                failures.append(f"Disk '{disk.name}' has write accelerator enabled")
            if disk.is_shared:
                failures.append(
                    f"Disk '{disk.name}' is a shared disk (maxShares={disk.max_shares})"
                )
            if disk.storage_tier in UNSUPPORTED_DISK_TIERS:
                failures.append(f"Disk '{disk.name}' uses unsupported tier {disk.storage_tier}")

        if vm.scale_set_id:
            failures.append("VM is a member of a virtual machine scale set")

        for failure in failures:
            logger.warning(f"Pre-flight check failed: {failure}")
        return failures

    def supports_premium_storage(self, vm_size: str, location: str) -> bool:
        """Check the PremiumIO capability of a VM size in a region."""
        skus = self.session.query(
            [
                "vm",
                "list-skus",
                "--location",
                location,
                "--size",
                vm_size,
                "--resource-type",
                "virtualMachines",
                "--all",
            ]
        )
        for sku in skus or []:
            if sku.get("name", "").lower() != vm_size.lower():
                continue
            for capability in sku.get("capabilities") or []:
                if capability.get("name") == "PremiumIO":
                    return str(capability.get("value")).lower() == "true"
        return False


class PeriodicRestorePointToggle:
    """Enable or disable periodic restore points on a VM."""

    def __init__(self, session: AzureSession):
        self.session = session
        self.inspector = VMInspector(session)
        self.validator = PreflightValidator(session)

    def vm_url(self, resource_group: str, vm_name: str) -> str:
        return (
            f"{MANAGEMENT_ENDPOINT}/subscriptions/{self.session.subscription_id}"
            f"/resourceGroups/{resource_group}/providers/Microsoft.Compute"
            f"/virtualMachines/{vm_name}?api-version={API_VERSION}"
        )

    def get_status(self, resource_group: str, vm_name: str) -> bool | None:
        """Read the current flag value.

        Returns:
            True/False, or None if the VM has no resiliency profile yet

        Raises:
            NotFoundError: If the VM does not exist
        """
        validate_vm_name(vm_name)
        validate_resource_group(resource_group)
        data = self.session.query(
            ["rest", "--method", "get", "--url", self.vm_url(resource_group, vm_name)],
            resource=("VM", vm_name),
            subscription_scoped=False,
        )
        profile = ((data or {}).get("properties") or {}).get("resiliencyProfile") or {}
        periodic = profile.get("periodicRestorePoints") or {}
        value = periodic.get("isEnabled")
        return None if value is None else bool(value)

    def set_enabled(
        self,
        resource_group: str,
        vm_name: str,
        region: str,
        enabled: bool,
        validate: bool = True,
    ) -> ToggleResult:
        """Set the periodic restore points flag.

        Args:
            resource_group: Resource group name
            vm_name: VM name
            region: Target region (must be on the allow-list)
            enabled: Desired flag value
            validate: Run pre-flight checks before enabling

        Returns:
            ToggleResult with the PATCH response payload

        Raises:
            AzRestoreError: If the region is unsupported
            PreflightValidationError: If any pre-flight check fails
            NotFoundError: If the VM does not exist
            AzureCliError: If the PATCH fails
        """
        normalized_region = validate_region(region)

        if enabled and validate:
            logger.info(f"Running pre-flight checks for VM: {vm_name}")
            vm = self.inspector.get_vm(vm_name, resource_group)
            failures = self.validator.validate(vm, normalized_region)
            if failures:
                raise PreflightValidationError(failures)

        previous = self.get_status(resource_group, vm_name)
        if previous == enabled:
            logger.info(f"Periodic restore points already {'enabled' if enabled else 'disabled'}")

        body = {
            "properties": {"resiliencyProfile": {"periodicRestorePoints": {"isEnabled": enabled}}}
        }
        action = "Enabling" if enabled else "Disabling"
        logger.info(f"{action} periodic restore points on {vm_name}")
        response = self.session.mutate(
            [
                "rest",
                "--method",
                "patch",
                "--url",
                self.vm_url(resource_group, vm_name),
                "--headers",
                "Content-Type=application/json",
                "--body",
                json.dumps(body),
            ],
            resource=("VM", vm_name),
            subscription_scoped=False,
        )
        return ToggleResult(
            vm_name=vm_name,
            enabled=enabled,
            previously_enabled=previous,
            response=response or {},
        )


__all__ = [
    "API_VERSION",
    "SUPPORTED_REGIONS",
    "UNSUPPORTED_DISK_TIERS",
    "PeriodicRestorePointToggle",
    "PreflightValidator",
    "ToggleResult",
    "validate_region",
]
