"""Data models for VMs, disks and restore points.

These are transient, in-memory projections of Azure resources as returned by
the Azure CLI (JSON, camelCase keys). azrestore never owns their lifecycle.
"""

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from azrestore.exceptions import InvalidManifestError

DEALLOCATED_STATE = "VM deallocated"

# Azure reports up to 7 fractional digits; datetime accepts at most 6
_FRACTION_PATTERN = re.compile(r"\.(\d{6})\d+")


def parse_azure_timestamp(value: str) -> datetime:
    """Parse an Azure ISO-8601 timestamp into an aware UTC datetime.

    Args:
        value: Timestamp such as "2025-01-01T00:00:00.1234567+00:00" or "...Z"

    Returns:
        Timezone-aware datetime

    Raises:
        ValueError: If the value is not an ISO-8601 timestamp
    """
    text = _FRACTION_PATTERN.sub(r".\1", value.strip())
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def resource_name(resource_id: str | None) -> str | None:
    """Return the last segment of an Azure resource id."""
    if not resource_id:
        return None
    return resource_id.rstrip("/").rsplit("/", 1)[-1]


@dataclass
class AttachedDisk:
    """A disk currently referenced by a VM."""

    name: str
    disk_id: str | None = None
    lun: int | None = None
    caching: str = "None"
    write_accelerator_enabled: bool = False
    storage_tier: str | None = None
    is_os_disk: bool = False
    ephemeral: bool = False
    max_shares: int | None = None

    @property
    def is_shared(self) -> bool:
        """Check if the disk is provisioned for multi-attach."""
        return self.max_shares is not None and self.max_shares > 1

    @classmethod
    def from_az_json(cls, data: dict[str, Any], is_os_disk: bool = False) -> "AttachedDisk":
        managed_disk = data.get("managedDisk") or {}
        return cls(
            name=data["name"],
            disk_id=managed_disk.get("id"),
            lun=None if is_os_disk else data.get("lun"),
            caching=data.get("caching") or "None",
            write_accelerator_enabled=bool(data.get("writeAcceleratorEnabled")),
            storage_tier=managed_disk.get("storageAccountType"),
            is_os_disk=is_os_disk,
            ephemeral=bool(data.get("diffDiskSettings")),
        )


@dataclass
class VirtualMachine:
    """VM information from Azure."""

    subscription_id: str
    resource_group: str
    name: str
    size: str
    location: str
    os_disk: AttachedDisk
    data_disks: list[AttachedDisk] = field(default_factory=list)
    zone: str | None = None
    power_state: str | None = None
    scale_set_id: str | None = None
    vm_id: str | None = None

    @property
    def resource_id(self) -> str:
        """Full Azure resource id of the VM."""
        return (
            f"/subscriptions/{self.subscription_id}/resourceGroups/{self.resource_group}/"
            f"providers/Microsoft.Compute/virtualMachines/{self.name}"
        )

    @property
    def disks(self) -> list[AttachedDisk]:
        """OS disk followed by data disks."""
        return [self.os_disk, *self.data_disks]

    def is_deallocated(self) -> bool:
        """Check if VM is deallocated."""
        return self.power_state == DEALLOCATED_STATE

    def disk_tiers(self) -> dict[str, str]:
        """Storage tier of every attached disk, keyed by disk name."""
        return {disk.name: disk.storage_tier for disk in self.disks if disk.storage_tier}

    @classmethod
    def from_az_json(
        cls, data: dict[str, Any], subscription_id: str, resource_group: str
    ) -> "VirtualMachine":
        """Build from `az vm show --show-details` output.

        Raises:
            KeyError: If a required field is missing
        """
        storage = data["storageProfile"]
        zones = data.get("zones") or []
        scale_set = data.get("virtualMachineScaleSet") or {}
        return cls(
            subscription_id=subscription_id,
            resource_group=resource_group,
            name=data["name"],
            size=data["hardwareProfile"]["vmSize"],
            location=data["location"],
            os_disk=AttachedDisk.from_az_json(storage["osDisk"], is_os_disk=True),
            data_disks=[AttachedDisk.from_az_json(d) for d in storage.get("dataDisks") or []],
            zone=zones[0] if zones else None,
            power_state=data.get("powerState"),
            scale_set_id=scale_set.get("id"),
            vm_id=data.get("id"),
        )


@dataclass
class DiskManifestEntry:
    """One disk captured by a restore point."""

    name: str
    source_id: str  # disk restore point resource id
    is_os_disk: bool = False
    lun: int | None = None
    caching: str = "None"
    write_accelerator_enabled: bool = False

    @classmethod
    def from_az_json(cls, data: dict[str, Any], is_os_disk: bool = False) -> "DiskManifestEntry":
        disk_restore_point = data.get("diskRestorePoint") or {}
        source_id = disk_restore_point.get("id")
        if not source_id:
            raise InvalidManifestError(
                f"Disk '{data.get('name')}' has no disk restore point reference"
            )
        return cls(
            name=data["name"],
            source_id=source_id,
            is_os_disk=is_os_disk,
            lun=None if is_os_disk else data.get("lun"),
            caching=data.get("caching") or "None",
            write_accelerator_enabled=bool(data.get("writeAcceleratorEnabled")),
        )


@dataclass
class RestorePoint:
    """A point-in-time, multi-disk capture of a VM."""

    name: str
    collection_name: str
    created: datetime
    os_disk: DiskManifestEntry | None = None
    data_disks: list[DiskManifestEntry] = field(default_factory=list)
    provisioning_state: str | None = None

    @property
    def manifest(self) -> list[DiskManifestEntry]:
        """OS disk entry followed by data disk entries."""
        entries = [self.os_disk] if self.os_disk else []
        return [*entries, *self.data_disks]

    def validate_manifest(self) -> None:
        """Check there is exactly one OS disk and data disk LUNs are unique.

        Raises:
            InvalidManifestError: If the manifest is malformed
        """
        if self.os_disk is None:
            raise InvalidManifestError(f"Restore point '{self.name}' has no OS disk entry")

        luns = [disk.lun for disk in self.data_disks]
        if any(lun is None for lun in luns):
            raise InvalidManifestError(f"Restore point '{self.name}' has a data disk without LUN")
        if len(set(luns)) != len(luns):
            raise InvalidManifestError(
                f"Restore point '{self.name}' has duplicate data disk LUNs: {sorted(luns)}"
            )

    @classmethod
    def from_az_json(cls, data: dict[str, Any], collection_name: str) -> "RestorePoint":
        """Build from `az restore-point show` output (or a collection entry).

        Collection listings may omit source metadata; the manifest is then empty.
        """
        created_raw = data.get("timeCreated") or (data.get("instanceView") or {}).get(
            "timeCreated"
        )
        if not created_raw:
            raise InvalidManifestError(f"Restore point '{data.get('name')}' has no creation time")

        storage = (data.get("sourceMetadata") or {}).get("storageProfile") or {}
        os_disk_data = storage.get("osDisk")
        return cls(
            name=data["name"],
            collection_name=collection_name,
            created=parse_azure_timestamp(created_raw),
            os_disk=(
                DiskManifestEntry.from_az_json(os_disk_data, is_os_disk=True)
                if os_disk_data
                else None
            ),
            data_disks=[DiskManifestEntry.from_az_json(d) for d in storage.get("dataDisks") or []],
            provisioning_state=data.get("provisioningState"),
        )


def newest_restore_point(restore_points: list[RestorePoint]) -> RestorePoint | None:
    """Pick the restore point with the latest creation time.

    Equal timestamps are broken by name: the name that sorts last wins.
    """
    if not restore_points:
        return None
    return max(restore_points, key=lambda rp: (rp.created, rp.name))


@dataclass
class RestorePointCollection:
    """A named group of restore points for a VM."""

    name: str
    resource_group: str
    location: str | None = None
    source_vm_id: str | None = None
    restore_points: list[RestorePoint] = field(default_factory=list)

    @property
    def source_vm_name(self) -> str | None:
        return resource_name(self.source_vm_id)

    def latest_restore_point(self) -> RestorePoint | None:
        return newest_restore_point(self.restore_points)

    @classmethod
    def from_az_json(cls, data: dict[str, Any], resource_group: str) -> "RestorePointCollection":
        source = data.get("source") or {}
        name = data["name"]
        return cls(
            name=name,
            resource_group=resource_group,
            location=data.get("location") or source.get("location"),
            source_vm_id=source.get("id"),
            restore_points=[
                RestorePoint.from_az_json(rp, name) for rp in data.get("restorePoints") or []
            ],
        )


@dataclass
class RestoredDisk:
    """A managed disk recreated from one manifest entry."""

    name: str
    source_name: str
    source_id: str
    storage_tier: str
    is_os_disk: bool = False
    zone: str | None = None
    lun: int | None = None
    caching: str = "None"
    write_accelerator_enabled: bool = False
    tier_fallback: bool = False
    disk_id: str | None = None  # set once created


@dataclass
class PreRestoreDiskSet:
    """Disk references captured before the VM was modified."""

    os_disk: AttachedDisk
    data_disks: list[AttachedDisk] = field(default_factory=list)

    @classmethod
    def capture(cls, vm: VirtualMachine) -> "PreRestoreDiskSet":
        return cls(os_disk=vm.os_disk, data_disks=list(vm.data_disks))

    def names(self) -> list[str]:
        return [self.os_disk.name, *(disk.name for disk in self.data_disks)]

    def delete_commands(self, resource_group: str, subscription_id: str) -> list[str]:
        """Manual cleanup commands for the operator (never run automatically)."""
        return [
            f"az disk delete --subscription {subscription_id} --resource-group {resource_group} "
            f"--name {name} --yes"
            for name in self.names()
        ]


__all__ = [
    "DEALLOCATED_STATE",
    "AttachedDisk",
    "DiskManifestEntry",
    "PreRestoreDiskSet",
    "RestorePoint",
    "RestorePointCollection",
    "RestoredDisk",
    "VirtualMachine",
    "newest_restore_point",
    "parse_azure_timestamp",
    "resource_name",
]
