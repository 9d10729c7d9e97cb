"""VM mutation sequence for swapping in restored disks.

Moves a VM from "running with original disks" to "running with restored disks":
1. Deallocate (skipped if already deallocated)
2. Detach every current data disk
3. Attach restored data disks at their original LUN and caching
4. Point the OS disk at the restored OS disk
5. Start

Each call blocks until Azure answers. Nothing here retries or rolls back; when
a step fails, recovery_guidance() tells the operator how to recover by hand
from that exact point.
"""

import logging

from azrestore.azure_session import AzureSession
from azrestore.models import DEALLOCATED_STATE, PreRestoreDiskSet, RestoredDisk, VirtualMachine

logger = logging.getLogger(__name__)

STEP_DEALLOCATE = "deallocate-vm"
STEP_DETACH = "detach-data-disks"
STEP_ATTACH = "attach-restored-data-disks"
STEP_SWAP_OS = "swap-os-disk"
STEP_START = "start-vm"

MUTATION_STEPS = (STEP_DEALLOCATE, STEP_DETACH, STEP_ATTACH, STEP_SWAP_OS, STEP_START)


class VMMutationSequencer:
    """Issue the disk swap calls against one VM."""

    def __init__(self, session: AzureSession):
        self.session = session

    def deallocate(self, vm: VirtualMachine) -> bool:
        """Deallocate the VM.

        Returns:
            False if the VM was already deallocated and nothing was sent
        """
        if vm.is_deallocated():
            logger.info(f"VM {vm.name} already deallocated, skipping")
            return False

        logger.info(f"Deallocating VM: {vm.name}")
        self.session.mutate(
            ["vm", "deallocate", "--resource-group", vm.resource_group, "--name", vm.name],
            resource=("VM", vm.name),
        )
        vm.power_state = DEALLOCATED_STATE
        return True

    def detach_data_disks(self, vm: VirtualMachine) -> list[str]:
        """Detach every data disk currently attached to the VM.

        Returns:
            Names of detached disks (empty if none were attached)
        """
        detached = []
        for disk in list(vm.data_disks):
            logger.info(f"Detaching data disk {disk.name} (LUN {disk.lun})")
            self.session.mutate(
                [
                    "vm",
                    "disk",
                    "detach",
                    "--resource-group",
                    vm.resource_group,
                    "--vm-name",
                    vm.name,
                    "--name",
                    disk.name,
                ],
                resource=("Data disk", disk.name),
            )
            vm.data_disks.remove(disk)
            detached.append(disk.name)
        return detached

    def attach_data_disks(self, vm: VirtualMachine, restored: list[RestoredDisk]) -> list[str]:
        """Attach restored data disks at their manifest LUN and caching.

        Returns:
            Names of attached disks
        """
        attached = []
        for disk in sorted((d for d in restored if not d.is_os_disk), key=lambda d: d.lun or 0):
            logger.info(f"Attaching {disk.name} at LUN {disk.lun} (caching {disk.caching})")
            cmd = [
                "vm",
                "disk",
                "attach",
                "--resource-group",
                vm.resource_group,
                "--vm-name",
                vm.name,
                "--name",
                disk.disk_id or disk.name,
                "--lun",
                str(disk.lun),
                "--caching",
                disk.caching,
            ]
            if disk.write_accelerator_enabled:
                cmd.append("--enable-write-accelerator")
            self.session.mutate(cmd, resource=("Disk", disk.name))
            attached.append(disk.name)
        return attached

    def swap_os_disk(self, vm: VirtualMachine, restored: list[RestoredDisk]) -> str:
        """Point the VM's OS disk at the restored OS disk.

        Returns:
            Name of the new OS disk
        """
        os_disk = next(d for d in restored if d.is_os_disk)
        logger.info(f"Swapping OS disk of {vm.name}: {vm.os_disk.name} -> {os_disk.name}")
        self.session.mutate(
            [
                "vm",
                "update",
                "--resource-group",
                vm.resource_group,
                "--name",
                vm.name,
                "--os-disk",
                os_disk.disk_id or os_disk.name,
            ],
            resource=("VM", vm.name),
        )
        return os_disk.name

    def start(self, vm: VirtualMachine) -> None:
        """Start the VM."""
        logger.info(f"Starting VM: {vm.name}")
        self.session.mutate(
            ["vm", "start", "--resource-group", vm.resource_group, "--name", vm.name],
            resource=("VM", vm.name),
        )
        vm.power_state = "VM running"


def recovery_guidance(
    step: str,
    vm: VirtualMachine,
    pre_restore: PreRestoreDiskSet,
    restored: list[RestoredDisk],
) -> list[str]:
    """Manual recovery steps after `step` failed.

    Args:
        step: Name of the failed mutation step
        vm: Target VM
        pre_restore: Disks the VM used before the run
        restored: Disks created for the run

    Returns:
        Human-readable lines, including the az commands to run
    """
    base = f"--subscription {vm.subscription_id} --resource-group {vm.resource_group}"
    start_cmd = f"az vm start {base} --name {vm.name}"
    restored_names = ", ".join(d.name for d in restored) or "none"

    reattach_originals = [
        f"az vm disk attach {base} --vm-name {vm.name} --name {d.name} "
        f"--lun {d.lun} --caching {d.caching}"
        for d in pre_restore.data_disks
    ]

    if step == STEP_DEALLOCATE:
        return [
            "The VM was not modified.",
            f"Restored disks were created and left in place: {restored_names}",
            f"Check the VM state, then start it if needed: {start_cmd}",
        ]

    if step == STEP_DETACH:
        return [
            "Some original data disks may already be detached.",
            "Reattach any missing original data disks:",
            *(f"  {cmd}" for cmd in reattach_originals),
            f"Then start the VM: {start_cmd}",
        ]

    if step == STEP_ATTACH:
        return [
            "Original data disks are detached; some restored data disks may be attached.",
            "Either attach the remaining restored data disks, or detach them and reattach "
            "the originals:",
            *(f"  {cmd}" for cmd in reattach_originals),
            f"Then start the VM: {start_cmd}",
        ]

    if step == STEP_SWAP_OS:
        os_disk = next((d for d in restored if d.is_os_disk), None)
        swap_target = (os_disk.disk_id or os_disk.name) if os_disk else "<restored OS disk id>"
        return [
            "Restored data disks are attached but the OS disk is still "
            f"'{pre_restore.os_disk.name}'.",
            f"Swap the OS disk manually: az vm update {base} --name {vm.name} "
            f"--os-disk {swap_target}",
            f"Then start the VM: {start_cmd}",
        ]

    if step == STEP_START:
        return [
            "All disks were swapped but the VM did not start.",
            f"Start it manually: {start_cmd}",
        ]

    return [f"Original disks: {', '.join(pre_restore.names())}"]


__all__ = [
    "MUTATION_STEPS",
    "STEP_ATTACH",
    "STEP_DEALLOCATE",
    "STEP_DETACH",
    "STEP_START",
    "STEP_SWAP_OS",
    "VMMutationSequencer",
    "recovery_guidance",
]
