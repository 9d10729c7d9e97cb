"""Restore orchestration.

Coordinates a full restore of a VM's disks from a restore point:

1. Resolve the VM and the tiers of its attached disks
2. Select the restore point (and collection)
3. Plan the new disks and check their names are free
4. Create the new disks from the restore point
5. Deallocate the VM
6. Detach current data disks
7. Attach restored data disks
8. Swap the OS disk
9. Start the VM
10. Report

Steps 4-9 are mutating and are skipped in dry-run mode. The run stops at the
first failed step; the report then names the step and the manual recovery.
Original disks are never deleted.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from azrestore.azure_session import AzureSession
from azrestore.disk_recreation import DEFAULT_SUFFIX, DiskRecreator
from azrestore.exceptions import DiskCreationFailedError
from azrestore.models import PreRestoreDiskSet, RestoredDisk, VirtualMachine
from azrestore.pipeline import Pipeline, StepResult
from azrestore.restore_point_selector import RestorePointSelection, RestorePointSelector
from azrestore.vm_inspector import VMInspector
from azrestore.vm_mutation import (
    MUTATION_STEPS,
    STEP_ATTACH,
    STEP_DEALLOCATE,
    STEP_DETACH,
    STEP_START,
    STEP_SWAP_OS,
    VMMutationSequencer,
    recovery_guidance,
)

logger = logging.getLogger(__name__)

STEP_RESOLVE_VM = "resolve-vm"
STEP_SELECT = "select-restore-point"
STEP_PLAN = "plan-disks"
STEP_CREATE = "create-disks"


@dataclass
class RestoreOptions:
    """Inputs of a restore run."""

    vm_name: str
    resource_group: str
    collection_name: str | None = None
    restore_point_name: str | None = None
    suffix: str = DEFAULT_SUFFIX
    keep_original_disks: bool = False
    dry_run: bool = False


@dataclass
class RestoreReport:
    """Outcome of a restore run."""

    vm_name: str
    resource_group: str
    subscription_id: str
    dry_run: bool
    keep_original_disks: bool
    steps: list[StepResult] = field(default_factory=list)
    collection_name: str | None = None
    restore_point_name: str | None = None
    restore_point_created: datetime | None = None
    planned_disks: list[RestoredDisk] = field(default_factory=list)
    created_disks: list[str] = field(default_factory=list)
    original_disks: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    failed_step: str | None = None
    error: str | None = None
    remediation: list[str] = field(default_factory=list)
    cleanup_commands: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.failed_step is None


@dataclass
class _RunState:
    vm: VirtualMachine | None = None
    pre_restore: PreRestoreDiskSet | None = None
    selection: RestorePointSelection | None = None
    planned: list[RestoredDisk] = field(default_factory=list)
    created: list[str] = field(default_factory=list)


class RestoreOrchestrator:
    """Restore a VM's disks from a restore point.

    Example:
        >>> session = AzureSession("00000000-0000-0000-0000-000000000000", read_only=True)
        >>> options = RestoreOptions(vm_name="vm1", resource_group="rg1", dry_run=True)
        >>> report = RestoreOrchestrator(session, options).run()
    """

    def __init__(self, session: AzureSession, options: RestoreOptions):
        self.session = session
        self.options = options
        self.inspector = VMInspector(session)
        self.selector = RestorePointSelector(session)
        self.recreator = DiskRecreator(session, self.inspector)
        self.sequencer = VMMutationSequencer(session)
        self._state = _RunState()

    def run(self) -> RestoreReport:
        """Run the whole restore and return its report."""
        opts = self.options
        pipeline = Pipeline(dry_run=opts.dry_run)
        pipeline.add(STEP_RESOLVE_VM, self._resolve_vm, f"Resolve VM {opts.vm_name}")
        pipeline.add(STEP_SELECT, self._select, "Select restore point")
        pipeline.add(STEP_PLAN, self._plan, "Plan restored disks")
        pipeline.add(STEP_CREATE, self._create, "Create disks from restore point", mutating=True)
        pipeline.add(
            STEP_DEALLOCATE,
            lambda: self.sequencer.deallocate(self._vm),
            f"Deallocate VM {opts.vm_name}",
            mutating=True,
        )
        pipeline.add(
            STEP_DETACH,
            lambda: self.sequencer.detach_data_disks(self._vm),
            "Detach current data disks",
            mutating=True,
        )
        pipeline.add(
            STEP_ATTACH,
            lambda: self.sequencer.attach_data_disks(self._vm, self._state.planned),
            "Attach restored data disks",
            mutating=True,
        )
        pipeline.add(
            STEP_SWAP_OS,
            lambda: self.sequencer.swap_os_disk(self._vm, self._state.planned),
            "Swap OS disk",
            mutating=True,
        )
        pipeline.add(
            STEP_START,
            lambda: self.sequencer.start(self._vm),
            f"Start VM {opts.vm_name}",
            mutating=True,
        )

        outcome = pipeline.run()
        report = self._build_report(outcome.results)
        if report.succeeded:
            logger.info(
                f"Restore of {opts.vm_name} {'planned' if opts.dry_run else 'complete'}: "
                f"{report.restore_point_name}"
            )
        return report

    @property
    def _vm(self) -> VirtualMachine:
        if self._state.vm is None:
            raise RuntimeError("VM not resolved")
        return self._state.vm

    def _resolve_vm(self) -> VirtualMachine:
        vm = self.inspector.get_vm(self.options.vm_name, self.options.resource_group)
        self._state.vm = vm
        self._state.pre_restore = PreRestoreDiskSet.capture(vm)
        return vm

    def _select(self) -> RestorePointSelection:
        selection = self.selector.select(
            self.options.resource_group,
            self.options.vm_name,
            self.options.collection_name,
            self.options.restore_point_name,
        )
        self._state.selection = selection
        return selection

    def _plan(self) -> list[RestoredDisk]:
        selection = self._state.selection
        if selection is None:
            raise RuntimeError("Restore point not selected")
        planned = self.recreator.plan(self._vm, selection.restore_point, self.options.suffix)
        self.recreator.check_name_conflicts(planned, self.options.resource_group)
        self._state.planned = planned
        return planned

    def _create(self) -> list[RestoredDisk]:
        try:
            created = self.recreator.create_all(
                self._state.planned, self.options.resource_group, self._vm.location
            )
        except DiskCreationFailedError as e:
            self._state.created = list(e.created)
            raise
        self._state.created = [d.name for d in created]
        return created

    def _build_report(self, results: list[StepResult]) -> RestoreReport:
        opts = self.options
        state = self._state
        report = RestoreReport(
            vm_name=opts.vm_name,
            resource_group=opts.resource_group,
            subscription_id=self.session.subscription_id,
            dry_run=opts.dry_run,
            keep_original_disks=opts.keep_original_disks,
            steps=results,
            planned_disks=state.planned,
            created_disks=list(state.created),
            warnings=list(self.recreator.warnings),
        )
        if state.selection:
            report.collection_name = state.selection.collection.name
            report.restore_point_name = state.selection.restore_point.name
            report.restore_point_created = state.selection.restore_point.created
        if state.pre_restore:
            report.original_disks = state.pre_restore.names()

        failed = next((r for r in results if not r.ok), None)
        if failed is not None:
            report.failed_step = failed.step
            report.error = str(failed.error)
            report.remediation = self._remediation(failed.step)
        elif not opts.dry_run and not opts.keep_original_disks and state.pre_restore:
            report.cleanup_commands = state.pre_restore.delete_commands(
                opts.resource_group, self.session.subscription_id
            )
        return report

    def _remediation(self, step: str) -> list[str]:
        state = self._state
        if step in (STEP_RESOLVE_VM, STEP_SELECT, STEP_PLAN):
            return ["No changes were made."]

        if step == STEP_CREATE:
            lines = ["The VM was not modified."]
            if state.created:
                lines.append("Delete the partially created disks:")
                lines.extend(
                    f"  az disk delete --subscription {self.session.subscription_id} "
                    f"--resource-group {self.options.resource_group} --name {name} --yes"
                    for name in state.created
                )
            return lines

        if step in MUTATION_STEPS and state.vm and state.pre_restore:
            return recovery_guidance(step, state.vm, state.pre_restore, state.planned) + [
                f"Original disks (not deleted): {', '.join(state.pre_restore.names())}"
            ]
        return []


__all__ = ["RestoreOptions", "RestoreOrchestrator", "RestoreReport"]
