"""
Shared test fixtures and configuration for azrestore tests.

This module provides common fixtures used across all test types:
- An in-memory fake Azure CLI (FakeAzureCli) patched over subprocess.run
- Builders for VMs, disks and restore point collections
- Temporary config directories
"""

import json
import subprocess
from typing import Any
from unittest.mock import patch

import pytest

from azrestore.azure_cli_helper import clear_cache
from azrestore.azure_session import AzureSession

SUBSCRIPTION_ID = "00000000-1111-2222-3333-444444444444"
RESOURCE_GROUP = "rg1"
COLLECTION_KIND = "Microsoft.Compute/restorePointCollections"
LOCATION = "eastasia"

# Flags that never take a value
_FLAGS = {
    "--show-details",
    "--restore-points",
    "--all",
    "--enable-write-accelerator",
    "--yes",
}

# (leading words) of commands that change state
MUTATING_COMMANDS = (
    ("disk", "create"),
    ("vm", "deallocate"),
    ("vm", "disk", "detach"),
    ("vm", "disk", "attach"),
    ("vm", "update"),
    ("vm", "start"),
)


def _not_found(kind: str, name: str) -> subprocess.CompletedProcess:
    stderr = f"ERROR: (ResourceNotFound) The Resource '{kind}/{name}' was not found."
    return subprocess.CompletedProcess([], 3, "", stderr)


def _ok(payload: Any = None) -> subprocess.CompletedProcess:
    stdout = "" if payload is None else json.dumps(payload)
    return subprocess.CompletedProcess([], 0, stdout, "")


def _parse(cmd: list[str]) -> tuple[list[str], dict[str, Any]]:
    """Split az arguments into leading words and an option dict."""
    words: list[str] = []
    opts: dict[str, Any] = {}
    args = list(cmd[1:])
    while args and not args[0].startswith("--"):
        words.append(args.pop(0))
    while args:
        key = args.pop(0)
        if key in _FLAGS or not args:
            opts[key] = True
        else:
            opts[key] = args.pop(0)
    return words, opts


class FakeAzureCli:
    """In-memory stand-in for the az executable.

    Holds VMs, managed disks and restore point collections for one
    subscription and answers the az commands azrestore issues. Every call is
    recorded; commands containing a configured substring can be made to fail.
    """

    def __init__(self, subscription_id: str = SUBSCRIPTION_ID):
        self.subscription_id = subscription_id
        self.vms: dict[str, dict[str, Any]] = {}
        self.disks: dict[str, dict[str, Any]] = {}
        self.collections: dict[str, dict[str, Any]] = {}
        self.premium_sizes: set[str] = {"Standard_D2s_v3", "Standard_E4s_v5"}
        self.resiliency: dict[str, bool] = {}
        self.calls: list[list[str]] = []
        self.failures: list[tuple[str, str]] = []
        self.logged_in = True

    # ------------------------------------------------------------------
    # builders
    # ------------------------------------------------------------------

    def disk_id(self, resource_group: str, name: str) -> str:
        return (
            f"/subscriptions/{self.subscription_id}/resourceGroups/{resource_group}"
            f"/providers/Microsoft.Compute/disks/{name}"
        )

    def add_disk(
        self,
        name: str,
        sku: str = "Standard_LRS",
        resource_group: str = RESOURCE_GROUP,
        max_shares: int | None = None,
    ) -> dict[str, Any]:
        disk = {
            "name": name,
            "id": self.disk_id(resource_group, name),
            "location": LOCATION,
            "sku": {"name": sku},
            "maxShares": max_shares,
            "zones": None,
        }
        self.disks[name] = disk
        return disk

    def add_vm(
        self,
        name: str = "vm1",
        os_disk: tuple[str, str] = ("osdisk1", "Premium_LRS"),
        data_disks: list[tuple[str, int, str, str]] | None = None,
        resource_group: str = RESOURCE_GROUP,
        size: str = "Standard_D2s_v3",
        location: str = LOCATION,
        zone: str | None = None,
        power_state: str = "VM running",
    ) -> dict[str, Any]:
        """Add a VM and its disks.

        data_disks entries are (name, lun, sku, caching).
        """
        os_name, os_sku = os_disk
        self.add_disk(os_name, os_sku, resource_group)
        storage = {
            "osDisk": {
                "name": os_name,
                "caching": "ReadWrite",
                "managedDisk": {
                    "id": self.disk_id(resource_group, os_name),
                    "storageAccountType": os_sku,
                },
            },
            "dataDisks": [],
        }
        for disk_name, lun, sku, caching in data_disks or []:
            self.add_disk(disk_name, sku, resource_group)
            storage["dataDisks"].append(
                {
                    "name": disk_name,
                    "lun": lun,
                    "caching": caching,
                    "writeAcceleratorEnabled": False,
                    "managedDisk": {
                        "id": self.disk_id(resource_group, disk_name),
                        "storageAccountType": sku,
                    },
                }
            )
        vm = {
            "name": name,
            "id": (
                f"/subscriptions/{self.subscription_id}/resourceGroups/{resource_group}"
                f"/providers/Microsoft.Compute/virtualMachines/{name}"
            ),
            "location": location,
            "zones": [zone] if zone else None,
            "hardwareProfile": {"vmSize": size},
            "powerState": power_state,
            "storageProfile": storage,
            "virtualMachineScaleSet": None,
        }
        self.vms[name] = vm
        return vm

    def make_restore_point(
        self,
        name: str,
        created: str,
        collection: str,
        os_disk: str = "osdisk1",
        data_disks: list[tuple[str, int, str]] | None = None,
        resource_group: str = RESOURCE_GROUP,
    ) -> dict[str, Any]:
        """Build a restore point; data_disks entries are (name, lun, caching)."""
        base = (
            f"/subscriptions/{self.subscription_id}/resourceGroups/{resource_group}"
            f"/providers/Microsoft.Compute/restorePointCollections/{collection}"
            f"/restorePoints/{name}/diskRestorePoints"
        )
        return {
            "name": name,
            "timeCreated": created,
            "provisioningState": "Succeeded",
            "sourceMetadata": {
                "storageProfile": {
                    "osDisk": {
                        "name": os_disk,
                        "caching": "ReadWrite",
                        "diskRestorePoint": {"id": f"{base}/{os_disk}_abc"},
                    },
                    "dataDisks": [
                        {
                            "name": disk_name,
                            "lun": lun,
                            "caching": caching,
                            "writeAcceleratorEnabled": False,
                            "diskRestorePoint": {"id": f"{base}/{disk_name}_abc"},
                        }
                        for disk_name, lun, caching in data_disks or []
                    ],
                }
            },
        }

    def add_collection(
        self,
        name: str,
        vm_name: str | None = "vm1",
        restore_points: list[dict[str, Any]] | None = None,
        resource_group: str = RESOURCE_GROUP,
    ) -> dict[str, Any]:
        source = None
        if vm_name:
            source = {
                "id": (
                    f"/subscriptions/{self.subscription_id}/resourceGroups/{resource_group}"
                    f"/providers/Microsoft.Compute/virtualMachines/{vm_name}"
                ),
                "location": LOCATION,
            }
        collection = {
            "name": name,
            "location": LOCATION,
            "source": source,
            "restorePoints": list(restore_points or []),
        }
        self.collections[name] = collection
        return collection

    def fail_when(self, substring: str, stderr: str = "ERROR: (InternalError) boom") -> None:
        """Make every command whose joined text contains substring fail."""
        self.failures.append((substring, stderr))

    # ------------------------------------------------------------------
    # inspection
    # ------------------------------------------------------------------

    @property
    def mutation_calls(self) -> list[list[str]]:
        return [c for c in self.calls if self._is_mutating(c)]

    def calls_matching(self, substring: str) -> list[list[str]]:
        return [c for c in self.calls if substring in " ".join(c)]

    @staticmethod
    def _is_mutating(cmd: list[str]) -> bool:
        words, opts = _parse(cmd)
        if words[:1] == ["rest"]:
            return str(opts.get("--method", "get")).lower() != "get"
        return any(tuple(words[: len(m)]) == m for m in MUTATING_COMMANDS)

    # ------------------------------------------------------------------
    # dispatch
    # ------------------------------------------------------------------

    def __call__(self, cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
        self.calls.append(list(cmd))
        result = self._dispatch(cmd)
        result.args = cmd
        if kwargs.get("check") and result.returncode != 0:
            raise subprocess.CalledProcessError(
                result.returncode, cmd, result.stdout, result.stderr
            )
        return result

    def _dispatch(self, cmd: list[str]) -> subprocess.CompletedProcess:
        joined = " ".join(cmd)
        for substring, stderr in self.failures:
            if substring in joined:
                return subprocess.CompletedProcess(cmd, 1, "", stderr)

        if not self.logged_in:
            return subprocess.CompletedProcess(
                cmd, 1, "", "ERROR: Please run 'az login' to setup account."
            )

        words, opts = _parse(cmd)
        handler = getattr(self, "_" + "_".join(w.replace("-", "_") for w in words), None)
        if handler is None:
            return subprocess.CompletedProcess(cmd, 2, "", f"az: '{' '.join(words)}' unknown")
        return handler(opts)

    def _account_show(self, opts):
        return _ok({"id": self.subscription_id, "name": "Test Subscription"})

    def _vm_show(self, opts):
        vm = self.vms.get(opts["--name"])
        if vm is None:
            return _not_found("Microsoft.Compute/virtualMachines", opts["--name"])
        return _ok(vm)

    def _disk_show(self, opts):
        if "--ids" in opts:
            name = opts["--ids"].rsplit("/", 1)[-1]
        else:
            name = opts["--name"]
        disk = self.disks.get(name)
        if disk is None:
            return _not_found("Microsoft.Compute/disks", name)
        return _ok(disk)

    def _disk_create(self, opts):
        name = opts["--name"]
        disk = self.add_disk(name, opts["--sku"], opts["--resource-group"])
        disk["location"] = opts["--location"]
        disk["zones"] = [opts["--zone"]] if "--zone" in opts else None
        disk["creationData"] = {"sourceResourceId": opts["--source"]}
        return _ok(disk)

    def _restore_point_collection_list(self, opts):
        listed = []
        for collection in self.collections.values():
            entry = dict(collection)
            entry.pop("restorePoints")
            listed.append(entry)
        return _ok(listed)

    def _restore_point_collection_show(self, opts):
        collection = self.collections.get(opts["--collection-name"])
        if collection is None:
            return _not_found(COLLECTION_KIND, opts["--collection-name"])
        return _ok(collection)

    def _restore_point_show(self, opts):
        collection = self.collections.get(opts["--collection-name"])
        if collection is None:
            return _not_found(COLLECTION_KIND, opts["--collection-name"])
        for rp in collection["restorePoints"]:
            if rp["name"] == opts["--name"]:
                return _ok(rp)
        return _not_found("restorePoints", opts["--name"])

    def _vm_deallocate(self, opts):
        self.vms[opts["--name"]]["powerState"] = "VM deallocated"
        return _ok()

    def _vm_start(self, opts):
        self.vms[opts["--name"]]["powerState"] = "VM running"
        return _ok()

    def _vm_disk_detach(self, opts):
        vm = self.vms[opts["--vm-name"]]
        disks = vm["storageProfile"]["dataDisks"]
        vm["storageProfile"]["dataDisks"] = [d for d in disks if d["name"] != opts["--name"]]
        return _ok()

    def _vm_disk_attach(self, opts):
        vm = self.vms[opts["--vm-name"]]
        name = opts["--name"].rsplit("/", 1)[-1]
        disk = self.disks.get(name)
        if disk is None:
            return _not_found("Microsoft.Compute/disks", name)
        vm["storageProfile"]["dataDisks"].append(
            {
                "name": name,
                "lun": int(opts["--lun"]),
                "caching": opts.get("--caching", "None"),
                "writeAcceleratorEnabled": bool(opts.get("--enable-write-accelerator")),
                "managedDisk": {"id": disk["id"], "storageAccountType": disk["sku"]["name"]},
            }
        )
        return _ok(vm)

    def _vm_update(self, opts):
        vm = self.vms[opts["--name"]]
        if "--os-disk" in opts:
            name = opts["--os-disk"].rsplit("/", 1)[-1]
            disk = self.disks[name]
            vm["storageProfile"]["osDisk"] = {
                "name": name,
                "caching": "ReadWrite",
                "managedDisk": {"id": disk["id"], "storageAccountType": disk["sku"]["name"]},
            }
        return _ok(vm)

    def _vm_list_skus(self, opts):
        size = opts["--size"]
        premium = "True" if size in self.premium_sizes else "False"
        return _ok([{"name": size, "capabilities": [{"name": "PremiumIO", "value": premium}]}])

    def _rest(self, opts):
        url = opts["--url"]
        vm_name = url.split("/virtualMachines/", 1)[1].split("?", 1)[0]
        vm = self.vms.get(vm_name)
        if vm is None:
            return _not_found("Microsoft.Compute/virtualMachines", vm_name)

        method = opts["--method"].lower()
        if method == "patch":
            body = json.loads(opts["--body"])
            periodic = body["properties"]["resiliencyProfile"]["periodicRestorePoints"]
            self.resiliency[vm_name] = periodic["isEnabled"]

        properties: dict[str, Any] = {"hardwareProfile": vm["hardwareProfile"]}
        if vm_name in self.resiliency:
            properties["resiliencyProfile"] = {
                "periodicRestorePoints": {"isEnabled": self.resiliency[vm_name]}
            }
        return _ok({"name": vm_name, "id": vm["id"], "properties": properties})


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def az_path(monkeypatch):
    """Pin the az executable so tests never depend on a local install."""
    monkeypatch.setenv("AZRESTORE_AZ_PATH", "az")
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def fake_az():
    """Fake Azure CLI patched over subprocess.run."""
    fake = FakeAzureCli()
    with patch("azrestore.azure_session.subprocess.run", side_effect=fake):
        yield fake


@pytest.fixture
def session(fake_az):
    """AzureSession bound to the fake subscription."""
    return AzureSession(SUBSCRIPTION_ID)


@pytest.fixture
def read_only_session(fake_az):
    """Dry-run AzureSession bound to the fake subscription."""
    return AzureSession(SUBSCRIPTION_ID, read_only=True)


@pytest.fixture
def scenario_vm1(fake_az):
    """vm1 with osdisk1 (Premium_LRS) and data1 (LUN 0, Standard_LRS, ReadOnly).

    Collection rpc1 holds restore point rp-2025-01-01 covering both disks.
    """
    fake_az.add_vm(
        "vm1",
        os_disk=("osdisk1", "Premium_LRS"),
        data_disks=[("data1", 0, "Standard_LRS", "ReadOnly")],
    )
    rp = fake_az.make_restore_point(
        "rp-2025-01-01",
        "2025-01-01T00:00:00.1234567+00:00",
        "rpc1",
        data_disks=[("data1", 0, "ReadOnly")],
    )
    fake_az.add_collection("rpc1", "vm1", [rp])
    return fake_az


@pytest.fixture
def temp_config_dir(tmp_path, monkeypatch):
    """Point ConfigManager at a temporary ~/.azrestore directory."""
    from azrestore.config_manager import ConfigManager

    config_dir = tmp_path / ".azrestore"
    monkeypatch.setattr(ConfigManager, "DEFAULT_CONFIG_DIR", config_dir)
    monkeypatch.setattr(ConfigManager, "DEFAULT_CONFIG_FILE", config_dir / "config.toml")
    return config_dir
