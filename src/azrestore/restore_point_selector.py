"""Restore point selection.

Resolves exactly one restore point, plus its parent collection, for a VM:

- An explicit collection name is used directly.
- Otherwise collections in the resource group are discovered. With several,
  the one holding the newest restore point wins; empty collections are
  ignored.
- An explicit restore point name is fetched directly; otherwise the newest
  restore point in the collection is used.

Equal creation times are broken by name: the name that sorts last wins.
"""

import logging
from dataclasses import dataclass

from azrestore.azure_session import AzureSession
from azrestore.exceptions import (
    AzRestoreError,
    NoCollectionsFoundError,
    NoRestorePointsFoundError,
)
from azrestore.models import RestorePoint, RestorePointCollection

logger = logging.getLogger(__name__)


@dataclass
class RestorePointSelection:
    """The chosen restore point and the collection it belongs to."""

    collection: RestorePointCollection
    restore_point: RestorePoint


class RestorePointSelector:
    """Select a restore point for a VM."""

    def __init__(self, session: AzureSession):
        self.session = session

    def select(
        self,
        resource_group: str,
        vm_name: str,
        collection_name: str | None = None,
        restore_point_name: str | None = None,
    ) -> RestorePointSelection:
        """Select one restore point, with its full disk manifest.

        Args:
            resource_group: Resource group holding the collections
            vm_name: VM the restore point belongs to
            collection_name: Use this collection instead of discovering one
            restore_point_name: Use this restore point instead of the newest

        Returns:
            RestorePointSelection

        Raises:
            NotFoundError: If a named collection or restore point does not exist
            NoCollectionsFoundError: If the resource group has no collections
            NoRestorePointsFoundError: If no candidate collection has restore points
            InvalidManifestError: If the restore point's manifest is malformed
        """
        if collection_name:
            collection = self.get_collection(resource_group, collection_name)
        else:
            collection = self._discover_collection(resource_group, vm_name)

        logger.info(f"Using restore point collection: {collection.name}")

        if restore_point_name:
            restore_point = self.get_restore_point(
                resource_group, collection.name, restore_point_name
            )
        else:
            latest = collection.latest_restore_point()
            if latest is None:
                raise NoRestorePointsFoundError(
                    f"Collection '{collection.name}' has no restore points"
                )
            # Collection listings may not carry the disk manifest
            restore_point = self.get_restore_point(resource_group, collection.name, latest.name)

        restore_point.validate_manifest()
        logger.info(
            f"Using restore point: {restore_point.name} "
            f"(created {restore_point.created.isoformat()}, {len(restore_point.manifest)} disks)"
        )
        return RestorePointSelection(collection=collection, restore_point=restore_point)

    def list_collections(self, resource_group: str) -> list[RestorePointCollection]:
        """List restore point collections in a resource group (without restore points)."""
        data = self.session.query(
            ["restore-point", "collection", "list", "--resource-group", resource_group],
            resource=("Resource group", resource_group),
        )
        try:
            return [RestorePointCollection.from_az_json(c, resource_group) for c in data or []]
        except KeyError as e:
            raise AzRestoreError(f"Invalid Azure response for collections: {e}") from e

    def get_collection(self, resource_group: str, collection_name: str) -> RestorePointCollection:
        """Get a collection with its restore points.

        Raises:
            NotFoundError: If the collection does not exist
        """
        data = self.session.query(
            [
                "restore-point",
                "collection",
                "show",
                "--resource-group",
                resource_group,
                "--collection-name",
                collection_name,
                "--restore-points",
            ],
            resource=("Restore point collection", collection_name),
        )
        try:
            return RestorePointCollection.from_az_json(data, resource_group)
        except (KeyError, TypeError) as e:
            raise AzRestoreError(f"Invalid Azure response for '{collection_name}': {e}") from e

    def get_restore_point(
        self, resource_group: str, collection_name: str, restore_point_name: str
    ) -> RestorePoint:
        """Get a restore point with its full disk manifest.

        Raises:
            NotFoundError: If the restore point does not exist
        """
        data = self.session.query(
            [
                "restore-point",
                "show",
                "--resource-group",
                resource_group,
                "--collection-name",
                collection_name,
                "--name",
                restore_point_name,
            ],
            resource=("Restore point", restore_point_name),
        )
        try:
            return RestorePoint.from_az_json(data, collection_name)
        except (KeyError, TypeError) as e:
            raise AzRestoreError(f"Invalid Azure response for '{restore_point_name}': {e}") from e

    def _discover_collection(self, resource_group: str, vm_name: str) -> RestorePointCollection:
        candidates = [
            c
            for c in self.list_collections(resource_group)
            if c.source_vm_name is None or c.source_vm_name.lower() == vm_name.lower()
        ]
        if not candidates:
            raise NoCollectionsFoundError(
                f"No restore point collections found for VM '{vm_name}' "
                f"in resource group '{resource_group}'"
            )

        if len(candidates) == 1:
            return self.get_collection(resource_group, candidates[0].name)

        logger.info(
            f"Found {len(candidates)} collections, picking the one with the newest restore point"
        )
        best: tuple[RestorePoint, RestorePointCollection] | None = None
        for candidate in candidates:
            collection = self.get_collection(resource_group, candidate.name)
            latest = collection.latest_restore_point()
            if latest is None:
                logger.debug(f"Skipping empty collection: {collection.name}")
                continue
            if best is None or (latest.created, collection.name) > (
                best[0].created,
                best[1].name,
            ):
                best = (latest, collection)

        if best is None:
            raise NoRestorePointsFoundError(
                f"None of the {len(candidates)} collections in '{resource_group}' "
                "contain restore points"
            )
        return best[1]


__all__ = ["RestorePointSelection", "RestorePointSelector"]
