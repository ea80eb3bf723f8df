"""
Package deletion.

Applies the configured deletion behavior to a package version: unlisting
hides it from listings, hard deletion removes its metadata and artifact.
"""

import logging

from depot.core.models import DeletionBehavior, PackageVersion
from depot.services.packages import SqlitePackageService
from depot.services.storage import FileSystemPackageStorage

logger = logging.getLogger(__name__)


class DefaultDeletionService:
    """Deletion engine over the metadata store and artifact storage."""

    def __init__(
        self,
        packages: SqlitePackageService,
        storage: FileSystemPackageStorage,
        behavior: DeletionBehavior = DeletionBehavior.UNLIST,
    ):
        self._packages = packages
        self._storage = storage
        self._behavior = behavior

    @property
    def behavior(self) -> DeletionBehavior:
        return self._behavior

    def try_delete(self, package_id: str, version: PackageVersion) -> bool:
        """
        Delete a package version according to the configured behavior.

        With UNLIST, a version that is already unlisted counts as absent.

        Returns:
            False if there was nothing to delete
        """
        if self._behavior is DeletionBehavior.UNLIST:
            return self._packages.unlist(package_id, version)

        if not self._packages.hard_delete(package_id, version):
            return False

        self._storage.delete(package_id, version)
        logger.info(
            "Hard deleted package",
            extra={
                "event": "package_deleted",
                "package_id": package_id,
                "version": version.normalized,
            },
        )
        return True
