"""
Package indexing.

Admits a new artifact into the registry: reads the manifest, rejects
duplicates, stores the artifact and records its metadata as listed.
"""

import logging
from typing import BinaryIO

from depot.core.cancellation import CancellationToken
from depot.core.exceptions import InvalidPackageError
from depot.core.models import IndexingResult, PackageAddResult, PackageMetadata
from depot.services.packages import SqlitePackageService
from depot.services.reader import read_package
from depot.services.storage import FileSystemPackageStorage, hash_stream

logger = logging.getLogger(__name__)


class DefaultIndexingService:
    """
    Indexing engine over the metadata store and artifact storage.

    Each call either fully indexes a version or leaves no trace of it:
    claimed metadata is removed again if the artifact cannot be stored.
    """

    def __init__(self, packages: SqlitePackageService, storage: FileSystemPackageStorage):
        self._packages = packages
        self._storage = storage

    def index(self, stream: BinaryIO, cancellation: CancellationToken) -> IndexingResult:
        """
        Index a package artifact.

        Args:
            stream: Seekable stream holding the artifact
            cancellation: Token checked between steps

        Returns:
            IndexingResult for the artifact

        Raises:
            UploadCancelledError: If the token is cancelled before the artifact is stored
            PackageStorageError: If the artifact cannot be stored
        """
        cancellation.raise_if_cancelled()

        try:
            manifest = read_package(stream)
        except InvalidPackageError as e:
            logger.info(
                "Rejected invalid package",
                extra={"event": "package_invalid", "reason": e.reason, "error": e.message},
            )
            return IndexingResult.INVALID_PACKAGE

        identity = manifest.identity
        if self._packages.exists(identity.id, identity.version):
            logger.info(
                "Package already exists",
                extra={
                    "event": "package_exists",
                    "package_id": identity.id,
                    "version": identity.version.normalized,
                },
            )
            return IndexingResult.PACKAGE_ALREADY_EXISTS

        cancellation.raise_if_cancelled()
        content_hash, size_bytes = hash_stream(stream)

        metadata = PackageMetadata(
            package_id=identity.id,
            version=identity.version.normalized,
            original_version=identity.version.original,
            authors=manifest.authors,
            description=manifest.description,
            is_prerelease=identity.version.is_prerelease,
            content_hash=content_hash,
            size_bytes=size_bytes,
        )

        # The unique (id, version) constraint serializes concurrent publishes
        if self._packages.add(metadata) is PackageAddResult.PACKAGE_ALREADY_EXISTS:
            logger.warning(
                "Package was published concurrently",
                extra={
                    "event": "package_exists",
                    "package_id": identity.id,
                    "version": identity.version.normalized,
                },
            )
            return IndexingResult.PACKAGE_ALREADY_EXISTS

        try:
            cancellation.raise_if_cancelled()
            stored = self._storage.save(identity, stream)
        except Exception:
            self._packages.hard_delete(identity.id, identity.version)
            raise

        logger.info(
            "Indexed package",
            extra={
                "event": "package_indexed",
                "package_id": identity.id,
                "version": identity.version.normalized,
                "size_bytes": stored.size_bytes,
            },
        )
        return IndexingResult.SUCCESS
