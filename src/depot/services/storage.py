"""
Package artifact storage backend.

Stores artifacts on the local filesystem:
- {root}/{lower_id}/{version}/{lower_id}.{version}.nupkg
"""

import hashlib
import logging
import os
import shutil
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from depot.core.exceptions import PackageStorageError
from depot.core.models import PackageIdentity, PackageVersion, is_valid_package_id

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def hash_stream(stream: BinaryIO) -> tuple[str, int]:
    """
    Compute the SHA256 hash and size of a seekable stream.

    The stream is rewound before and after reading.
    """
    hasher = hashlib.sha256()
    size = 0
    stream.seek(0)
    for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
        hasher.update(chunk)
        size += len(chunk)
    stream.seek(0)
    return hasher.hexdigest(), size


@dataclass
class StoredPackage:
    """Result of saving a package artifact."""

    path: Path
    content_hash: str
    size_bytes: int


class FileSystemPackageStorage:
    """
    Artifact storage on the local filesystem.

    Writes go to a uniquely named temporary file in the version directory
    and are moved into place with os.replace, so readers never observe a
    partially written artifact.
    """

    def __init__(self, root: Path | None = None):
        """
        Initialize package storage.

        Args:
            root: Base directory for package storage (default: var/packages/)
        """
        self._root = root or Path("var/packages")
        self._root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    @property
    def root(self) -> Path:
        return self._root

    def _version_dir(self, package_id: str, version: PackageVersion) -> Path:
        if not is_valid_package_id(package_id):
            raise PackageStorageError("Invalid package id", package_id=package_id)
        return self._root / package_id.lower() / version.normalized.lower()

    def package_path(self, package_id: str, version: PackageVersion) -> Path:
        """Get the artifact path for a package version."""
        lower_id = package_id.lower()
        file_name = f"{lower_id}.{version.normalized.lower()}.nupkg"
        return self._version_dir(package_id, version) / file_name

    def save(self, identity: PackageIdentity, stream: BinaryIO) -> StoredPackage:
        """
        Save a package artifact from a seekable stream.

        Args:
            identity: Package identity the artifact belongs to
            stream: Seekable binary stream holding the artifact

        Returns:
            StoredPackage with path, hash and size

        Raises:
            PackageStorageError: If the artifact cannot be written
        """
        target = self.package_path(identity.id, identity.version)
        temp_path = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
        hasher = hashlib.sha256()
        size = 0

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            stream.seek(0)
            with open(temp_path, "wb") as f:
                for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
                    hasher.update(chunk)
                    size += len(chunk)
                    f.write(chunk)
            os.replace(temp_path, target)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise PackageStorageError(
                f"Failed to store package: {e}",
                package_id=identity.id,
                version=identity.version.normalized,
            ) from e
        finally:
            stream.seek(0)

        logger.info(
            "Stored package artifact",
            extra={
                "event": "package_stored",
                "package_id": identity.id,
                "version": identity.version.normalized,
                "size_bytes": size,
            },
        )
        return StoredPackage(path=target, content_hash=hasher.hexdigest(), size_bytes=size)

    def delete(self, package_id: str, version: PackageVersion) -> bool:
        """
        Delete a stored package version.

        Returns:
            True if an artifact was removed

        Raises:
            PackageStorageError: If the artifact exists but cannot be removed
        """
        version_dir = self._version_dir(package_id, version)
        with self._lock:
            if not version_dir.exists():
                return False
            try:
                shutil.rmtree(version_dir)
            except OSError as e:
                raise PackageStorageError(
                    f"Failed to delete package: {e}",
                    package_id=package_id,
                    version=version.normalized,
                ) from e

            # Drop the id directory once its last version is gone
            id_dir = version_dir.parent
            try:
                id_dir.rmdir()
            except OSError:
                pass

        logger.info(
            "Deleted package artifact",
            extra={
                "event": "package_artifact_deleted",
                "package_id": package_id,
                "version": version.normalized,
            },
        )
        return True
