"""
Depot Core Module.

Provides foundational types, cancellation and exceptions shared by the
services and the API layer.
"""

__all__ = [
    "CancellationToken",
    "DeletionBehavior",
    "IndexingResult",
    "PackageAddResult",
    "PackageIdentity",
    "PackageMetadata",
    "PackageState",
    "PackageVersion",
    "is_valid_package_id",
    # Exceptions
    "DepotError",
    "ConfigurationError",
    "InvalidPackageError",
    "MalformedUploadError",
    "PackageStorageError",
    "UploadCancelledError",
    "UploadTooLargeError",
]

from depot.core.cancellation import CancellationToken
from depot.core.exceptions import (
    ConfigurationError,
    DepotError,
    InvalidPackageError,
    MalformedUploadError,
    PackageStorageError,
    UploadCancelledError,
    UploadTooLargeError,
)
from depot.core.models import (
    DeletionBehavior,
    IndexingResult,
    PackageAddResult,
    PackageIdentity,
    PackageMetadata,
    PackageState,
    PackageVersion,
    is_valid_package_id,
)
