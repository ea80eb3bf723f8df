"""
Depot Services Module.

Default implementations of the collaborators used by the publish handler:
authentication, indexing, metadata storage, artifact storage and deletion.
"""

__all__ = [
    "API_KEY_HEADER",
    "ApiKeyAuthenticationService",
    "AuthenticationService",
    "DefaultDeletionService",
    "DefaultIndexingService",
    "FileSystemPackageStorage",
    "IndexingService",
    "PackageDeletionService",
    "PackageManifest",
    "PackageService",
    "SqlitePackageService",
    "StoredPackage",
    "hash_api_key",
    "read_package",
]

from depot.services.auth import API_KEY_HEADER, ApiKeyAuthenticationService, hash_api_key
from depot.services.deletion import DefaultDeletionService
from depot.services.indexing import DefaultIndexingService
from depot.services.interfaces import (
    AuthenticationService,
    IndexingService,
    PackageDeletionService,
    PackageService,
)
from depot.services.packages import SqlitePackageService
from depot.services.reader import PackageManifest, read_package
from depot.services.storage import FileSystemPackageStorage, StoredPackage
