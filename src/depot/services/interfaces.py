"""
Capability interfaces consumed by the publish handler.

Each protocol names exactly the operations the handler needs so concrete
implementations can be swapped for test doubles at application start.
"""

from typing import BinaryIO, Protocol

from depot.core.cancellation import CancellationToken
from depot.core.models import IndexingResult, PackageVersion


class AuthenticationService(Protocol):
    """Validates a caller-supplied API key."""

    def authenticate(self, api_key: str | None) -> bool:
        """Return True if the key may perform mutating operations."""
        ...


class IndexingService(Protocol):
    """Admits a new package artifact into the registry."""

    def index(self, stream: BinaryIO, cancellation: CancellationToken) -> IndexingResult:
        """Parse, validate, persist and list the artifact in a seekable stream."""
        ...


class PackageService(Protocol):
    """Package metadata store operations the handler relies on."""

    def relist(self, package_id: str, version: PackageVersion) -> bool:
        """Mark a version as listed. Returns False if it does not exist."""
        ...


class PackageDeletionService(Protocol):
    """Removes package versions according to the configured policy."""

    def try_delete(self, package_id: str, version: PackageVersion) -> bool:
        """Delete or unlist a version. Returns False if it does not exist."""
        ...
