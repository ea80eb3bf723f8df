"""
Core domain models for Depot.

Defines package identities, versions and the result variants exchanged
between the publish handler and its collaborators.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

_PACKAGE_ID_PATTERN = re.compile(r"[A-Za-z0-9_][A-Za-z0-9._-]*")

# Longest package id accepted
MAX_PACKAGE_ID_LENGTH = 100

_VERSION_PATTERN = re.compile(
    r"""
    ^
    (?P<release>[0-9]+(?:\.[0-9]+){1,3})
    (?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?
    (?:\+(?P<metadata>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?
    $
    """,
    re.VERBOSE,
)


def is_valid_package_id(package_id: str) -> bool:
    """Check that a package id is non-empty and made of safe path characters."""
    return (
        len(package_id) <= MAX_PACKAGE_ID_LENGTH
        and _PACKAGE_ID_PATTERN.fullmatch(package_id) is not None
        and ".." not in package_id
    )


class IndexingResult(Enum):
    """Outcome of attempting to admit a new artifact into the registry."""

    INVALID_PACKAGE = "invalid_package"
    PACKAGE_ALREADY_EXISTS = "package_already_exists"
    SUCCESS = "success"


class PackageAddResult(Enum):
    """Outcome of adding package metadata to the metadata store."""

    SUCCESS = "success"
    PACKAGE_ALREADY_EXISTS = "package_already_exists"


class PackageState(Enum):
    """Listing state of a stored package version."""

    LISTED = "listed"
    UNLISTED = "unlisted"


class DeletionBehavior(Enum):
    """What a delete request does to an existing package version."""

    UNLIST = "unlist"
    HARD_DELETE = "hard_delete"


@dataclass(frozen=True, eq=False)
class PackageVersion:
    """
    A semantic package version.

    Accepts ``Major.Minor[.Patch[.Revision]][-Prerelease][+Metadata]``.
    Two versions are equal when their normalized forms match; prerelease
    labels compare case-insensitively and build metadata is ignored.
    """

    major: int
    minor: int
    patch: int = 0
    revision: int = 0
    prerelease: str | None = None
    metadata: str | None = None
    original: str = field(default="", compare=False)

    @classmethod
    def parse(cls, text: str) -> "PackageVersion":
        """
        Parse a version string.

        Raises:
            ValueError: If the text is not a valid version
        """
        version = cls.try_parse(text)
        if version is None:
            raise ValueError(f"Invalid package version: {text!r}")
        return version

    @classmethod
    def try_parse(cls, text: str | None) -> "PackageVersion | None":
        """Parse a version string, returning None when it is malformed."""
        if not text:
            return None

        candidate = text.strip()
        match = _VERSION_PATTERN.match(candidate)
        if not match:
            return None

        parts = [int(p) for p in match.group("release").split(".")]
        parts.extend([0] * (4 - len(parts)))

        return cls(
            major=parts[0],
            minor=parts[1],
            patch=parts[2],
            revision=parts[3],
            prerelease=match.group("prerelease"),
            metadata=match.group("metadata"),
            original=candidate,
        )

    @property
    def is_prerelease(self) -> bool:
        return self.prerelease is not None

    @property
    def normalized(self) -> str:
        """Normalized string form: three numeric parts minimum, no build metadata."""
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.revision:
            text += f".{self.revision}"
        if self.prerelease:
            text += f"-{self.prerelease}"
        return text

    def _key(self) -> tuple[int, int, int, int, str]:
        return (
            self.major,
            self.minor,
            self.patch,
            self.revision,
            (self.prerelease or "").lower(),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageVersion):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self.normalized


@dataclass(frozen=True, eq=False)
class PackageIdentity:
    """Unique (id, version) pair naming one publishable artifact."""

    id: str
    version: PackageVersion

    @property
    def lower_id(self) -> str:
        return self.id.lower()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageIdentity):
            return NotImplemented
        return self.lower_id == other.lower_id and self.version == other.version

    def __hash__(self) -> int:
        return hash((self.lower_id, self.version))

    def __str__(self) -> str:
        return f"{self.id} {self.version}"


class PackageMetadata(BaseModel):
    """Metadata record for a stored package version."""

    package_id: str = Field(description="Package id with original casing")
    version: str = Field(description="Normalized package version")
    original_version: str = Field(description="Version string as published")
    authors: str | None = Field(default=None, description="Package authors")
    description: str | None = Field(default=None, description="Package description")
    is_prerelease: bool = Field(default=False, description="Whether the version is a prerelease")
    state: PackageState = Field(default=PackageState.LISTED, description="Listing state")
    content_hash: str | None = Field(default=None, description="SHA256 hash of the artifact")
    size_bytes: int | None = Field(default=None, description="Artifact size in bytes")
    published_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        description="ISO timestamp of publication",
    )

    @property
    def lower_id(self) -> str:
        return self.package_id.lower()

    @property
    def listed(self) -> bool:
        return self.state is PackageState.LISTED
