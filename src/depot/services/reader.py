"""
Package archive reader.

A package is a zip archive with exactly one ``.nuspec`` XML manifest at the
archive root. Only the manifest fields needed for indexing are read.
"""

import logging
import zipfile
import zlib
from dataclasses import dataclass
from typing import BinaryIO
from xml.etree import ElementTree

from depot.core.exceptions import InvalidPackageError
from depot.core.models import PackageIdentity, PackageVersion, is_valid_package_id

logger = logging.getLogger(__name__)

MANIFEST_EXTENSION = ".nuspec"

# Manifests are small; anything larger is rejected without parsing
MAX_MANIFEST_SIZE = 1024 * 1024


@dataclass(frozen=True)
class PackageManifest:
    """Fields read from a package manifest."""

    identity: PackageIdentity
    authors: str | None = None
    description: str | None = None


def _local_name(tag: str) -> str:
    """Strip an XML namespace from a tag name."""
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ElementTree.Element, name: str) -> str | None:
    for child in element:
        if _local_name(child.tag) == name:
            text = (child.text or "").strip()
            return text or None
    return None


def _find_manifest(archive: zipfile.ZipFile) -> zipfile.ZipInfo:
    manifests = [
        info
        for info in archive.infolist()
        if "/" not in info.filename and info.filename.lower().endswith(MANIFEST_EXTENSION)
    ]
    if not manifests:
        raise InvalidPackageError("Package has no manifest", reason="missing_manifest")
    if len(manifests) > 1:
        raise InvalidPackageError(
            "Package has more than one manifest",
            reason="multiple_manifests",
            details={"manifests": [m.filename for m in manifests]},
        )
    return manifests[0]


def parse_manifest(content: bytes) -> PackageManifest:
    """
    Parse manifest XML.

    Raises:
        InvalidPackageError: If the XML is malformed or lacks an id or version
    """
    try:
        root = ElementTree.fromstring(content)
    except ElementTree.ParseError as e:
        raise InvalidPackageError(f"Manifest is not valid XML: {e}", reason="malformed_manifest")

    metadata = next((el for el in root if _local_name(el.tag) == "metadata"), None)
    if metadata is None:
        raise InvalidPackageError("Manifest has no metadata element", reason="missing_metadata")

    package_id = _child_text(metadata, "id")
    if not package_id:
        raise InvalidPackageError("Manifest has no package id", reason="missing_id")
    if not is_valid_package_id(package_id):
        raise InvalidPackageError(
            "Manifest has an invalid package id",
            reason="invalid_id",
            details={"package_id": package_id},
        )

    raw_version = _child_text(metadata, "version")
    version = PackageVersion.try_parse(raw_version)
    if version is None:
        raise InvalidPackageError(
            "Manifest has no valid package version",
            reason="invalid_version",
            details={"version": raw_version},
        )

    return PackageManifest(
        identity=PackageIdentity(id=package_id, version=version),
        authors=_child_text(metadata, "authors"),
        description=_child_text(metadata, "description"),
    )


def read_package(stream: BinaryIO) -> PackageManifest:
    """
    Read the manifest of a package archive.

    The stream is left open and rewound so callers can re-read it.

    Args:
        stream: Seekable binary stream positioned anywhere

    Returns:
        PackageManifest for the archive

    Raises:
        InvalidPackageError: If the stream is not a valid package
    """
    stream.seek(0)
    try:
        with zipfile.ZipFile(stream) as archive:
            info = _find_manifest(archive)
            if info.file_size > MAX_MANIFEST_SIZE:
                raise InvalidPackageError(
                    "Manifest is too large",
                    reason="manifest_too_large",
                    details={"size": info.file_size},
                )
            content = archive.read(info)
    except (zipfile.BadZipFile, zlib.error) as e:
        raise InvalidPackageError(f"Package is not a zip archive: {e}", reason="not_a_zip")
    finally:
        stream.seek(0)

    manifest = parse_manifest(content)
    logger.debug(f"Read package manifest for {manifest.identity}")
    return manifest
