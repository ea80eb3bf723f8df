"""Pytest configuration and fixtures."""

import io
import tempfile
import zipfile
from pathlib import Path
from typing import BinaryIO, Callable, Generator
from unittest.mock import MagicMock

import pytest

from depot.config import DepotSettings
from depot.core.cancellation import CancellationToken
from depot.core.models import DeletionBehavior, IndexingResult

TEST_API_KEY = "test-api-key"

NUSPEC_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<package xmlns="http://schemas.microsoft.com/packaging/2013/05/nuspec.xsd">
  <metadata>
    <id>{package_id}</id>
    <version>{version}</version>
    <authors>Test Author</authors>
    <description>A package for unit testing</description>
  </metadata>
</package>
"""


def build_package(
    package_id: str = "Test.Package",
    version: str = "1.0.0",
    *,
    manifest: str | None = None,
    extra_files: dict[str, bytes] | None = None,
) -> bytes:
    """Build package archive bytes with a manifest and optional extra entries."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        if manifest is None:
            manifest = NUSPEC_TEMPLATE.format(package_id=package_id, version=version)
        if manifest:
            archive.writestr(f"{package_id}.nuspec", manifest)
        archive.writestr("lib/net8.0/Test.dll", b"\x00binary\x00" * 64)
        for name, content in (extra_files or {}).items():
            archive.writestr(name, content)
    return buffer.getvalue()


class RecordingIndexer:
    """Indexing double that records what it was given and returns a fixed result."""

    def __init__(self, result: IndexingResult = IndexingResult.SUCCESS, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls: list[bytes] = []
        self.scratch_paths: list[Path] = []

    def index(self, stream: BinaryIO, cancellation: CancellationToken) -> IndexingResult:
        self.scratch_paths.append(Path(stream.name))
        self.calls.append(stream.read())
        stream.seek(0)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def scratch_dir(temp_dir: Path) -> Path:
    """Provide an isolated directory for upload scratch files."""
    path = temp_dir / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def settings(temp_dir: Path, scratch_dir: Path) -> DepotSettings:
    """Settings with every path inside the temporary directory."""
    return DepotSettings(
        api_key=TEST_API_KEY,
        deletion_behavior=DeletionBehavior.UNLIST,
        storage_path=temp_dir / "packages",
        database_path=temp_dir / "depot.db",
        scratch_path=scratch_dir,
        max_package_size=10 * 1024 * 1024,
        log_level="DEBUG",
    )


@pytest.fixture
def make_package() -> Callable[..., bytes]:
    """Provide the package archive builder."""
    return build_package


@pytest.fixture
def api_headers() -> dict[str, str]:
    """Headers carrying the valid test API key."""
    return {"X-NuGet-ApiKey": TEST_API_KEY}


@pytest.fixture
def mock_authentication() -> MagicMock:
    """Authentication double accepting only the test API key."""
    auth = MagicMock()
    auth.authenticate.side_effect = lambda api_key: api_key == TEST_API_KEY
    return auth


@pytest.fixture
def mock_packages() -> MagicMock:
    """Package metadata double whose relist reports success."""
    packages = MagicMock()
    packages.relist.return_value = True
    return packages


@pytest.fixture
def mock_deletion() -> MagicMock:
    """Deletion double whose try_delete reports success."""
    deletion = MagicMock()
    deletion.try_delete.return_value = True
    return deletion


@pytest.fixture
def recording_indexer() -> RecordingIndexer:
    """Indexing double returning SUCCESS."""
    return RecordingIndexer()
