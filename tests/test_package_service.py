"""Tests for the SQLite package metadata store."""

import threading
from pathlib import Path
from typing import Generator

import pytest

from depot.core.models import PackageAddResult, PackageMetadata, PackageState, PackageVersion
from depot.services.packages import SqlitePackageService


@pytest.fixture
def store(temp_dir: Path) -> Generator[SqlitePackageService, None, None]:
    service = SqlitePackageService(temp_dir / "depot.db")
    yield service
    service.close()


def _metadata(package_id: str = "Foo.Bar", version: str = "1.0.0", **kwargs) -> PackageMetadata:
    return PackageMetadata(package_id=package_id, version=version, original_version=version, **kwargs)


V1 = PackageVersion.parse("1.0.0")


class TestSqlitePackageService:
    """Tests for SqlitePackageService."""

    def test_add_and_find(self, store: SqlitePackageService) -> None:
        result = store.add(_metadata(authors="Someone", content_hash="abc", size_bytes=42))

        assert result is PackageAddResult.SUCCESS
        found = store.find("foo.bar", PackageVersion.parse("1.0"))
        assert found is not None
        assert found.package_id == "Foo.Bar"
        assert found.authors == "Someone"
        assert found.size_bytes == 42
        assert found.state is PackageState.LISTED

    def test_add_duplicate(self, store: SqlitePackageService) -> None:
        store.add(_metadata())
        assert store.add(_metadata(package_id="FOO.BAR")) is PackageAddResult.PACKAGE_ALREADY_EXISTS

    def test_prerelease_labels_case_insensitive(self, store: SqlitePackageService) -> None:
        store.add(_metadata(version="1.0.0-Beta"))
        assert store.add(_metadata(version="1.0.0-beta")) is PackageAddResult.PACKAGE_ALREADY_EXISTS

    def test_exists(self, store: SqlitePackageService) -> None:
        assert not store.exists("Foo.Bar", V1)
        store.add(_metadata())
        assert store.exists("Foo.Bar", V1)

    def test_unlist(self, store: SqlitePackageService) -> None:
        store.add(_metadata())

        assert store.unlist("Foo.Bar", V1)
        found = store.find("Foo.Bar", V1)
        assert found is not None
        assert found.state is PackageState.UNLISTED

    def test_unlist_twice(self, store: SqlitePackageService) -> None:
        store.add(_metadata())
        assert store.unlist("Foo.Bar", V1)
        assert not store.unlist("Foo.Bar", V1)

    def test_unlist_missing(self, store: SqlitePackageService) -> None:
        assert not store.unlist("Foo.Bar", V1)

    def test_relist(self, store: SqlitePackageService) -> None:
        store.add(_metadata())
        store.unlist("Foo.Bar", V1)

        assert store.relist("foo.bar", V1)
        assert store.find("Foo.Bar", V1).listed

    def test_relist_already_listed(self, store: SqlitePackageService) -> None:
        store.add(_metadata())
        assert store.relist("Foo.Bar", V1)

    def test_relist_missing(self, store: SqlitePackageService) -> None:
        assert not store.relist("Foo.Bar", V1)

    def test_relist_leaves_other_versions(self, store: SqlitePackageService) -> None:
        store.add(_metadata(version="1.0.0"))
        store.add(_metadata(version="2.0.0"))
        store.unlist("Foo.Bar", V1)
        store.unlist("Foo.Bar", PackageVersion.parse("2.0.0"))

        store.relist("Foo.Bar", V1)

        assert not store.find("Foo.Bar", PackageVersion.parse("2.0.0")).listed

    def test_hard_delete(self, store: SqlitePackageService) -> None:
        store.add(_metadata())

        assert store.hard_delete("Foo.Bar", V1)
        assert not store.exists("Foo.Bar", V1)
        assert not store.hard_delete("Foo.Bar", V1)

    def test_persists_across_instances(self, temp_dir: Path) -> None:
        first = SqlitePackageService(temp_dir / "shared.db")
        first.add(_metadata())
        first.close()

        second = SqlitePackageService(temp_dir / "shared.db")
        try:
            assert second.exists("Foo.Bar", V1)
        finally:
            second.close()

    def test_concurrent_add_single_winner(self, store: SqlitePackageService) -> None:
        results: list[PackageAddResult] = []
        lock = threading.Lock()
        barrier = threading.Barrier(8)

        def publish() -> None:
            barrier.wait()
            result = store.add(_metadata())
            with lock:
                results.append(result)

        threads = [threading.Thread(target=publish) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(PackageAddResult.SUCCESS) == 1
        assert results.count(PackageAddResult.PACKAGE_ALREADY_EXISTS) == 7
